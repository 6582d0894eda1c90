"""Persistence contract for the prompt services.

The orchestrator only ever talks to a ``PromptStore``; the Flask app hands it
a ``SqlAlchemyPromptStore`` bound to the request's session, tests hand it an
in-memory fake. Records are plain dataclasses so nothing outside this
module touches ORM instances.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Optional, Protocol

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from gamenight.errors import DuplicateSubmission, StoreUnavailable
from gamenight.models import (
    Patron, Prompt, PromptOption, PromptResolution, PromptScore, Submission,
)
from .window import PromptWindow, as_utc

logger = logging.getLogger(__name__)

# ON CONFLICT upserts, keyed by dialect name
_DIALECT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


@dataclass(frozen=True)
class PromptRecord:
    id: int
    game_night_id: int
    kind: str
    state: str
    question: str = ''
    over_under_line: Optional[float] = None
    opens_at: Optional[datetime] = None
    locks_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def window(self) -> PromptWindow:
        return PromptWindow(self.opens_at, self.locks_at)


@dataclass(frozen=True)
class OptionRecord:
    id: int
    label: str


@dataclass(frozen=True)
class SubmissionRecord:
    patron_id: int
    option_id: int
    created_at: datetime


@dataclass(frozen=True)
class PatronRecord:
    id: int
    game_night_id: int


@dataclass(frozen=True)
class ResolutionRecord:
    prompt_id: int
    correct_option_id: int
    resolved_by_user_id: Optional[int] = None


@dataclass(frozen=True)
class ScoreRow:
    prompt_id: int
    game_night_id: int
    patron_id: int
    points: int
    reason: str


class PromptStore(Protocol):
    def transaction(self) -> Any: ...

    def get_prompt(self, prompt_id: int) -> Optional[PromptRecord]: ...
    def get_options(self, prompt_id: int) -> List[OptionRecord]: ...
    def get_submissions(self, prompt_id: int) -> List[SubmissionRecord]: ...
    def get_patron(self, patron_id: int) -> Optional[PatronRecord]: ...
    def get_patrons(self, game_night_id: int) -> List[PatronRecord]: ...
    def get_resolution(self, prompt_id: int) -> Optional[ResolutionRecord]: ...
    def get_scores(self, prompt_id: int) -> List[ScoreRow]: ...

    def create_prompt(self, game_night_id: int, kind: str, question: str,
                      labels: List[str], over_under_line: Optional[float] = None,
                      created_by_user_id: Optional[int] = None) -> PromptRecord: ...
    def set_prompt_state(self, prompt_id: int, state: str, **fields: Any) -> PromptRecord: ...
    def insert_submission(self, prompt_id: int, patron_id: int, option_id: int,
                          created_at: datetime) -> SubmissionRecord: ...
    def delete_submissions(self, prompt_id: int) -> None: ...
    def upsert_resolution(self, prompt_id: int, correct_option_id: int,
                          resolved_by_user_id: Optional[int] = None) -> ResolutionRecord: ...
    def delete_resolution(self, prompt_id: int) -> None: ...
    def upsert_scores(self, rows: Iterable[ScoreRow]) -> None: ...
    def delete_scores(self, prompt_id: int) -> None: ...


def _store_call(fn):
    """Roll back and surface database failures as StoreUnavailable."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning(f"[store-error] {fn.__name__}: {exc}")
            raise StoreUnavailable() from exc
    return wrapper


def _prompt_record(p: Prompt) -> PromptRecord:
    return PromptRecord(
        id=p.id,
        game_night_id=p.game_night_id,
        kind=p.kind,
        state=p.state,
        question=p.question,
        over_under_line=p.over_under_line,
        opens_at=as_utc(p.opens_at),
        locks_at=as_utc(p.locks_at),
        resolved_at=as_utc(p.resolved_at),
    )


class SqlAlchemyPromptStore:
    """``PromptStore`` over a SQLAlchemy session.

    Writes only flush; ``transaction()`` owns the commit so a unit of work
    (state flip plus the rows it clears or creates) lands together.
    """

    def __init__(self, session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator['SqlAlchemyPromptStore']:
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning(f"[store-error] commit failed: {exc}")
            raise StoreUnavailable() from exc
        except Exception:
            self.session.rollback()
            raise

    # ---- reads ----

    @_store_call
    def get_prompt(self, prompt_id):
        p = self.session.get(Prompt, prompt_id)
        return _prompt_record(p) if p else None

    @_store_call
    def get_options(self, prompt_id):
        rows = (
            self.session.query(PromptOption)
            .filter_by(prompt_id=prompt_id)
            .order_by(PromptOption.id)
            .all()
        )
        return [OptionRecord(id=o.id, label=o.label) for o in rows]

    @_store_call
    def get_submissions(self, prompt_id):
        rows = self.session.query(Submission).filter_by(prompt_id=prompt_id).all()
        return [
            SubmissionRecord(patron_id=s.patron_id, option_id=s.option_id, created_at=as_utc(s.created_at))
            for s in rows
        ]

    @_store_call
    def get_patron(self, patron_id):
        p = self.session.get(Patron, patron_id)
        return PatronRecord(id=p.id, game_night_id=p.game_night_id) if p else None

    @_store_call
    def get_patrons(self, game_night_id):
        rows = self.session.query(Patron).filter_by(game_night_id=game_night_id).order_by(Patron.id).all()
        return [PatronRecord(id=p.id, game_night_id=p.game_night_id) for p in rows]

    @_store_call
    def get_resolution(self, prompt_id):
        r = self.session.query(PromptResolution).filter_by(prompt_id=prompt_id).first()
        if not r:
            return None
        return ResolutionRecord(
            prompt_id=r.prompt_id,
            correct_option_id=r.correct_option_id,
            resolved_by_user_id=r.resolved_by_user_id,
        )

    @_store_call
    def get_scores(self, prompt_id):
        rows = self.session.query(PromptScore).filter_by(prompt_id=prompt_id).order_by(PromptScore.patron_id).all()
        return [
            ScoreRow(
                prompt_id=s.prompt_id,
                game_night_id=s.game_night_id,
                patron_id=s.patron_id,
                points=s.points,
                reason=s.reason,
            )
            for s in rows
        ]

    # ---- writes ----

    @_store_call
    def create_prompt(self, game_night_id, kind, question, labels, over_under_line=None, created_by_user_id=None):
        prompt = Prompt(
            game_night_id=game_night_id,
            created_by_user_id=created_by_user_id,
            kind=kind,
            question=question,
            over_under_line=over_under_line,
            state='draft',
        )
        self.session.add(prompt)
        self.session.flush()
        for label in labels:
            self.session.add(PromptOption(prompt_id=prompt.id, label=label))
        self.session.flush()
        return _prompt_record(prompt)

    @_store_call
    def set_prompt_state(self, prompt_id, state, **fields):
        prompt = self.session.get(Prompt, prompt_id)
        prompt.state = state
        for name, value in fields.items():
            setattr(prompt, name, value)
        self.session.add(prompt)
        self.session.flush()
        return _prompt_record(prompt)

    @_store_call
    def insert_submission(self, prompt_id, patron_id, option_id, created_at):
        if self.session.query(Submission).filter_by(prompt_id=prompt_id, patron_id=patron_id).first():
            raise DuplicateSubmission()
        self.session.add(Submission(
            prompt_id=prompt_id,
            patron_id=patron_id,
            option_id=option_id,
            created_at=created_at,
        ))
        try:
            self.session.flush()
        except IntegrityError:
            # lost a race with a concurrent insert for the same patron
            self.session.rollback()
            raise DuplicateSubmission()
        return SubmissionRecord(patron_id=patron_id, option_id=option_id, created_at=as_utc(created_at))

    @_store_call
    def delete_submissions(self, prompt_id):
        self.session.query(Submission).filter_by(prompt_id=prompt_id).delete(synchronize_session=False)

    def _upsert(self, model, values, conflict_keys):
        """INSERT ... ON CONFLICT DO UPDATE for the session's dialect."""
        dialect = self.session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise StoreUnavailable(f'Upserts are not supported on {dialect}')
        stmt = insert(model).values(values)
        updated = {
            name: stmt.excluded[name]
            for name in values[0]
            if name not in conflict_keys
        }
        self.session.execute(stmt.on_conflict_do_update(index_elements=conflict_keys, set_=updated))

    def _expire_loaded(self, model, prompt_id):
        # rows written by the upsert statement bypass the identity map
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, model) and obj.prompt_id == prompt_id:
                self.session.expire(obj)

    @_store_call
    def upsert_resolution(self, prompt_id, correct_option_id, resolved_by_user_id=None):
        self._upsert(PromptResolution, [{
            'prompt_id': prompt_id,
            'correct_option_id': correct_option_id,
            'resolved_by_user_id': resolved_by_user_id,
        }], ['prompt_id'])
        self._expire_loaded(PromptResolution, prompt_id)
        return ResolutionRecord(prompt_id, correct_option_id, resolved_by_user_id)

    @_store_call
    def delete_resolution(self, prompt_id):
        self.session.query(PromptResolution).filter_by(prompt_id=prompt_id).delete(synchronize_session=False)

    @_store_call
    def upsert_scores(self, rows):
        values = [
            {
                'prompt_id': r.prompt_id,
                'game_night_id': r.game_night_id,
                'patron_id': r.patron_id,
                'points': r.points,
                'reason': r.reason,
            }
            for r in rows
        ]
        if not values:
            return
        self._upsert(PromptScore, values, ['prompt_id', 'patron_id'])
        for prompt_id in {v['prompt_id'] for v in values}:
            self._expire_loaded(PromptScore, prompt_id)

    @_store_call
    def delete_scores(self, prompt_id):
        self.session.query(PromptScore).filter_by(prompt_id=prompt_id).delete(synchronize_session=False)
