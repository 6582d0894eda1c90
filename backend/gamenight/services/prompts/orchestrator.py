"""Host and patron actions on prompts.

Every action re-reads what it needs through the injected store and writes
in explicit transactions:

- open/lock: one state write each
- void/reopen: clearing of resolution, scores and answers plus the state
  flip, together
- resolve: implicit lock plus the resolution upsert, then scores plus the
  resolved state. A failure in the second unit leaves the prompt locked,
  and re-running resolve converges on the same rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List

from gamenight.errors import (
    InvalidOption, PromptNotFound, StateConflict, ValidationError,
)
from .scoring import DEFAULT_RULES, ScoringRules, score_submission
from .state_machine import (
    PromptAction, PromptState, can_transition, plan_transition,
)
from .store import PromptRecord, PromptStore, PatronRecord, ScoreRow, SubmissionRecord
from .window import as_utc, utcnow

logger = logging.getLogger(__name__)

KIND_MULTIPLE_CHOICE = 'multiple_choice'
KIND_OVER_UNDER = 'over_under'
PROMPT_KINDS = (KIND_MULTIPLE_CHOICE, KIND_OVER_UNDER)
OVER_UNDER_LABELS = ['Over', 'Under']
MIN_OPTIONS = 2
MAX_OPTIONS = 8


@dataclass(frozen=True)
class ResolutionResult:
    prompt_id: int
    correct_option_id: int
    total_submissions: int
    scores: List[ScoreRow] = field(default_factory=list)


def build_score_rows(
    prompt: PromptRecord,
    patrons: Iterable[PatronRecord],
    submissions: Iterable[SubmissionRecord],
    correct_option_id: int,
    rules: ScoringRules = DEFAULT_RULES,
) -> List[ScoreRow]:
    """One row per patron who answered; patrons without an answer get none."""
    by_patron: Dict[int, SubmissionRecord] = {s.patron_id: s for s in submissions}
    rows = []
    for patron in patrons:
        sub = by_patron.get(patron.id)
        if sub is None:
            continue
        points, reason = score_submission(
            sub.option_id == correct_option_id,
            prompt.opens_at,
            prompt.locks_at,
            sub.created_at,
            rules,
        )
        rows.append(ScoreRow(
            prompt_id=prompt.id,
            game_night_id=prompt.game_night_id,
            patron_id=patron.id,
            points=points,
            reason=reason,
        ))
    return rows


class PromptActions:
    """Prompt lifecycle operations against an explicitly passed store."""

    def __init__(
        self,
        store: PromptStore,
        audit=None,
        clock: Callable[[], datetime] = utcnow,
        rules: ScoringRules = DEFAULT_RULES,
    ):
        self.store = store
        self.audit = audit
        self.clock = clock
        self.rules = rules

    # ---- helpers ----

    def _now(self) -> datetime:
        return as_utc(self.clock())

    def _load(self, prompt_id) -> PromptRecord:
        prompt = self.store.get_prompt(prompt_id)
        if prompt is None:
            raise PromptNotFound()
        return prompt

    def _option_ids(self, prompt_id) -> set:
        return {o.id for o in self.store.get_options(prompt_id)}

    def _emit(self, kind, payload, user_id=None, game_night_id=None) -> None:
        if self.audit is None:
            return
        try:
            self.audit.log_event(kind, payload, user_id=user_id, game_night_id=game_night_id)
        except Exception as exc:
            logger.warning(f"[audit-failed] kind={kind}: {exc}")

    def _clear_results(self, prompt_id) -> None:
        self.store.delete_resolution(prompt_id)
        self.store.delete_scores(prompt_id)
        self.store.delete_submissions(prompt_id)

    # ---- host actions ----

    def create_prompt(self, game_night_id, kind, question, options=None, over_under_line=None, user_id=None) -> PromptRecord:
        if kind not in PROMPT_KINDS:
            raise ValidationError(f"Unknown prompt kind: {kind}")
        question = (question or '').strip()
        if not question:
            raise ValidationError('Question required')

        if kind == KIND_MULTIPLE_CHOICE:
            labels = [str(o).strip() for o in (options or []) if o is not None and str(o).strip()]
            if len(labels) < MIN_OPTIONS:
                raise ValidationError(f'Need at least {MIN_OPTIONS} options')
            if len(labels) > MAX_OPTIONS:
                raise ValidationError(f'At most {MAX_OPTIONS} options')
            line = None
        else:
            labels = list(OVER_UNDER_LABELS)
            try:
                line = float(over_under_line)
            except (TypeError, ValueError):
                raise ValidationError('Over/under prompts need a numeric line')

        with self.store.transaction():
            prompt = self.store.create_prompt(
                game_night_id, kind, question, labels,
                over_under_line=line, created_by_user_id=user_id,
            )
        logger.info(f"[prompt-create] prompt={prompt.id} game_night={game_night_id} kind={kind} options={len(labels)}")
        self._emit('prompt_created', {
            'promptId': prompt.id,
            'kind': kind,
            'questionLength': len(question),
            'optionsCount': len(labels),
        }, user_id=user_id, game_night_id=game_night_id)
        return prompt

    def open(self, prompt_id, duration_seconds, user_id=None) -> PromptRecord:
        prompt = self._load(prompt_id)
        plan = plan_transition(PromptAction.OPEN, prompt.state, self._now(), duration_seconds)
        with self.store.transaction():
            opened = self.store.set_prompt_state(prompt.id, plan.target.value, **plan.fields)
        logger.info(f"[prompt-open] prompt={prompt.id} opens_at={opened.opens_at} locks_at={opened.locks_at}")
        self._emit('prompt_opened', {
            'promptId': prompt.id,
            'durationSeconds': int(duration_seconds),
        }, user_id=user_id, game_night_id=prompt.game_night_id)
        return opened

    def lock(self, prompt_id, user_id=None) -> PromptRecord:
        prompt = self._load(prompt_id)
        plan = plan_transition(PromptAction.LOCK, prompt.state, self._now())
        with self.store.transaction():
            locked = self.store.set_prompt_state(prompt.id, plan.target.value, **plan.fields)
        logger.info(f"[prompt-lock] prompt={prompt.id}")
        self._emit('prompt_locked', {'promptId': prompt.id}, user_id=user_id, game_night_id=prompt.game_night_id)
        return locked

    def void(self, prompt_id, user_id=None) -> PromptRecord:
        prompt = self._load(prompt_id)
        plan = plan_transition(PromptAction.VOID, prompt.state, self._now())
        with self.store.transaction():
            if plan.clears_results:
                self._clear_results(prompt.id)
            voided = self.store.set_prompt_state(prompt.id, plan.target.value, **plan.fields)
        logger.info(f"[prompt-void] prompt={prompt.id} from={plan.source.value}")
        self._emit('prompt_voided', {'promptId': prompt.id}, user_id=user_id, game_night_id=prompt.game_night_id)
        return voided

    def reopen(self, prompt_id, duration_seconds, user_id=None) -> PromptRecord:
        prompt = self._load(prompt_id)
        plan = plan_transition(PromptAction.REOPEN, prompt.state, self._now(), duration_seconds)
        with self.store.transaction():
            if plan.clears_results:
                self._clear_results(prompt.id)
            reopened = self.store.set_prompt_state(prompt.id, plan.target.value, **plan.fields)
        logger.info(f"[prompt-reopen] prompt={prompt.id} from={plan.source.value} locks_at={reopened.locks_at}")
        self._emit('prompt_reopened', {
            'promptId': prompt.id,
            'durationSeconds': int(duration_seconds),
        }, user_id=user_id, game_night_id=prompt.game_night_id)
        return reopened

    def resolve(self, prompt_id, correct_option_id, user_id=None) -> ResolutionResult:
        prompt = self._load(prompt_id)
        if correct_option_id not in self._option_ids(prompt.id):
            raise InvalidOption()
        if not can_transition(PromptAction.RESOLVE, prompt.state):
            raise StateConflict(f"Cannot resolve a prompt that is {prompt.state}")

        now = self._now()
        implicit_lock = prompt.state == PromptState.OPEN.value
        with self.store.transaction():
            if implicit_lock:
                lock_plan = plan_transition(PromptAction.LOCK, prompt.state, now)
                self.store.set_prompt_state(prompt.id, lock_plan.target.value, **lock_plan.fields)
            self.store.upsert_resolution(prompt.id, correct_option_id, user_id)
        if implicit_lock:
            logger.info(f"[prompt-lock] prompt={prompt.id} implicit=resolve")

        # Window and answers are read after the lock write
        frozen = self._load(prompt.id)
        submissions = self.store.get_submissions(frozen.id)
        patrons = self.store.get_patrons(frozen.game_night_id)
        rows = build_score_rows(frozen, patrons, submissions, correct_option_id, self.rules)

        plan = plan_transition(PromptAction.RESOLVE, frozen.state, now)
        with self.store.transaction():
            if rows:
                self.store.upsert_scores(rows)
            self.store.set_prompt_state(frozen.id, plan.target.value, **plan.fields)

        logger.info(
            f"[prompt-resolve] prompt={frozen.id} correct_option={correct_option_id} "
            f"submissions={len(submissions)} scored={len(rows)}"
        )
        self._emit('prompt_resolved', {
            'promptId': frozen.id,
            'correctOptionId': correct_option_id,
            'totalSubmissions': len(submissions),
            'scoredCount': len(rows),
        }, user_id=user_id, game_night_id=frozen.game_night_id)
        return ResolutionResult(
            prompt_id=frozen.id,
            correct_option_id=correct_option_id,
            total_submissions=len(submissions),
            scores=rows,
        )

    # ---- patron actions ----

    def submit_answer(self, prompt_id, patron_id, option_id) -> SubmissionRecord:
        prompt = self._load(prompt_id)
        now = self._now()
        if prompt.state != PromptState.OPEN.value or prompt.locks_at is None or now >= prompt.locks_at:
            raise StateConflict('Prompt is not accepting answers')

        patron = self.store.get_patron(patron_id)
        if patron is None or patron.game_night_id != prompt.game_night_id:
            raise ValidationError('Patron is not part of this game night')
        if option_id not in self._option_ids(prompt.id):
            raise InvalidOption()

        with self.store.transaction():
            submission = self.store.insert_submission(prompt.id, patron.id, option_id, now)
        logger.info(f"[submission] prompt={prompt.id} patron={patron.id} option={option_id}")
        return submission
