"""Fire-and-forget audit/analytics events.

Nothing here may fail the caller: database errors are rolled back and
logged, never raised.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from gamenight.models import AnalyticEvent

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def log_event(self, kind: str, payload: Optional[Dict[str, Any]] = None, *,
                  user_id: Optional[int] = None, game_night_id: Optional[int] = None) -> None: ...


class DatabaseAuditSink:
    """Writes one ``analytic_event`` row per event and commits it."""

    def __init__(self, session):
        self.session = session

    def log_event(self, kind, payload=None, *, user_id=None, game_night_id=None):
        try:
            self.session.add(AnalyticEvent(
                kind=kind,
                user_id=user_id,
                game_night_id=game_night_id,
                payload=payload or {},
            ))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning(f"[audit-failed] kind={kind} game_night={game_night_id}: {exc}")
