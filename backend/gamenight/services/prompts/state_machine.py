"""Legal prompt transitions and the writes each one implies.

draft -> open -> locked -> resolved, with void reachable from every live
state and open re-enterable from locked/resolved through reopen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from gamenight.errors import StateConflict, ValidationError
from .window import PromptWindow


class PromptState(str, Enum):
    DRAFT = 'draft'
    OPEN = 'open'
    LOCKED = 'locked'
    RESOLVED = 'resolved'
    VOID = 'void'


class PromptAction(str, Enum):
    OPEN = 'open'
    LOCK = 'lock'
    RESOLVE = 'resolve'
    VOID = 'void'
    REOPEN = 'reopen'


ALLOWED_FROM = {
    PromptAction.OPEN: {PromptState.DRAFT},
    PromptAction.LOCK: {PromptState.OPEN},
    PromptAction.RESOLVE: {PromptState.OPEN, PromptState.LOCKED, PromptState.RESOLVED},
    PromptAction.VOID: {PromptState.DRAFT, PromptState.OPEN, PromptState.LOCKED, PromptState.RESOLVED},
    PromptAction.REOPEN: {PromptState.LOCKED, PromptState.RESOLVED},
}

TARGET_STATE = {
    PromptAction.OPEN: PromptState.OPEN,
    PromptAction.LOCK: PromptState.LOCKED,
    PromptAction.RESOLVE: PromptState.RESOLVED,
    PromptAction.VOID: PromptState.VOID,
    PromptAction.REOPEN: PromptState.OPEN,
}

# Actions that invalidate the previous cycle's resolution, scores and answers
CLEARING_ACTIONS = {PromptAction.VOID, PromptAction.REOPEN}


@dataclass(frozen=True)
class TransitionPlan:
    action: PromptAction
    source: PromptState
    target: PromptState
    fields: Dict[str, Any] = field(default_factory=dict)
    clears_results: bool = False


def can_transition(action: PromptAction, state: PromptState) -> bool:
    return PromptState(state) in ALLOWED_FROM[PromptAction(action)]


def validate_duration(duration_seconds: Any) -> int:
    if isinstance(duration_seconds, bool) or (
        isinstance(duration_seconds, float) and not duration_seconds.is_integer()
    ):
        raise ValidationError('Duration must be a whole number of seconds')
    try:
        duration = int(duration_seconds)
    except (TypeError, ValueError):
        raise ValidationError('Duration must be a whole number of seconds')
    if duration <= 0:
        raise ValidationError('Duration must be positive')
    return duration


def plan_transition(
    action: PromptAction,
    state: PromptState,
    now: datetime,
    duration_seconds: Optional[int] = None,
) -> TransitionPlan:
    """Check ``action`` against ``state`` and describe the resulting write.

    Raises StateConflict for an illegal transition and ValidationError for
    a missing or non-positive duration on open/reopen.
    """
    action = PromptAction(action)
    state = PromptState(state)
    if not can_transition(action, state):
        raise StateConflict(f"Cannot {action.value} a prompt that is {state.value}")

    fields: Dict[str, Any] = {}
    if action in (PromptAction.OPEN, PromptAction.REOPEN):
        window = PromptWindow.starting_at(now, validate_duration(duration_seconds))
        fields['opens_at'] = window.opens_at
        fields['locks_at'] = window.locks_at
        if action == PromptAction.REOPEN:
            fields['resolved_at'] = None
    elif action in (PromptAction.RESOLVE, PromptAction.VOID):
        fields['resolved_at'] = now

    return TransitionPlan(
        action=action,
        source=state,
        target=TARGET_STATE[action],
        fields=fields,
        clears_results=action in CLEARING_ACTIONS,
    )
