"""Speed scoring shared by the live countdown and by prompt resolution.

Correct answers earn between ``min_points`` and ``max_points`` depending on
how early in the window they arrived; incorrect answers earn a flat
consolation value; patrons who never answer earn nothing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .window import PromptWindow, decay_fraction

REASON_CORRECT_SPEED = 'correct_speed'
REASON_INCORRECT = 'incorrect'


@dataclass(frozen=True)
class ScoringRules:
    min_points: int = 5
    max_points: int = 10
    # Full points for answers inside the first fast_window after opening
    fast_window: timedelta = timedelta(seconds=5)
    # Floor points for answers inside the last slow_window before locking
    slow_window: timedelta = timedelta(seconds=2)
    incorrect_points: int = 2


DEFAULT_RULES = ScoringRules()


def _points_for_fraction(frac: float, rules: ScoringRules) -> int:
    raw = rules.max_points - (rules.max_points - rules.min_points) * frac
    # half-up: 8.5 -> 9
    points = math.floor(raw + 0.5)
    return min(max(points, rules.min_points), rules.max_points)


def compute_speed_points(
    opens_at: Optional[datetime],
    locks_at: Optional[datetime],
    submitted_at: Optional[datetime],
    rules: ScoringRules = DEFAULT_RULES,
) -> int:
    """Points for a correct answer submitted at ``submitted_at``.

    Malformed timing (missing timestamps, non-positive duration) never
    earns more than ``min_points``.
    """
    frac = decay_fraction(PromptWindow(opens_at, locks_at), submitted_at, rules)
    if frac is None:
        return rules.min_points
    return _points_for_fraction(frac, rules)


def score_submission(
    correct: bool,
    opens_at: Optional[datetime],
    locks_at: Optional[datetime],
    submitted_at: Optional[datetime],
    rules: ScoringRules = DEFAULT_RULES,
) -> Tuple[int, str]:
    """Return ``(points, reason)`` for one patron's answer."""
    if not correct:
        return rules.incorrect_points, REASON_INCORRECT
    return compute_speed_points(opens_at, locks_at, submitted_at, rules), REASON_CORRECT_SPEED


def potential_points(
    window: PromptWindow,
    now: datetime,
    rules: ScoringRules = DEFAULT_RULES,
) -> Optional[int]:
    """What a correct answer submitted at ``now`` would earn, for display."""
    if not window.is_set:
        return None
    return compute_speed_points(window.opens_at, window.locks_at, now, rules)
