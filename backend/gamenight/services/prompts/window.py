"""Prompt timing window: remaining time and decay fraction at an instant."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .scoring import ScoringRules


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class PromptWindow:
    opens_at: Optional[datetime] = None
    locks_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'opens_at', as_utc(self.opens_at))
        object.__setattr__(self, 'locks_at', as_utc(self.locks_at))

    @property
    def is_set(self) -> bool:
        return self.opens_at is not None and self.locks_at is not None

    @property
    def duration(self) -> Optional[timedelta]:
        if not self.is_set:
            return None
        return self.locks_at - self.opens_at

    @classmethod
    def starting_at(cls, now: datetime, duration_seconds: int) -> 'PromptWindow':
        return cls(opens_at=now, locks_at=now + timedelta(seconds=duration_seconds))


def time_remaining(window: PromptWindow, now: datetime) -> Optional[timedelta]:
    """``max(locks_at - now, 0)``, or None while the window is unset."""
    if window.locks_at is None:
        return None
    remaining = window.locks_at - as_utc(now)
    return max(remaining, timedelta(0))


def format_time_remaining(remaining: Optional[timedelta]) -> Optional[str]:
    if remaining is None:
        return None
    total_seconds = int(max(remaining, timedelta(0)).total_seconds())
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def decay_fraction(window: PromptWindow, at: datetime, rules: 'ScoringRules') -> Optional[float]:
    """How far ``at`` sits into the decay span of the window.

    0.0 inside the fast window after opening, 1.0 inside the slow window
    before locking, linear in between. None when the window is unset; a
    window with no positive duration decays fully.
    """
    if not window.is_set or at is None:
        return None
    at = as_utc(at)
    if window.duration <= timedelta(0):
        return 1.0

    start_decay = window.opens_at + rules.fast_window
    end_decay = window.locks_at - rules.slow_window

    if at <= start_decay:
        return 0.0
    if at >= end_decay:
        return 1.0

    # end_decay <= start_decay is already covered by the branches above
    denom = (end_decay - start_decay).total_seconds()
    frac = (at - start_decay).total_seconds() / denom
    return min(max(frac, 0.0), 1.0)
