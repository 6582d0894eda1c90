from datetime import datetime, timedelta, timezone

from gamenight.services.prompts.scoring import DEFAULT_RULES
from gamenight.services.prompts.window import (
    PromptWindow, decay_fraction, format_time_remaining, time_remaining,
)

T0 = datetime(2026, 3, 1, 20, 0, 0, tzinfo=timezone.utc)
WINDOW = PromptWindow(T0, T0 + timedelta(seconds=30))


def test_time_remaining_counts_down_to_zero():
    assert time_remaining(WINDOW, T0) == timedelta(seconds=30)
    assert time_remaining(WINDOW, T0 + timedelta(seconds=12.5)) == timedelta(seconds=17.5)
    assert time_remaining(WINDOW, T0 + timedelta(seconds=45)) == timedelta(0)


def test_time_remaining_unknown_for_unset_window():
    assert time_remaining(PromptWindow(), T0) is None
    assert format_time_remaining(None) is None


def test_format_time_remaining():
    assert format_time_remaining(timedelta(seconds=30)) == '0:30'
    assert format_time_remaining(timedelta(seconds=65.9)) == '1:05'
    assert format_time_remaining(timedelta(seconds=600)) == '10:00'
    assert format_time_remaining(timedelta(seconds=-3)) == '0:00'


def test_decay_fraction_shape():
    assert decay_fraction(WINDOW, T0, DEFAULT_RULES) == 0.0
    assert decay_fraction(WINDOW, T0 + timedelta(seconds=5), DEFAULT_RULES) == 0.0
    assert decay_fraction(WINDOW, T0 + timedelta(seconds=16.5), DEFAULT_RULES) == 0.5
    assert decay_fraction(WINDOW, T0 + timedelta(seconds=28), DEFAULT_RULES) == 1.0
    assert decay_fraction(WINDOW, T0 + timedelta(seconds=40), DEFAULT_RULES) == 1.0


def test_decay_fraction_unknown_or_malformed():
    assert decay_fraction(PromptWindow(None, T0), T0, DEFAULT_RULES) is None
    backwards = PromptWindow(T0 + timedelta(seconds=10), T0)
    assert decay_fraction(backwards, T0, DEFAULT_RULES) == 1.0


def test_window_from_duration():
    window = PromptWindow.starting_at(T0, 45)
    assert window.opens_at == T0
    assert window.duration == timedelta(seconds=45)
    assert window.is_set


def test_naive_datetimes_normalized_to_utc():
    window = PromptWindow(T0.replace(tzinfo=None), None)
    assert window.opens_at == T0
    assert window.opens_at.tzinfo is not None
