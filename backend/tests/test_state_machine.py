from datetime import datetime, timedelta, timezone

import pytest

from gamenight.errors import StateConflict, ValidationError
from gamenight.services.prompts.state_machine import (
    PromptAction, PromptState, can_transition, plan_transition,
)

NOW = datetime(2026, 3, 1, 20, 0, 0, tzinfo=timezone.utc)

LEGAL = {
    (PromptAction.OPEN, PromptState.DRAFT),
    (PromptAction.LOCK, PromptState.OPEN),
    (PromptAction.RESOLVE, PromptState.OPEN),
    (PromptAction.RESOLVE, PromptState.LOCKED),
    (PromptAction.RESOLVE, PromptState.RESOLVED),
    (PromptAction.VOID, PromptState.DRAFT),
    (PromptAction.VOID, PromptState.OPEN),
    (PromptAction.VOID, PromptState.LOCKED),
    (PromptAction.VOID, PromptState.RESOLVED),
    (PromptAction.REOPEN, PromptState.LOCKED),
    (PromptAction.REOPEN, PromptState.RESOLVED),
}


@pytest.mark.parametrize('action', list(PromptAction))
@pytest.mark.parametrize('state', list(PromptState))
def test_transition_table(action, state):
    assert can_transition(action, state) == ((action, state) in LEGAL)
    if (action, state) not in LEGAL:
        with pytest.raises(StateConflict):
            plan_transition(action, state, NOW, 30)


def test_open_sets_window_from_duration():
    plan = plan_transition(PromptAction.OPEN, PromptState.DRAFT, NOW, 45)
    assert plan.target == PromptState.OPEN
    assert plan.fields == {'opens_at': NOW, 'locks_at': NOW + timedelta(seconds=45)}
    assert not plan.clears_results


def test_lock_changes_state_only():
    plan = plan_transition(PromptAction.LOCK, PromptState.OPEN, NOW)
    assert plan.target == PromptState.LOCKED
    assert plan.fields == {}


def test_reopen_resets_window_and_clears():
    plan = plan_transition(PromptAction.REOPEN, PromptState.RESOLVED, NOW, 20)
    assert plan.target == PromptState.OPEN
    assert plan.fields['locks_at'] - plan.fields['opens_at'] == timedelta(seconds=20)
    assert plan.fields['resolved_at'] is None
    assert plan.clears_results


def test_void_stamps_resolved_at_and_clears():
    plan = plan_transition(PromptAction.VOID, PromptState.LOCKED, NOW)
    assert plan.target == PromptState.VOID
    assert plan.fields == {'resolved_at': NOW}
    assert plan.clears_results


@pytest.mark.parametrize('duration', [0, -5, None, 'soon', 29.7, '29.7', True])
def test_open_requires_positive_duration(duration):
    with pytest.raises(ValidationError):
        plan_transition(PromptAction.OPEN, PromptState.DRAFT, NOW, duration)


def test_states_accept_plain_strings():
    plan = plan_transition('resolve', 'locked', NOW)
    assert plan.source == PromptState.LOCKED
    assert plan.target == PromptState.RESOLVED


@pytest.mark.parametrize('duration', [45, 45.0, '45'])
def test_whole_second_durations_accepted(duration):
    plan = plan_transition(PromptAction.OPEN, PromptState.DRAFT, NOW, duration)
    assert plan.fields['locks_at'] - plan.fields['opens_at'] == timedelta(seconds=45)
