from datetime import timedelta

import pytest

from gamenight.errors import (
    DuplicateSubmission, InvalidOption, PromptNotFound, StateConflict, StoreUnavailable, ValidationError,
)
from gamenight.services.prompts import PromptActions
from fakes import RecordingAudit

NIGHT = 1


@pytest.fixture()
def actions(store, audit, clock):
    return PromptActions(store, audit=audit, clock=clock)


@pytest.fixture()
def prompt(actions):
    return actions.create_prompt(NIGHT, 'multiple_choice', 'Who scores first?', options=['Home', 'Away', 'Nobody'], user_id=7)


def option_ids(store, prompt):
    return [o.id for o in store.get_options(prompt.id)]


def open_with_answers(actions, store, clock, prompt):
    """Open for 30s; four patrons answer at 3s, 15s, 29s (correct) and 10s (wrong); a fifth never answers."""
    home, away, _ = option_ids(store, prompt)
    patrons = [store.add_patron(NIGHT) for _ in range(5)]
    opened = actions.open(prompt.id, 30, user_id=7)
    t0 = opened.opens_at
    for patron, second, option in (
        (patrons[0], 3, home),
        (patrons[3], 10, away),
        (patrons[1], 15, home),
        (patrons[2], 29, home),
    ):
        clock.at(t0, second)
        actions.submit_answer(prompt.id, patron.id, option)
    clock.at(t0, 30)
    return patrons, home, away


def points_by_patron(store, prompt_id):
    return {s.patron_id: (s.points, s.reason) for s in store.get_scores(prompt_id)}


def test_create_multiple_choice_prompt(store, audit, prompt):
    assert prompt.state == 'draft'
    assert [o.label for o in store.get_options(prompt.id)] == ['Home', 'Away', 'Nobody']
    assert audit.kinds() == ['prompt_created']


def test_create_over_under_prompt(actions, store):
    prompt = actions.create_prompt(NIGHT, 'over_under', 'Total points in Q1', over_under_line='52.5')
    assert prompt.over_under_line == 52.5
    assert [o.label for o in store.get_options(prompt.id)] == ['Over', 'Under']


@pytest.mark.parametrize('kwargs', [
    {'kind': 'multiple_choice', 'question': '   ', 'options': ['a', 'b']},
    {'kind': 'multiple_choice', 'question': 'Q?', 'options': ['only one', '  ']},
    {'kind': 'multiple_choice', 'question': 'Q?', 'options': [str(i) for i in range(9)]},
    {'kind': 'over_under', 'question': 'Q?', 'over_under_line': None},
    {'kind': 'spread', 'question': 'Q?', 'options': ['a', 'b']},
])
def test_create_prompt_validation(actions, store, kwargs):
    with pytest.raises(ValidationError):
        actions.create_prompt(NIGHT, **kwargs)
    assert store.prompts == {}


def test_open_sets_window(actions, clock, prompt):
    opened = actions.open(prompt.id, 30)
    assert opened.state == 'open'
    assert opened.opens_at == clock.now
    assert opened.locks_at - opened.opens_at == timedelta(seconds=30)


def test_resolve_scores_by_speed_and_correctness(actions, store, audit, clock, prompt):
    patrons, home, _ = open_with_answers(actions, store, clock, prompt)

    result = actions.resolve(prompt.id, home, user_id=7)

    assert points_by_patron(store, prompt.id) == {
        patrons[0].id: (10, 'correct_speed'),
        patrons[1].id: (8, 'correct_speed'),
        patrons[2].id: (5, 'correct_speed'),
        patrons[3].id: (2, 'incorrect'),
    }
    assert patrons[4].id not in points_by_patron(store, prompt.id)
    assert len(result.scores) == 4 <= len(store.get_patrons(NIGHT))
    assert result.total_submissions == 4

    resolved = store.get_prompt(prompt.id)
    assert resolved.state == 'resolved'
    assert resolved.resolved_at == clock.now
    assert store.get_resolution(prompt.id).correct_option_id == home
    assert audit.events[-1][0] == 'prompt_resolved'
    assert audit.events[-1][1]['scoredCount'] == 4


def test_resolve_while_open_keeps_stored_window(actions, store, clock, prompt):
    patrons, home, _ = open_with_answers(actions, store, clock, prompt)
    before = store.get_prompt(prompt.id)
    clock.at(before.opens_at, 20)  # host resolves early

    actions.resolve(prompt.id, home)

    after = store.get_prompt(prompt.id)
    assert (after.opens_at, after.locks_at) == (before.opens_at, before.locks_at)
    assert points_by_patron(store, prompt.id)[patrons[1].id] == (8, 'correct_speed')


def test_resolve_twice_is_idempotent(actions, store, clock, prompt):
    _, home, _ = open_with_answers(actions, store, clock, prompt)

    actions.resolve(prompt.id, home)
    first = store.get_scores(prompt.id)
    actions.resolve(prompt.id, home)

    assert store.get_scores(prompt.id) == first
    assert len(store.resolutions) == 1


def test_re_resolve_with_another_option_replaces_scores(actions, store, clock, prompt):
    patrons, home, away = open_with_answers(actions, store, clock, prompt)
    actions.resolve(prompt.id, home)

    actions.resolve(prompt.id, away)

    assert store.get_resolution(prompt.id).correct_option_id == away
    scores = points_by_patron(store, prompt.id)
    assert scores[patrons[0].id] == (2, 'incorrect')
    assert scores[patrons[3].id][1] == 'correct_speed'
    assert len(scores) == 4


def test_resolve_rejects_foreign_option_before_mutating(actions, store, clock, prompt):
    other = actions.create_prompt(NIGHT, 'over_under', 'Q2', over_under_line=10)
    actions.open(prompt.id, 30)

    with pytest.raises(InvalidOption):
        actions.resolve(prompt.id, option_ids(store, other)[0])

    assert store.get_prompt(prompt.id).state == 'open'
    assert store.get_resolution(prompt.id) is None


def test_resolve_draft_is_a_state_conflict(actions, store, prompt):
    with pytest.raises(StateConflict):
        actions.resolve(prompt.id, option_ids(store, prompt)[0])
    assert store.get_resolution(prompt.id) is None


def test_unknown_prompt(actions):
    with pytest.raises(PromptNotFound):
        actions.lock(999)


def test_failed_score_write_leaves_prompt_locked_and_retry_completes(actions, store, clock, prompt):
    patrons, home, _ = open_with_answers(actions, store, clock, prompt)
    store.fail_on.add('upsert_scores')

    with pytest.raises(StoreUnavailable):
        actions.resolve(prompt.id, home)

    assert store.get_prompt(prompt.id).state == 'locked'
    assert store.get_scores(prompt.id) == []

    store.fail_on.clear()
    actions.resolve(prompt.id, home)
    assert store.get_prompt(prompt.id).state == 'resolved'
    assert points_by_patron(store, prompt.id)[patrons[0].id] == (10, 'correct_speed')


def test_failed_resolution_write_keeps_prompt_open(actions, store, clock, prompt):
    _, home, _ = open_with_answers(actions, store, clock, prompt)
    store.fail_on.add('upsert_resolution')

    with pytest.raises(StoreUnavailable):
        actions.resolve(prompt.id, home)

    # the implicit lock rolls back with the resolution
    assert store.get_prompt(prompt.id).state == 'open'
    assert store.get_resolution(prompt.id) is None


def test_audit_failures_do_not_fail_resolution(store, clock):
    actions = PromptActions(store, audit=RecordingAudit(fail=True), clock=clock)
    prompt = actions.create_prompt(NIGHT, 'multiple_choice', 'Q?', options=['a', 'b'])
    patron = store.add_patron(NIGHT)
    actions.open(prompt.id, 30)
    actions.submit_answer(prompt.id, patron.id, option_ids(store, prompt)[0])

    result = actions.resolve(prompt.id, option_ids(store, prompt)[0])

    assert result.scores[0].points == 10


def test_void_clears_resolution_scores_and_answers(actions, store, clock, prompt):
    _, home, _ = open_with_answers(actions, store, clock, prompt)
    actions.resolve(prompt.id, home)

    voided = actions.void(prompt.id)

    assert voided.state == 'void'
    assert voided.resolved_at == clock.now
    assert store.get_scores(prompt.id) == []
    assert store.get_resolution(prompt.id) is None
    assert store.get_submissions(prompt.id) == []
    with pytest.raises(StateConflict):
        actions.void(prompt.id)


def test_reopen_clears_and_sets_fresh_window(actions, store, clock, prompt):
    patrons, home, _ = open_with_answers(actions, store, clock, prompt)
    actions.resolve(prompt.id, home)
    clock.advance(60)

    reopened = actions.reopen(prompt.id, 20)

    assert reopened.state == 'open'
    assert reopened.opens_at == clock.now
    assert reopened.locks_at - reopened.opens_at == timedelta(seconds=20)
    assert reopened.resolved_at is None
    assert store.get_scores(prompt.id) == []
    assert store.get_resolution(prompt.id) is None
    # answers from the previous window are gone, so patrons may answer again
    actions.submit_answer(prompt.id, patrons[0].id, home)


def test_reopen_requires_locked_or_resolved(actions, prompt):
    with pytest.raises(StateConflict):
        actions.reopen(prompt.id, 30)


def test_failed_void_keeps_previous_state(actions, store, clock, prompt):
    _, home, _ = open_with_answers(actions, store, clock, prompt)
    actions.resolve(prompt.id, home)
    store.fail_on.add('set_prompt_state')

    with pytest.raises(StoreUnavailable):
        actions.void(prompt.id)

    assert store.get_prompt(prompt.id).state == 'resolved'
    assert len(store.get_scores(prompt.id)) == 4


def test_submission_rules(actions, store, clock, prompt):
    home, away, _ = option_ids(store, prompt)
    patron = store.add_patron(NIGHT)
    stranger = store.add_patron(NIGHT + 1)

    with pytest.raises(StateConflict):
        actions.submit_answer(prompt.id, patron.id, home)  # still draft

    opened = actions.open(prompt.id, 30)
    with pytest.raises(ValidationError):
        actions.submit_answer(prompt.id, stranger.id, home)
    with pytest.raises(InvalidOption):
        actions.submit_answer(prompt.id, patron.id, 12345)

    clock.at(opened.opens_at, 4)
    submission = actions.submit_answer(prompt.id, patron.id, home)
    assert submission.created_at == clock.now

    with pytest.raises(DuplicateSubmission):
        actions.submit_answer(prompt.id, patron.id, away)
    assert store.get_submissions(prompt.id)[0].option_id == home


def test_submissions_rejected_after_lock_or_deadline(actions, store, clock, prompt):
    home = option_ids(store, prompt)[0]
    early, late = store.add_patron(NIGHT), store.add_patron(NIGHT)
    opened = actions.open(prompt.id, 30)

    clock.at(opened.opens_at, 30)
    with pytest.raises(StateConflict):
        actions.submit_answer(prompt.id, early.id, home)

    actions.lock(prompt.id)
    clock.at(opened.opens_at, 10)
    with pytest.raises(StateConflict):
        actions.submit_answer(prompt.id, late.id, home)


def test_lifecycle_audit_events(actions, store, audit, clock, prompt):
    home = option_ids(store, prompt)[0]
    actions.open(prompt.id, 30, user_id=7)
    actions.lock(prompt.id, user_id=7)
    actions.resolve(prompt.id, home, user_id=7)
    actions.reopen(prompt.id, 30, user_id=7)
    actions.void(prompt.id, user_id=7)

    assert audit.kinds() == [
        'prompt_created', 'prompt_opened', 'prompt_locked', 'prompt_resolved',
        'prompt_reopened', 'prompt_voided',
    ]
    assert all(e[3] == NIGHT for e in audit.events)
