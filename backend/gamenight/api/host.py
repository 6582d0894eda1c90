from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy import func
from gamenight import db
from gamenight.errors import GameNightNotFound, NotAuthorized, PromptNotFound, StateConflict, ValidationError
from gamenight.models import Bar, GameNight, Prompt, PromptResolution, Submission, normalize_game_code
from gamenight.services.leaderboard import game_night_leaderboard
from gamenight.socketio_events import broadcast_state_update
from gamenight.api.common import (
    audit_sink, duration_field, int_field, json_body, now, prompt_actions, prompt_to_dict,
)

host = Blueprint('host', __name__)


def _owned_game_night(game_night_id) -> GameNight:
    game_night = db.session.get(GameNight, game_night_id)
    if not game_night:
        raise GameNightNotFound()
    if game_night.owner_user_id != current_user.id:
        raise NotAuthorized('You do not host this game night')
    return game_night


def _owned_prompt(prompt_id) -> Prompt:
    prompt = db.session.get(Prompt, prompt_id)
    if not prompt:
        raise PromptNotFound()
    _owned_game_night(prompt.game_night_id)
    return prompt


def _game_code_for(game_night_id) -> str:
    return db.session.get(GameNight, game_night_id).code


@host.route('/bars', methods=['POST'])
@login_required
def ensure_bar():
    """
    Returns the host's bar, creating it on first call.
    """
    existing = Bar.query.filter_by(owner_user_id=current_user.id).order_by(Bar.created_at.asc()).first()
    if existing:
        return jsonify(existing.to_dict())

    name = (json_body().get('name') or '').strip()
    if not name:
        raise ValidationError('Bar name required')
    bar = Bar(owner_user_id=current_user.id, name=name)
    db.session.add(bar)
    db.session.commit()
    return jsonify(bar.to_dict()), 201


@host.route('/bars/mine', methods=['GET'])
@login_required
def my_bar():
    bar = Bar.query.filter_by(owner_user_id=current_user.id).order_by(Bar.created_at.asc()).first()
    return jsonify(bar.to_dict() if bar else None)


@host.route('/game-nights', methods=['POST'])
@login_required
def create_game_night():
    data = json_body()
    bar_id = int_field(data, 'bar_id')
    bar = db.session.get(Bar, bar_id)
    if not bar or bar.owner_user_id != current_user.id:
        raise NotAuthorized('You do not own this bar')

    code = normalize_game_code(data.get('code'))
    min_len = int(current_app.config.get('MIN_GAME_CODE_LENGTH', 4))
    if data.get('code') is not None and len(code) < min_len:
        raise ValidationError(f'Game code must be at least {min_len} characters')
    if code and GameNight.query.filter_by(code=code).first():
        raise ValidationError('Game code already in use')

    sport = (data.get('sport') or 'NBA').strip().upper()
    game_night = GameNight(
        bar_id=bar.id,
        owner_user_id=current_user.id,
        code=code or None,
        title=(data.get('title') or '').strip() or None,
        sport=sport,
        sportsdataio_game_id=int_field(data, 'sportsdataio_game_id', required=False),
    )
    db.session.add(game_night)
    db.session.commit()
    current_app.logger.info(f"[game-night-create] game_night={game_night.id} code={game_night.code}")

    audit_sink().log_event('game_night_created', {
        'code': game_night.code,
        'sport': sport,
    }, user_id=current_user.id, game_night_id=game_night.id)
    return jsonify(game_night.to_dict()), 201


@host.route('/game-nights', methods=['GET'])
@login_required
def list_game_nights():
    nights = (
        GameNight.query.filter_by(owner_user_id=current_user.id)
        .order_by(GameNight.created_at.desc(), GameNight.id.desc())
        .all()
    )
    return jsonify([gn.to_dict() for gn in nights])


@host.route('/game-nights/<int:game_night_id>', methods=['GET'])
@login_required
def game_night_dashboard(game_night_id):
    """
    Host view: every prompt with its options, answer count and resolution,
    plus the running leaderboard.
    """
    game_night = _owned_game_night(game_night_id)
    at = now()
    prompts = game_night.prompts.order_by(Prompt.created_at.desc(), Prompt.id.desc()).all()
    prompt_ids = [p.id for p in prompts]

    counts = {}
    resolutions = {}
    if prompt_ids:
        counts = dict(
            db.session.query(Submission.prompt_id, func.count(Submission.id))
            .filter(Submission.prompt_id.in_(prompt_ids))
            .group_by(Submission.prompt_id)
            .all()
        )
        resolutions = {
            r.prompt_id: r.correct_option_id
            for r in PromptResolution.query.filter(PromptResolution.prompt_id.in_(prompt_ids)).all()
        }

    serialized = []
    for p in prompts:
        pd = prompt_to_dict(p, at)
        pd['submission_count'] = int(counts.get(p.id, 0))
        pd['correct_option_id'] = resolutions.get(p.id)
        serialized.append(pd)

    payload = game_night.to_dict()
    payload['prompts'] = serialized
    payload['patron_count'] = game_night.patrons.count()
    payload['leaderboard'] = game_night_leaderboard(game_night.id)
    return jsonify(payload)


@host.route('/game-nights/<int:game_night_id>/end', methods=['POST'])
@login_required
def end_game_night(game_night_id):
    game_night = _owned_game_night(game_night_id)
    if game_night.status == 'ended':
        # Idempotent end: already ended
        return jsonify(game_night.to_dict())
    game_night.status = 'ended'
    game_night.ended_at = now()
    db.session.add(game_night)
    db.session.commit()
    current_app.logger.info(f"[game-night-end] game_night={game_night.id}")

    audit_sink().log_event('game_night_ended', {}, user_id=current_user.id, game_night_id=game_night.id)
    broadcast_state_update(game_night.code)
    return jsonify(game_night.to_dict())


@host.route('/game-nights/<int:game_night_id>/prompts', methods=['POST'])
@login_required
def create_prompt(game_night_id):
    game_night = _owned_game_night(game_night_id)
    if game_night.status != 'active':
        raise StateConflict('Game night has ended')
    data = json_body()
    record = prompt_actions().create_prompt(
        game_night.id,
        data.get('kind'),
        data.get('question'),
        options=data.get('options'),
        over_under_line=data.get('over_under_line'),
        user_id=current_user.id,
    )
    return jsonify(prompt_to_dict(db.session.get(Prompt, record.id))), 201


@host.route('/prompts/<int:prompt_id>/open', methods=['POST'])
@login_required
def open_prompt(prompt_id):
    prompt = _owned_prompt(prompt_id)
    duration = duration_field(json_body())
    prompt_actions().open(prompt.id, duration, user_id=current_user.id)
    return _prompt_changed(prompt.id)


@host.route('/prompts/<int:prompt_id>/lock', methods=['POST'])
@login_required
def lock_prompt(prompt_id):
    prompt = _owned_prompt(prompt_id)
    prompt_actions().lock(prompt.id, user_id=current_user.id)
    return _prompt_changed(prompt.id)


@host.route('/prompts/<int:prompt_id>/resolve', methods=['POST'])
@login_required
def resolve_prompt(prompt_id):
    prompt = _owned_prompt(prompt_id)
    correct_option_id = int_field(json_body(), 'correct_option_id')
    result = prompt_actions().resolve(prompt.id, correct_option_id, user_id=current_user.id)
    response = _prompt_changed(prompt.id)
    payload = response.get_json()
    payload['correct_option_id'] = result.correct_option_id
    payload['total_submissions'] = result.total_submissions
    payload['scores'] = [
        {'patron_id': s.patron_id, 'points': s.points, 'reason': s.reason}
        for s in result.scores
    ]
    return jsonify(payload)


@host.route('/prompts/<int:prompt_id>/void', methods=['POST'])
@login_required
def void_prompt(prompt_id):
    prompt = _owned_prompt(prompt_id)
    prompt_actions().void(prompt.id, user_id=current_user.id)
    return _prompt_changed(prompt.id)


@host.route('/prompts/<int:prompt_id>/reopen', methods=['POST'])
@login_required
def reopen_prompt(prompt_id):
    prompt = _owned_prompt(prompt_id)
    duration = duration_field(json_body())
    prompt_actions().reopen(prompt.id, duration, user_id=current_user.id)
    return _prompt_changed(prompt.id)


def _prompt_changed(prompt_id):
    prompt = db.session.get(Prompt, prompt_id)
    broadcast_state_update(_game_code_for(prompt.game_night_id), prompt_id=prompt.id, state=prompt.state)
    return jsonify(prompt_to_dict(prompt))
