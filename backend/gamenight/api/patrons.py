from flask import Blueprint, jsonify, request, current_app
from gamenight import db
from gamenight.errors import GameNightNotFound, StateConflict, ValidationError
from gamenight.models import GameNight, Patron, Prompt, normalize_game_code
from gamenight.services.leaderboard import game_night_leaderboard, patron_points_for_prompt, patron_total
from gamenight.socketio_events import broadcast_state_update
from gamenight.api.common import audit_sink, int_field, json_body, now, prompt_actions, prompt_to_dict

patrons = Blueprint('patrons', __name__)

MAX_NICKNAME_LENGTH = 64


def _game_night_by_code(game_code) -> GameNight:
    game_night = GameNight.query.filter_by(code=normalize_game_code(game_code)).first()
    if not game_night:
        raise GameNightNotFound(f'Join code {normalize_game_code(game_code)} not found')
    return game_night


@patrons.route('/nights/<string:game_code>', methods=['GET'])
def get_game_night(game_code):
    return jsonify(_game_night_by_code(game_code).to_dict())


@patrons.route('/nights/<string:game_code>/join', methods=['POST'])
def join_game_night(game_code):
    game_night = _game_night_by_code(game_code)
    if game_night.status != 'active':
        raise StateConflict('This game night has ended')

    data = json_body()
    nickname = (data.get('nickname') or '').strip()
    if not nickname:
        raise ValidationError('Nickname is required')
    if len(nickname) > MAX_NICKNAME_LENGTH:
        raise ValidationError(f'Nickname must be at most {MAX_NICKNAME_LENGTH} characters')

    patron = Patron(game_night_id=game_night.id, nickname=nickname)
    db.session.add(patron)
    db.session.commit()
    current_app.logger.info(f"[patron-join] game_night={game_night.id} patron={patron.id}")

    audit_sink().log_event('patron_joined', {
        'patronId': patron.id,
        'nickname': nickname,
        'joinCode': game_night.code,
        'client': data.get('client'),
        'joinedAt': now().isoformat(),
    }, game_night_id=game_night.id)
    broadcast_state_update(game_night.code)
    return jsonify(patron.to_dict()), 201


@patrons.route('/nights/<string:game_code>/current', methods=['GET'])
def current_prompt(game_code):
    """
    Latest prompt for the night with its countdown, plus the asking
    patron's points when a patron_id is supplied.
    """
    game_night = _game_night_by_code(game_code)
    at = now()
    prompt = game_night.prompts.order_by(Prompt.created_at.desc(), Prompt.id.desc()).first()
    patron_id = request.args.get('patron_id', type=int)

    payload = {
        'game_night': game_night.to_dict(),
        'server_time': at.isoformat(),
        'prompt': prompt_to_dict(prompt, at) if prompt else None,
        'my_points': None,
        'my_total': None,
    }
    if patron_id is not None:
        payload['my_total'] = patron_total(game_night.id, patron_id)
        if prompt and prompt.state == 'resolved':
            payload['my_points'] = patron_points_for_prompt(prompt.id, patron_id) or 0
    return jsonify(payload)


@patrons.route('/prompts/<int:prompt_id>/submissions', methods=['POST'])
def submit_answer(prompt_id):
    data = json_body()
    patron_id = int_field(data, 'patron_id')
    option_id = int_field(data, 'option_id')
    submission = prompt_actions().submit_answer(prompt_id, patron_id, option_id)

    prompt = db.session.get(Prompt, prompt_id)
    broadcast_state_update(prompt.game_night.code, prompt_id=prompt.id)
    return jsonify({
        'message': 'Answer submitted',
        'prompt_id': prompt_id,
        'option_id': submission.option_id,
        'submitted_at': submission.created_at.isoformat(),
    }), 201


@patrons.route('/nights/<string:game_code>/leaderboard', methods=['GET'])
def leaderboard(game_code):
    game_night = _game_night_by_code(game_code)
    limit = request.args.get('limit', type=int)
    return jsonify(game_night_leaderboard(game_night.id, limit=limit))
