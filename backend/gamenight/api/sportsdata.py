from flask import Blueprint, jsonify, current_app
from gamenight.errors import FeedUnavailable
from gamenight.services.sportsdata import SOURCE_LIVE, SOURCE_REPLAY, SportsDataClient

sportsdata = Blueprint('sportsdata', __name__)


def _client() -> SportsDataClient:
    return SportsDataClient.from_config(
        current_app.config,
        transport=current_app.config.get('SPORTSDATAIO_TRANSPORT'),
    )


def _play_by_play(game_id, source):
    try:
        return jsonify(_client().fetch_nba_play_by_play(game_id, source=source))
    except FeedUnavailable as exc:
        return jsonify({
            'error': f'SPORTSDATAIO_{source.upper()}_FAILED',
            'message': exc.message,
        }), 502


@sportsdata.route('/live/nba/pbp/<string:game_id>', methods=['GET'])
def live_nba_play_by_play(game_id):
    return _play_by_play(game_id, SOURCE_LIVE)


@sportsdata.route('/replay/nba/pbp/<string:game_id>', methods=['GET'])
def replay_nba_play_by_play(game_id):
    return _play_by_play(game_id, SOURCE_REPLAY)
