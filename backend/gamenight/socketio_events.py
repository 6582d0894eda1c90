from flask_socketio import join_room, leave_room, emit
from gamenight import socketio
from gamenight.models import normalize_game_code


def room_for(game_code: str) -> str:
    return f"game_night:{normalize_game_code(game_code)}"


def broadcast_state_update(game_code: str, **extra) -> None:
    """Tell every client watching a game night to re-fetch its state."""
    payload = {'game_code': normalize_game_code(game_code)}
    payload.update(extra)
    socketio.emit('state_update', payload, to=room_for(game_code), namespace='/ws')


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_game_night(data):
    game_code = normalize_game_code((data or {}).get('game_code'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = room_for(game_code)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_game_night(data):
    game_code = normalize_game_code((data or {}).get('game_code'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = room_for(game_code)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_game_night', handle_join_game_night, namespace='/ws')
    socketio.on_event('leave_game_night', handle_leave_game_night, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_game_night', handle_join_game_night, namespace='/')
        socketio.on_event('leave_game_night', handle_leave_game_night, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
