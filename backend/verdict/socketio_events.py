from flask_socketio import join_room, leave_room, emit
from verdict import socketio
from verdict.services.outcomes.notifications import squad_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _squad_id(data):
    try:
        return int((data or {}).get('squad_id'))
    except (TypeError, ValueError):
        return None


def handle_join_squad(data):
    squad_id = _squad_id(data)
    if squad_id is None:
        emit('error', {'message': 'squad_id is required'})
        return
    room = squad_room(squad_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_squad(data):
    squad_id = _squad_id(data)
    if squad_id is None:
        emit('error', {'message': 'squad_id is required'})
        return
    room = squad_room(squad_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_squad', handle_join_squad, namespace='/ws')
    socketio.on_event('leave_squad', handle_leave_squad, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')
