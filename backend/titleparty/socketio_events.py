from flask import current_app
from flask_socketio import join_room, leave_room, emit
from titleparty.models import Room


def _room_channel(room_code: str) -> str:
    return f"room:{room_code}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Nothing is bound to the socket: hands, scores and votes stay with the
    # player id and come back on the next state fetch.
    current_app.logger.info('[ws] disconnect')


def handle_join_room(data):
    room_code = ((data or {}).get('room_code') or '').strip().upper()
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    if not Room.query.filter_by(room_code=room_code).first():
        emit('error', {'message': 'Room not found'})
        return
    channel = _room_channel(room_code)
    join_room(channel)
    emit('joined', {'room': channel, 'room_code': room_code})


def handle_leave_room(data):
    room_code = ((data or {}).get('room_code') or '').strip().upper()
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    channel = _room_channel(room_code)
    leave_room(channel)
    emit('left', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from titleparty import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_room', handle_join_room, namespace=namespace)
        socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
