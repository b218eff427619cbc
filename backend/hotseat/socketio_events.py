from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from hotseat import socketio
from hotseat.errors import GameError
from hotseat.services.games.notifications import NAMESPACE, room_channel
from hotseat.services.games.rooms import delete_player
from typing import Dict, Any
import time


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A player whose socket drops is removed unless it rejoins within the grace period
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('player_id'):
        return
    player_id = ctx['player_id']
    app = current_app._get_current_object()
    if app.config.get('TESTING'):
        _remove_player(player_id)
        return
    _schedule_removal(app, player_id, float(app.config.get('DISCONNECT_GRACE_SEC', 5.0)))


def handle_join_room(data):
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    channel = room_channel(room_code)
    join_room(channel)
    try:
        player_id = int((data or {}).get('player_id'))
    except (TypeError, ValueError):
        player_id = None
    _sid_to_ctx[_get_sid()] = {'room_code': room_code.upper(), 'player_id': player_id}
    if player_id:
        _cancel_removal(player_id)
    emit('joined', {'room': channel})


def handle_leave_room(data):
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    channel = room_channel(room_code)
    leave_room(channel)
    _sid_to_ctx.pop(_get_sid(), None)
    emit('left', {'room': channel})


def handle_slide_change(data):
    # Slideshow position has no row; relay it to everyone else in the room
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    emit('slide_change', {'index': (data or {}).get('index', 0)}, to=room_channel(room_code), include_self=False)


def handle_ping(data):
    emit('pong', data or {})

# ---- Disconnect grace helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_removal_deadline: Dict[Any, float] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _remove_player(player_id) -> None:
    try:
        delete_player(player_id)
    except GameError as exc:
        current_app.logger.info(f"[disconnect] player={player_id} not removed: {exc.message}")


def _schedule_removal(app, player_id, delay_sec: float) -> None:
    deadline = time.time() + delay_sec
    _removal_deadline[player_id] = deadline
    app.logger.info(f"[disconnect] player={player_id} removal in {delay_sec}s")

    def _runner(pid, expected: float):
        time.sleep(max(0.0, expected - time.time()))
        if _removal_deadline.get(pid) != expected:
            return
        _removal_deadline.pop(pid, None)
        with app.app_context():
            _remove_player(pid)

    socketio.start_background_task(_runner, player_id, deadline)


def _cancel_removal(player_id) -> None:
    _removal_deadline.pop(player_id, None)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_room', handle_join_room, namespace=namespace)
        socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
        socketio.on_event('slide_change', handle_slide_change, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
