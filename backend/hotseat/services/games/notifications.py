"""Broadcasts to every client watching a room.

Row changes are announced here rather than through the database, and some
events (slideshow position, player departure) have no row at all.
"""

from typing import Any, Dict

from hotseat import socketio

NAMESPACE = '/ws'


def room_channel(room_code: str) -> str:
    return f"room:{room_code.upper()}"


def publish(room_code: str, event: str, payload: Dict[str, Any]) -> None:
    socketio.emit(event, payload, to=room_channel(room_code), namespace=NAMESPACE)


def publish_state(room_code: str, **extra: Any) -> None:
    """Tell clients to re-fetch the room state."""
    publish(room_code, 'state_update', {'room_code': room_code, **extra})
