"""Side channel for outcome notifications.

Delivery (push, email) lives outside this service. Collaborators register a
callback per kind; every publish also goes out over Socket.IO to the squad's
room so connected clients refresh without polling.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List

from flask import current_app

from verdict import socketio


OUTCOME_FINALIZED = 'outcome_finalized'
OUTCOME_OVERTURNED = 'outcome_overturned'
OUTCOME_APPROVED = 'outcome_approved'

KINDS = (OUTCOME_FINALIZED, OUTCOME_OVERTURNED, OUTCOME_APPROVED)

Listener = Callable[[Dict[str, Any]], None]

_listeners: Dict[str, List[Listener]] = defaultdict(list)


def subscribe(kind: str, callback: Listener) -> None:
    if kind not in KINDS:
        raise ValueError(f"Unknown notification kind: {kind}")
    if callback not in _listeners[kind]:
        _listeners[kind].append(callback)


def unsubscribe(kind: str, callback: Listener) -> None:
    try:
        _listeners[kind].remove(callback)
    except ValueError:
        pass


def clear_listeners() -> None:
    _listeners.clear()


def squad_room(squad_id: int) -> str:
    return f"squad:{squad_id}"


def publish(kind: str, payload: Dict[str, Any]) -> None:
    """Notify listeners and connected clients. Call only after commit."""
    for callback in list(_listeners.get(kind, [])):
        try:
            callback(payload)
        except Exception:
            # Outcome is already committed
            current_app.logger.exception(f"[notify-fail] kind={kind} listener={getattr(callback, '__name__', callback)}")

    squad_id = payload.get('squad_id')
    if squad_id is not None:
        socketio.emit(kind, payload, to=squad_room(squad_id), namespace='/ws')
    current_app.logger.info(f"[notify] kind={kind} event={payload.get('event_id')} squad={squad_id}")
