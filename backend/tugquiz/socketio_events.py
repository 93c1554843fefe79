from flask import current_app, request
from flask_login import current_user
from flask_socketio import join_room, leave_room, emit
from typing import Dict, Set

from tugquiz import socketio
from tugquiz.errors import AuthorizationError, NotFoundError, QuizError
from tugquiz.services import get_services
from tugquiz.services.broadcast import room_for
from tugquiz.services.games.validation import parse_id

# socket id -> session ids it is subscribed to
_sid_to_sessions: Dict[str, Set[int]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _session_id_from(data):
    return parse_id((data or {}).get('sessionId'), 'sessionId')


def handle_connect(*args):
    emit('connected', {'message': 'Connected to the session channel'})


def handle_disconnect(*args):
    # Rooms are dropped by Socket.IO itself; only forget our bookkeeping
    subscribed = _sid_to_sessions.pop(_get_sid(), set())
    if subscribed:
        current_app.logger.info(f"[ws-disconnect] sid={_get_sid()} sessions={sorted(subscribed)}")


def _authorize_subscription(session_id):
    """Only the owning teacher and the session's participants may listen."""
    if not current_user.is_authenticated:
        raise AuthorizationError('Login required', reason='AuthenticationRequired')
    session = get_services().store.get(session_id)
    if session is None:
        raise NotFoundError('Session not found', reason='SessionNotFound')
    if session.teacher_id != current_user.id and session.participant_for(current_user.id) is None:
        raise AuthorizationError('You are not a participant in this session', reason='NotAParticipant')


def handle_join_session(data):
    try:
        session_id = _session_id_from(data)
        _authorize_subscription(session_id)
    except QuizError as exc:
        current_app.logger.info(f"[ws-join-rejected] sid={_get_sid()} reason={exc.reason}")
        emit('error', exc.to_dict())
        return
    room = room_for(session_id)
    join_room(room)
    _sid_to_sessions.setdefault(_get_sid(), set()).add(session_id)
    emit('joined', {'room': room, 'sessionId': session_id})


def handle_leave_session(data):
    try:
        session_id = _session_id_from(data)
    except QuizError as exc:
        emit('error', exc.to_dict())
        return
    room = room_for(session_id)
    leave_room(room)
    _sid_to_sessions.get(_get_sid(), set()).discard(session_id)
    emit('left', {'room': room, 'sessionId': session_id})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register the session channel handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join_session', handle_join_session, namespace=namespace)
    socketio.on_event('leave_session', handle_leave_session, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
