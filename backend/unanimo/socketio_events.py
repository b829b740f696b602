from flask_socketio import join_room, leave_room, emit
from unanimo import socketio
from flask import current_app, request
from unanimo.errors import GameError
from unanimo.services.games.clock import now_ms
from unanimo.services.games.lifecycle import EVENT_CLOSED
from unanimo.services.games.state import normalize_code
from typing import Dict, Any
import time


class SocketIONotifier:
    """Lifecycle notifier that fans state changes out to the game room."""

    namespace = '/ws'

    def __call__(self, session_id: str, event: str) -> None:
        room = f"game:{session_id}"
        socketio.emit('state_update', {'game_code': session_id, 'event': event}, to=room, namespace=self.namespace)
        if event == EVENT_CLOSED:
            socketio.emit('session_ended', {'game_code': session_id}, to=room, namespace=self.namespace)


def _lifecycle():
    return current_app.extensions['unanimo.lifecycle']


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws', 'server_now': now_ms()})


def handle_disconnect(reason=None):
    # On disconnect, if this socket was a host for a room and no other
    # host remains, end the session for that game code
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    game_code = ctx.get('game_code')
    player_id = ctx.get('player_id')
    if player_id and not ctx.get('is_session_owner'):
        try:
            _lifecycle().leave(game_code, player_id)
        except GameError as exc:
            current_app.logger.info(f"[ws-disconnect] game={game_code} player={player_id} error={exc.message}")
    if ctx.get('is_session_owner') and game_code:
        _owner_count[game_code] = max(0, _owner_count.get(game_code, 0) - 1)
        # In tests, end immediately for determinism; in prod, allow grace period
        if current_app.config.get('TESTING'):
            if _owner_count.get(game_code, 0) == 0:
                _end_session(game_code)
            return
        _schedule_end_if_no_owner(game_code, float(current_app.config.get('OWNER_GRACE_SEC', 2)))


def handle_join_game(data):
    data = data or {}
    game_code = normalize_code(data.get('game_code'))
    player_id = str(data.get('player_id') or '').strip() or None
    is_session_owner = bool(data.get('is_session_owner'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    try:
        session = _lifecycle().get_state(game_code)
        if player_id:
            if session.get_player(player_id) is None:
                emit('error', {'message': 'Player not found'})
                return
            # Known player on a new socket: re-associate
            _lifecycle().reconnect(game_code, player_id)
    except GameError as exc:
        emit('error', {'message': exc.message})
        return
    room = f"game:{game_code}"
    join_room(room)
    # Track session owner presence and socket context
    _sid_to_ctx[_get_sid()] = {'game_code': game_code, 'player_id': player_id, 'is_session_owner': is_session_owner}
    if is_session_owner:
        _owner_count[game_code] = _owner_count.get(game_code, 0) + 1
        _cancel_scheduled_end(game_code)
    emit('joined', {'room': room, 'server_now': now_ms()})


def handle_leave_game(data):
    game_code = normalize_code((data or {}).get('game_code'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = f"game:{game_code}"
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or ctx.get('game_code') != game_code:
        return
    if ctx.get('is_session_owner'):
        # Explicit quit: end immediately
        _owner_count[game_code] = max(0, _owner_count.get(game_code, 0) - 1)
        _end_session(game_code)
    elif ctx.get('player_id'):
        try:
            _lifecycle().leave(game_code, ctx['player_id'])
        except GameError as exc:
            emit('error', {'message': exc.message})


def handle_ping(data):
    payload = dict(data) if isinstance(data, dict) else {}
    payload['server_now'] = now_ms()
    emit('pong', payload)

# ---- Session owner lifecycle helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_owner_count: Dict[str, int] = {}
_end_deadline: Dict[str, float] = {}

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _end_session(game_code: str) -> None:
    """Close the session (clients get ``session_ended``) and drop it from the store."""
    lifecycle = _lifecycle()
    try:
        lifecycle.close(game_code)
        lifecycle.discard(game_code)
    except GameError as exc:
        current_app.logger.info(f"[session-end] game={game_code} error={exc.message}")
    finally:
        _owner_count.pop(game_code, None)
        _end_deadline.pop(game_code, None)

def _schedule_end_if_no_owner(game_code: str, delay_sec: float = 2.0) -> None:
    if _owner_count.get(game_code, 0) > 0:
        return
    _end_deadline[game_code] = time.time() + delay_sec
    app = current_app._get_current_object()

    def _runner(code: str, deadline: float):
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            time.sleep(sleep_for)
        if _owner_count.get(code, 0) == 0 and _end_deadline.get(code) == deadline:
            with app.app_context():
                _end_session(code)

    socketio.start_background_task(_runner, game_code, _end_deadline[game_code])

def _cancel_scheduled_end(game_code: str) -> None:
    _end_deadline.pop(game_code, None)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    # Primary namespace
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_game', handle_join_game, namespace='/ws')
    socketio.on_event('leave_game', handle_leave_game, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_game', handle_join_game, namespace='/')
        socketio.on_event('leave_game', handle_leave_game, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
