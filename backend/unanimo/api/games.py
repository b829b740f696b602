import uuid

from flask import Blueprint, jsonify, request, current_app

from unanimo.errors import GameError, ValidationError
from unanimo.services.games.clock import now_ms
from unanimo.services.games.scheduler import schedule_round_expiry

games = Blueprint('games', __name__)

CONFIG_KEYS = (
    'total_rounds',
    'round_duration',
    'countdown_duration',
    'min_players',
    'max_players',
    'max_words_per_player',
    'max_word_length',
    'hurry_up_threshold',
)


def _lifecycle():
    return current_app.extensions['unanimo.lifecycle']


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _state_response(session, viewer_id=None, status=200, **extra):
    body = {'server_now': now_ms(), 'state': session.public_dict(viewer_id)}
    body.update(extra)
    return jsonify(body), status


@games.errorhandler(GameError)
def handle_game_error(exc):
    current_app.logger.info(f"[api-error] path={request.path} status={exc.status_code} error={exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


@games.route('/create', methods=['POST'])
def create_game():
    data = _payload()
    config = {key: data.get(key) for key in CONFIG_KEYS if data.get(key) is not None}
    session = _lifecycle().create_session(
        session_id=data.get('game_code'),
        category=data.get('category'),
        **config,
    )
    return _state_response(session, status=201, game_code=session.id)


@games.route('/join', methods=['POST'])
def join_game():
    data = _payload()
    game_code = data.get('game_code')
    if not game_code:
        raise ValidationError('Game code is required')
    player_id = str(data.get('player_id') or '').strip() or uuid.uuid4().hex[:8]
    session, created = _lifecycle().join(game_code, player_id, data.get('name'), color=data.get('color'))
    return _state_response(session, player_id, status=201 if created else 200, player_id=player_id)


@games.route('/time', methods=['GET'])
def server_time():
    return jsonify({'server_now': now_ms()})


@games.route('/categories', methods=['GET'])
def list_categories():
    return jsonify({'categories': list(_lifecycle().list_categories())})


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    player_id = request.args.get('player_id')
    session = _lifecycle().get_state(game_code)
    return _state_response(session, player_id)


@games.route('/<string:game_code>/start', methods=['POST'])
def start_round(game_code):
    data = _payload()
    session = _lifecycle().start_round(
        game_code,
        category=data.get('category'),
        duration=data.get('round_duration'),
        total_rounds=data.get('total_rounds'),
    )
    schedule_round_expiry(current_app._get_current_object(), session.id, session.round, session.round_ends_at)
    return _state_response(session, data.get('player_id'))


@games.route('/<string:game_code>/answers', methods=['POST'])
def submit_answers(game_code):
    data = _payload()
    player_id = data.get('player_id')
    if not player_id:
        raise ValidationError('player_id is required')
    words = data.get('words')
    if words is not None and not isinstance(words, (list, str)):
        raise ValidationError('words must be a list of strings')
    session = _lifecycle().submit_answers(
        game_code,
        player_id,
        words,
        forced_pass=bool(data.get('forced_pass')),
    )
    return _state_response(session, player_id)


@games.route('/<string:game_code>/end', methods=['POST'])
def end_round(game_code):
    data = _payload()
    session = _lifecycle().end_round(game_code, expected_round=data.get('round'))
    return _state_response(session, data.get('player_id'))


@games.route('/<string:game_code>/leave', methods=['POST'])
def leave_game(game_code):
    data = _payload()
    player_id = data.get('player_id')
    if not player_id:
        raise ValidationError('player_id is required')
    session = _lifecycle().leave(game_code, player_id)
    return _state_response(session, player_id)


@games.route('/<string:game_code>/reset', methods=['POST'])
def reset_game(game_code):
    session = _lifecycle().reset(game_code)
    return _state_response(session, _payload().get('player_id'))


@games.route('/<string:game_code>/close', methods=['POST'])
def close_game(game_code):
    session = _lifecycle().close(game_code)
    return _state_response(session)


@games.route('/<string:game_code>/category', methods=['POST'])
def set_category(game_code):
    data = _payload()
    session = _lifecycle().set_category(game_code, data.get('category'))
    return _state_response(session, data.get('player_id'))


@games.route('/<string:game_code>/config', methods=['POST'])
def update_config(game_code):
    data = _payload()
    changes = {key: data.get(key) for key in CONFIG_KEYS if data.get(key) is not None}
    session = _lifecycle().update_config(game_code, **changes)
    return _state_response(session, data.get('player_id'))


@games.route('/<string:game_code>/timer', methods=['POST'])
def update_timer(game_code):
    data = _payload()
    if data.get('round_ends_at') is None:
        raise ValidationError('round_ends_at is required')
    session = _lifecycle().update_round_timer(game_code, data.get('round_ends_at'))
    schedule_round_expiry(current_app._get_current_object(), session.id, session.round, session.round_ends_at)
    return _state_response(session, data.get('player_id'))


@games.route('/<string:game_code>/players/<string:player_id>', methods=['POST'])
def update_player(game_code, player_id):
    data = _payload()
    session = _lifecycle().update_player(game_code, player_id, name=data.get('name'), color=data.get('color'))
    return _state_response(session, player_id)
