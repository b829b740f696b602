from unanimo.errors import PersistenceError


def _create(client, **payload):
    res = client.post('/api/games/create', json=payload)
    assert res.status_code == 201
    return res.get_json()['game_code']


def _join(client, code, name, **extra):
    return client.post('/api/games/join', json={'game_code': code, 'name': name, **extra})


def test_create_game(client):
    res = client.post('/api/games/create')
    assert res.status_code == 201
    data = res.get_json()
    assert len(data['game_code']) == 4
    assert data['state']['status'] == 'waiting'
    assert isinstance(data['server_now'], int)


def test_create_with_code_and_settings(client):
    code = _create(client, game_code='abcd', category='transporte', total_rounds=2, round_duration=30_000)
    assert code == 'ABCD'
    state = client.get(f'/api/games/{code}/state').get_json()['state']
    assert state['selected_category'] == 'TRANSPORTE'
    assert state['total_rounds'] == 2
    assert state['round_duration'] == 30_000
    assert 'round_context' not in state

    res = client.post('/api/games/create', json={'game_code': 'ABCD'})
    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_join_and_state(client):
    code = _create(client)
    res = _join(client, code, 'Alice')
    assert res.status_code == 201
    player_id = res.get_json()['player_id']
    assert player_id

    # same player id again is a reconnect
    res = _join(client, code, 'Alice', player_id=player_id)
    assert res.status_code == 200

    game = client.get(f'/api/games/{code}/state').get_json()['state']
    assert game['game_id'] == code
    assert game['players'][player_id]['name'] == 'Alice'


def test_join_errors(client):
    assert client.post('/api/games/join', json={'name': 'Alice'}).status_code == 400
    assert _join(client, 'ZZZZ', 'Alice').status_code == 404
    code = _create(client)
    assert _join(client, code, 'A').status_code == 400
    assert client.get('/api/games/ZZZZ/state').status_code == 404


def test_time_and_categories(client):
    data = client.get('/api/games/time').get_json()
    assert data['server_now'] > 0
    categories = client.get('/api/games/categories').get_json()['categories']
    assert categories == ['TRANSPORTE', 'CIELO', 'SENTIMIENTOS']


def test_full_round_flow(client):
    code = _create(client, category='TRANSPORTE', total_rounds=1)
    ana = _join(client, code, 'Ana', player_id='ana').get_json()['player_id']
    beto = _join(client, code, 'Beto', player_id='beto').get_json()['player_id']

    started = client.post(f'/api/games/{code}/start', json={'player_id': ana}).get_json()['state']
    assert started['status'] == 'playing'
    assert started['round'] == 1
    assert started['current_prompt'] == 'Cosas con ruedas'
    assert started['round_ends_at'] - started['round_starts_at'] == started['round_duration']

    res = client.post(f'/api/games/{code}/answers', json={'player_id': ana, 'words': ['Auto', 'Tren']})
    assert res.status_code == 200
    client.post(f'/api/games/{code}/answers', json={'player_id': beto, 'words': ['carro'], 'forced_pass': True})

    seen_by_ana = client.get(f'/api/games/{code}/state', query_string={'player_id': ana}).get_json()['state']
    assert seen_by_ana['players'][ana]['current_answers'] == ['Auto', 'Tren']
    assert seen_by_ana['players'][beto]['current_answers'] == []
    assert seen_by_ana['players'][beto]['answer_count'] == 1
    assert seen_by_ana['players'][beto]['status'] == 'ready'

    ended = client.post(f'/api/games/{code}/end', json={'round': 1}).get_json()['state']
    assert ended['status'] == 'finished'
    assert ended['players'][ana]['score'] == 1
    assert ended['players'][beto]['score'] == 1
    assert ended['players'][beto]['round_results']['answers'][0]['matches'][0]['type'] == 'SYNONYM'
    assert ended['round_top_words'][0]['word'] == 'AUTO'

    # a second end for the same round is rejected and changes nothing
    res = client.post(f'/api/games/{code}/end', json={'round': 1})
    assert res.status_code == 409

    reset = client.post(f'/api/games/{code}/reset').get_json()['state']
    assert reset['status'] == 'waiting'
    assert reset['players'][ana]['score'] == 0


def test_start_needs_enough_players(client):
    code = _create(client)
    _join(client, code, 'Ana')
    res = client.post(f'/api/games/{code}/start')
    assert res.status_code == 409
    assert 'error' in res.get_json()


def test_answers_require_player(client):
    code = _create(client)
    assert client.post(f'/api/games/{code}/answers', json={'words': ['Auto']}).status_code == 400
    assert client.post(f'/api/games/{code}/answers', json={'player_id': 'x', 'words': 5}).status_code == 400


def test_leave_and_rejoin(client):
    code = _create(client)
    pid = _join(client, code, 'Ana').get_json()['player_id']
    state = client.post(f'/api/games/{code}/leave', json={'player_id': pid}).get_json()['state']
    assert state['players'][pid]['disconnected'] is True
    res = _join(client, code, 'Ana', player_id=pid)
    assert res.status_code == 200
    assert res.get_json()['state']['players'][pid]['disconnected'] is False


def test_config_category_and_player_updates(client):
    code = _create(client)
    pid = _join(client, code, 'Ana').get_json()['player_id']

    state = client.post(f'/api/games/{code}/config', json={'max_players': 4, 'total_rounds': 5}).get_json()['state']
    assert state['max_players'] == 4
    assert state['total_rounds'] == 5
    assert client.post(f'/api/games/{code}/config', json={'min_players': 6, 'max_players': 4}).status_code == 400

    state = client.post(f'/api/games/{code}/category', json={'category': 'cielo'}).get_json()['state']
    assert state['selected_category'] == 'CIELO'
    assert client.post(f'/api/games/{code}/category', json={'category': 'nope'}).status_code == 400

    state = client.post(f'/api/games/{code}/players/{pid}', json={'color': '#123456,#abcdef'}).get_json()['state']
    assert state['players'][pid]['color'] == '#123456,#ABCDEF'
    assert client.post(f'/api/games/{code}/players/ghost', json={'name': 'Nadie'}).status_code == 404


def test_timer_update(client):
    code = _create(client, category='CIELO')
    _join(client, code, 'Ana')
    _join(client, code, 'Beto')
    assert client.post(f'/api/games/{code}/timer', json={'round_ends_at': 1}).status_code == 409

    state = client.post(f'/api/games/{code}/start').get_json()['state']
    assert client.post(f'/api/games/{code}/timer', json={}).status_code == 400
    new_end = state['round_starts_at'] + 20_000
    state = client.post(f'/api/games/{code}/timer', json={'round_ends_at': new_end}).get_json()['state']
    assert state['round_ends_at'] == new_end
    assert state['round_duration'] == 20_000


def test_close_game(client):
    code = _create(client)
    state = client.post(f'/api/games/{code}/close').get_json()['state']
    assert state['status'] == 'closed'
    assert _join(client, code, 'Ana').status_code == 409


def test_persistence_failure_is_retryable(flask_app, client, monkeypatch):
    code = _create(client)
    lifecycle = flask_app.extensions['unanimo.lifecycle']

    def failing_save(session):
        raise PersistenceError('Session was modified concurrently; reload and retry')

    monkeypatch.setattr(lifecycle.store, 'save', failing_save)
    res = _join(client, code, 'Ana')
    assert res.status_code == 503
    assert res.get_json() == {
        'error': 'Session was modified concurrently; reload and retry',
        'retryable': True,
    }
