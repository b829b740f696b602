from unanimo.services.games import scheduler


def _ready_game(client, total_rounds=2):
    code = client.post('/api/games/create', json={'category': 'CIELO', 'total_rounds': total_rounds}).get_json()['game_code']
    client.post('/api/games/join', json={'game_code': code, 'name': 'Ana', 'player_id': 'ana'})
    client.post('/api/games/join', json={'game_code': code, 'name': 'Beto', 'player_id': 'beto'})
    return code


def test_scheduler_is_off_in_tests_by_default(client):
    code = _ready_game(client)
    client.post(f'/api/games/{code}/start')
    state = client.get(f'/api/games/{code}/state').get_json()['state']
    assert state['status'] == 'playing'


def test_expired_round_is_ended_by_the_server(flask_app, client, monkeypatch):
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    slept = []
    monkeypatch.setattr(scheduler.time, 'sleep', slept.append)

    code = _ready_game(client)
    started = client.post(f'/api/games/{code}/start').get_json()['state']
    assert started['status'] == 'playing'

    state = client.get(f'/api/games/{code}/state').get_json()['state']
    assert state['status'] == 'round_ended'
    assert state['round'] == 1
    assert len(state['round_history']) == 1
    assert slept and slept[0] > 0


def test_stale_timer_does_not_end_next_round(flask_app, client):
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    lifecycle = flask_app.extensions['unanimo.lifecycle']
    code = _ready_game(client)

    flask_app.config['AUTO_END_ROUNDS'] = False
    lifecycle.start_round(code)
    lifecycle.end_round(code)
    session = lifecycle.start_round(code)
    flask_app.config['AUTO_END_ROUNDS'] = True

    # a timer for round 1 fires while round 2 is running
    scheduler.schedule_round_expiry(flask_app, code, 1, ends_at=0)
    state = lifecycle.get_state(code)
    assert state.status == 'playing'
    assert state.round == session.round == 2


def test_disabled_auto_end(flask_app, client):
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    flask_app.config['AUTO_END_ROUNDS'] = False
    code = _ready_game(client)
    client.post(f'/api/games/{code}/start')
    state = client.get(f'/api/games/{code}/state').get_json()['state']
    assert state['status'] == 'playing'


def _capture_timers(flask_app, clock, monkeypatch):
    """Queue timers instead of running them, with the lifecycle on the fake clock."""
    tasks = []
    monkeypatch.setitem(flask_app.config, 'TESTING', False)
    monkeypatch.setattr(scheduler, '_scheduled_round_keys', set())
    monkeypatch.setattr(scheduler.socketio, 'start_background_task', lambda fn, *args: tasks.append((fn, args)))
    monkeypatch.setattr(scheduler.time, 'sleep', lambda seconds: None)
    lifecycle = flask_app.extensions['unanimo.lifecycle']
    monkeypatch.setattr(lifecycle, 'clock', clock)
    return lifecycle, tasks


def _arm(flask_app, session):
    scheduler.schedule_round_expiry(flask_app, session.id, session.round, session.round_ends_at)


def test_timer_from_before_reset_does_not_end_restarted_round(flask_app, clock, monkeypatch):
    lifecycle, tasks = _capture_timers(flask_app, clock, monkeypatch)
    code = lifecycle.create_session(category='CIELO', total_rounds=2).id
    lifecycle.join(code, 'ana', 'Ana')
    lifecycle.join(code, 'beto', 'Beto')

    _arm(flask_app, lifecycle.start_round(code))
    lifecycle.reset(code)
    clock.advance(5_000)
    restarted = lifecycle.start_round(code)
    _arm(flask_app, restarted)
    assert len(tasks) == 2

    # round 1 again, but armed for the old deadline
    stale_fn, stale_args = tasks[0]
    stale_fn(*stale_args)
    state = lifecycle.get_state(code)
    assert state.status == 'playing'
    assert state.round == 1
    assert state.round_ends_at == restarted.round_ends_at

    fresh_fn, fresh_args = tasks[1]
    fresh_fn(*fresh_args)
    state = lifecycle.get_state(code)
    assert state.status == 'round_ended'
    assert len(state.round_history) == 1
    assert scheduler._scheduled_round_keys == set()


def test_moved_deadline_leaves_old_timer_stale(flask_app, clock, monkeypatch):
    lifecycle, tasks = _capture_timers(flask_app, clock, monkeypatch)
    code = lifecycle.create_session(category='CIELO').id
    lifecycle.join(code, 'ana', 'Ana')
    lifecycle.join(code, 'beto', 'Beto')

    session = lifecycle.start_round(code)
    _arm(flask_app, session)
    moved = lifecycle.update_round_timer(code, session.round_ends_at + 30_000)
    _arm(flask_app, moved)
    assert len(tasks) == 2

    tasks[0][0](*tasks[0][1])
    assert lifecycle.get_state(code).status == 'playing'
    tasks[1][0](*tasks[1][1])
    assert lifecycle.get_state(code).status == 'round_ended'


def test_timer_endpoint_arms_a_new_timer(flask_app, client, clock, monkeypatch):
    lifecycle, tasks = _capture_timers(flask_app, clock, monkeypatch)
    code = _ready_game(client)
    session = lifecycle.start_round(code)
    resp = client.post(f'/api/games/{code}/timer', json={'round_ends_at': session.round_ends_at + 10_000})
    assert resp.status_code == 200
    assert len(tasks) == 1
    assert tasks[0][1] == (code, 1, session.round_ends_at + 10_000, session.round_ends_at + 10_000 + 2_000)
