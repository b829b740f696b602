import os
import random
import sys
import pytest

# Ensure the backend root (containing the `unanimo` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from unanimo import create_app, db, socketio
from unanimo.services.games.content import StaticContentProvider, seed_corpus
from unanimo.services.games.lifecycle import RoundLifecycle
from unanimo.services.games.store import InMemorySessionStore


TEST_CORPUS = {
    'TRANSPORTE': [
        {'Cosas con ruedas': ['AUTO|CARRO|COCHE', 'BICICLETA|BICI', 'CAMION', 'TREN']},
    ],
    'CIELO': [
        {'Cosas que vuelan': ['AVION', 'PAJARO|AVE', 'COHETE', 'HELICOPTERO']},
        {'Cosas que brillan': ['SOL', 'LUNA', 'ESTRELLA']},
    ],
    'SENTIMIENTOS': [
        {'Que sentis al perder': ['PENA.', 'TRISTEZA', 'BRONCA|ENOJO|IRA']},
    ],
}


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_STORE = 'sql'
    LOG_LEVEL = 'DEBUG'
    COUNTDOWN_SEC = 0


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        seed_corpus(TEST_CORPUS)
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def events():
    return []


@pytest.fixture()
def lifecycle(clock, events):
    content = StaticContentProvider(TEST_CORPUS, rng=random.Random(7))
    return RoundLifecycle(
        store=InMemorySessionStore(),
        content=content,
        notify=lambda session_id, event: events.append((session_id, event)),
        clock=clock,
    )


@pytest.fixture()
def lobby(lifecycle):
    """A waiting session with two players, ``p1`` (Ana) and ``p2`` (Beto)."""
    session = lifecycle.create_session('ROOM', category='TRANSPORTE', total_rounds=2)
    lifecycle.join(session.id, 'p1', 'Ana')
    lifecycle.join(session.id, 'p2', 'Beto')
    return session.id
