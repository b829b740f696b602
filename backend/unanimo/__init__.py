import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    flask_app.logger.setLevel(level)
    logging.getLogger('unanimo').setLevel(level)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Ensure models are registered before the stores touch them
    from unanimo import models  # noqa: F401
    from unanimo.services.games.content import SqlContentProvider
    from unanimo.services.games.lifecycle import RoundLifecycle
    from unanimo.services.games.settings import GameSettings
    from unanimo.services.games.store import InMemorySessionStore, SqlSessionStore
    from unanimo.socketio_events import SocketIONotifier, register_socketio_handlers

    if flask_app.config.get('SESSION_STORE', 'sql') == 'memory':
        store = InMemorySessionStore()
    else:
        store = SqlSessionStore()
    flask_app.extensions['unanimo.lifecycle'] = RoundLifecycle(
        store=store,
        content=SqlContentProvider(),
        settings=GameSettings.from_config(flask_app.config),
        notify=SocketIONotifier(),
    )

    from unanimo.routes import main
    flask_app.register_blueprint(main)

    from unanimo.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    @click.argument('corpus_path', required=False)
    def db_reset_command(corpus_path):
        """Drops, recreates, and seeds the database."""
        from unanimo.services.games.content import load_corpus_file, seed_corpus
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            corpus = load_corpus_file(corpus_path) if corpus_path else DEFAULT_CORPUS
            added = seed_corpus(corpus)
            print(f'Database has been reset and seeded with {added} prompts!')

    @click.command('seed-content')
    @click.argument('corpus_path')
    def seed_content_command(corpus_path):
        """Adds the prompts of a corpus JSON file to the content tables."""
        from unanimo.services.games.content import load_corpus_file, seed_corpus
        with flask_app.app_context():
            added = seed_corpus(load_corpus_file(corpus_path))
            print(f'Added {added} prompts.')

    @click.command('purge-sessions')
    def purge_sessions_command():
        """Deletes closed sessions and sessions idle past SESSION_MAX_AGE_SEC."""
        with flask_app.app_context():
            max_age_ms = int(flask_app.config.get('SESSION_MAX_AGE_SEC', 86400)) * 1000
            removed = flask_app.extensions['unanimo.lifecycle'].purge(max_age_ms)
            print(f'Removed {removed} sessions.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_content_command)
    flask_app.cli.add_command(purge_sessions_command)

    return flask_app


DEFAULT_CORPUS = {
    'ANIMALES': [
        {'Animales de granja': ['VACA', 'CERDO|CHANCHO|PUERCO', 'GALLINA|POLLO', 'CABALLO|YEGUA', 'OVEJA|CORDERO', 'GATO', 'PERRO']},
        {'Animales de la selva': ['LEON', 'TIGRE', 'MONO|SIMIO', 'JIRAFA', 'ELEFANTE', 'SERPIENTE|VIBORA']},
    ],
    'TRANSPORTE': [
        {'Cosas con ruedas': ['AUTO|CARRO|COCHE', 'BICICLETA|BICI', 'MOTO|MOTOCICLETA', 'CAMION', 'TREN', 'PATINETA']},
    ],
    'COCINA': [
        {'Cosas que hay en una cocina': ['OLLA', 'SARTEN', 'CUCHILLO', 'HORNO', 'HELADERA|NEVERA|REFRIGERADOR', 'PLATO']},
        {'Sentimientos despues de cocinar': ['PENA.', 'ORGULLO', 'CANSANCIO', 'HAMBRE', 'ALEGRIA|FELICIDAD']},
    ],
}
