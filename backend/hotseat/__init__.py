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
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Collaborators swapped out by tests
    from hotseat.services.games.scorer import GenerativeScorer
    from hotseat.services.games.selection import RandomChooser
    seed = flask_app.config.get('RANDOM_SEED')
    flask_app.extensions['hotseat.scorer'] = GenerativeScorer.from_config(flask_app.config)
    flask_app.extensions['hotseat.chooser'] = RandomChooser(int(seed) if seed not in (None, '') else None)

    from hotseat.main import main
    flask_app.register_blueprint(main)

    from hotseat.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api')

    from hotseat.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('cleanup-rooms')
    def cleanup_rooms_command():
        """Deletes expired rooms and everything in them."""
        from hotseat.services.games.rooms import cleanup_expired_rooms
        with flask_app.app_context():
            removed = cleanup_expired_rooms()
            print(f'Removed {removed} expired room(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(cleanup_rooms_command)

    return flask_app
