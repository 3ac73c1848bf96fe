from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import OperationalError
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('ALLOWED_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from titleparty.routes import main
    flask_app.register_blueprint(main)

    from titleparty.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from titleparty.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from titleparty.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(OperationalError)
    def handle_storage_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[storage] unavailable: {exc}")
        return jsonify({'error': 'Storage unavailable', 'kind': 'storage_unavailable'}), 503

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from titleparty.catalog import seed_catalog
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            cards, themes = seed_catalog(db.session)
            print(f'Database has been reset and seeded with {cards} cards and {themes} themes!')

    @click.command('seed-catalog')
    def seed_catalog_command():
        """Adds any missing default word cards and themes."""
        from titleparty.catalog import seed_catalog
        with flask_app.app_context():
            cards, themes = seed_catalog(db.session)
            print(f'Added {cards} cards and {themes} themes.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_catalog_command)

    return flask_app
