from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import json
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from gamepanel.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from gamepanel.main import main
    flask_app.register_blueprint(main)

    from gamepanel.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api')

    from gamepanel.api.participants import participants
    flask_app.register_blueprint(participants, url_prefix='/api/participants')

    # Register Socket.IO event handlers
    from gamepanel.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and installs the default game state."""
        from gamepanel.services.engine import get_or_create_state
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            get_or_create_state()
            print('Database has been reset!')

    @click.command('seed-participants')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def seed_participants_command(path):
        """Loads participants from a JSON list, skipping known roll numbers."""
        from gamepanel.services.roster import seed_participants
        with open(path, encoding='utf-8') as fh:
            rows = json.load(fh)
        with flask_app.app_context():
            created, skipped = seed_participants(rows)
            print(f'Seeded {created} participants ({skipped} skipped)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_participants_command)

    return flask_app
