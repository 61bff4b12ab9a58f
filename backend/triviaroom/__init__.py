from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

SOCKET_NAMESPACE = '/ws'


def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from triviaroom.main import main
    flask_app.register_blueprint(main)

    from triviaroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # One engine per app; socket handlers and routes reach it through extensions
    from triviaroom.services.trivia import build_engine
    flask_app.extensions['trivia'] = build_engine(flask_app, socketio, scheduler=scheduler)

    from triviaroom.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from triviaroom.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-seed')
    def db_seed_command():
        """Drops, recreates, and seeds the question catalog."""
        from triviaroom.models import seed_default_set
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            question_set = seed_default_set(flask_app.config.get('DEFAULT_SET_NAME', 'Default Set'))
            print(f'Database has been reset and seeded with "{question_set.name}"!')

    flask_app.cli.add_command(db_seed_command)

    return flask_app
