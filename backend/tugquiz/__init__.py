from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import OperationalError
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def register_error_handlers(flask_app):
    from tugquiz.errors import QuizError, StoreUnavailableError

    @flask_app.errorhandler(QuizError)
    def handle_quiz_error(exc):
        flask_app.logger.info(f"[rejected] reason={exc.reason} status={exc.status_code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(OperationalError)
    def handle_store_unavailable(exc):
        flask_app.logger.error(f"[store-unavailable] {exc}")
        err = StoreUnavailableError('Session store unavailable')
        return jsonify(err.to_dict()), err.status_code

    @flask_app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({'success': False, 'error': 'NotFound', 'message': 'Resource not found'}), 404


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    from tugquiz.logging_config import configure_logging
    configure_logging(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from tugquiz.main import main
    flask_app.register_blueprint(main, url_prefix='/api/auth')

    from tugquiz.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from tugquiz.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/game')

    from tugquiz.services import init_services
    init_services(flask_app, db, socketio)

    from tugquiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'))

    register_error_handlers(flask_app)

    # Flask-Login user loader
    from tugquiz.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'AuthenticationRequired', 'message': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed one teacher and two students
            seed = [
                ('teacher@example.com', 'Teacher', 'teacher'),
                ('student1@example.com', 'Student One', 'student'),
                ('student2@example.com', 'Student Two', 'student'),
            ]
            for email, name, role in seed:
                user = User(email=email, name=name, role=role)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
