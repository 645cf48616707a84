from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_migrate import Migrate
from flask_compress import Compress

# Load environment variables early so config is available for blueprint creation
load_dotenv()

from quizhub.config import config  # noqa: E402

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()

# Settings copied onto app.config so request-time helpers (rate limiting,
# the scheduler) can be tuned per app
_APP_SETTINGS = (
    "SCHEDULER_ENABLED",
    "SCHEDULER_INTERVAL_SECONDS",
    "SCHEDULER_QUIZ_TIMEOUT_SECONDS",
    "ACCESS_RATE_LIMIT",
    "ACCESS_RATE_WINDOW_SECONDS",
)


def create_app() -> Flask:
    """
    Application factory for the Flask app.
    Loads environment variables, configures the database,
    registers blueprints and CLI commands, and starts the
    lifecycle scheduler when enabled.
    """
    # Re-read the environment in place so modules holding `config` see it
    config.__init__()
    config.validate()

    app = Flask(__name__)

    app.config["SECRET_KEY"] = config.SECRET_KEY
    db_uri = config.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = config.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SQLALCHEMY_ECHO"] = config.SQLALCHEMY_ECHO
    if db_uri.startswith("mysql"):
        if "?" not in db_uri:
            db_uri += "?charset=utf8mb4"
        # Database connection pooling
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_size": 10,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "max_overflow": 20,
            "connect_args": {
                "connect_timeout": 5,
                "read_timeout": 10,
                "write_timeout": 10,
                "charset": "utf8mb4",
            }
        }
    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri

    # Response compression settings
    app.config["COMPRESS_MIMETYPES"] = ['application/json']
    app.config["COMPRESS_LEVEL"] = 6
    app.config["COMPRESS_MIN_SIZE"] = 500
    app.config["SESSION_COOKIE_SECURE"] = config.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = config.SESSION_COOKIE_HTTPONLY
    app.config["SESSION_COOKIE_SAMESITE"] = config.SESSION_COOKIE_SAMESITE
    for key in _APP_SETTINGS:
        app.config[key] = getattr(config, key)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)

    from quizhub.common.clock import system_clock
    app.extensions["quizhub_clock"] = system_clock

    @login_manager.user_loader
    def load_user(user_id):
        from quizhub.auth.identity import SqlIdentityStore
        return SqlIdentityStore().find_by_id(user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    # Register blueprints
    from quizhub.auth import auth_bp
    app.register_blueprint(auth_bp)

    from quizhub.quiz import quiz_bp
    app.register_blueprint(quiz_bp)

    from quizhub.cli import quiz_cli
    app.cli.add_command(quiz_cli)

    @app.errorhandler(404)
    def handle_404(e):
        """Route not found, as JSON."""
        app.logger.warning(f"404 error: {request.method} {request.path}")
        return jsonify({
            'success': False,
            'error': f'Route not found: {request.method} {request.path}',
            'path': request.path,
            'method': request.method
        }), 404

    @app.errorhandler(405)
    def handle_405(e):
        app.logger.warning(f"405 error: {request.method} {request.path}")
        return jsonify({
            'success': False,
            'error': f'Method not allowed: {request.method} {request.path}',
            'path': request.path,
            'method': request.method
        }), 405

    # Create tables if they do not exist
    with app.app_context():
        from quizhub.auth.models import User  # noqa: F401
        from quizhub.quiz import models  # noqa: F401
        db.create_all()

    if app.config["SCHEDULER_ENABLED"]:
        from quizhub.quiz.scheduler import SchedulerLoop
        scheduler = SchedulerLoop(app, clock=app.extensions["quizhub_clock"])
        app.extensions["quiz_scheduler"] = scheduler
        scheduler.start()

    return app
