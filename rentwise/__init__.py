import logging
import os

from dotenv import load_dotenv
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from rentwise.cli import register_commands
from rentwise.config import config_by_env
from rentwise.errors import register_error_handlers
from rentwise.extensions import bcrypt, cache, db, limiter, login_manager, migrate
from rentwise.gateways import init_gateway
from rentwise.models import User
from rentwise.routes.api.v1 import api_v1_bp
from rentwise.services import AuthService


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return AuthService.load_user_from_token(token.strip())


def create_app(config_name=None):
    load_dotenv()
    env = config_name or os.getenv("FLASK_ENV", "development")

    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_by_env.get(env, config_by_env["development"]))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri.startswith("sqlite:///") and not db_uri.startswith("sqlite:////") and db_uri != "sqlite:///:memory:":
        relative_path = db_uri.replace("sqlite:///", "", 1)
        absolute_path = os.path.join(project_root, relative_path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{absolute_path}"

    upload_dir = app.config["UPLOAD_DIR"]
    if not os.path.isabs(upload_dir):
        upload_dir = os.path.join(project_root, upload_dir)
    app.config["UPLOAD_DIR"] = upload_dir
    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    login_manager.init_app(app)
    _init_sentry(app, env)

    register_error_handlers(app)
    init_gateway(app)
    register_commands(app)

    app.register_blueprint(api_v1_bp, url_prefix="/api/v1")

    if env == "development":
        with app.app_context():
            db.create_all()

    return app


def _init_sentry(app, env):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
        environment=env,
    )
    app.logger.info("Sentry initialized.")
