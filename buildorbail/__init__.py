from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
import logging

from .config import Config

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)

    # 🔹 Configuration (environment first, then overrides for tests)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    proxies = app.config["TRUSTED_PROXY_COUNT"]
    if proxies > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxies, x_proto=proxies)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not app.config.get("GEMINI_API_KEY"):
        logger.warning("⚠️ GEMINI_API_KEY missing in environment variables.")

    # Initialize database and migrations
    db.init_app(app)
    migrate.init_app(app, db)  # enables flask db commands
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Import models AFTER db init
    from .models import ensure_schema

    # Register Blueprints
    from .routes import main
    app.register_blueprint(main)

    register_error_handlers(app)

    if app.config["AUTO_CREATE_SCHEMA"]:
        with app.app_context():
            try:
                ensure_schema()
            except SQLAlchemyError as e:
                logger.error(f"Schema bootstrap failed: {e}")

    db_url = make_url(app.config["SQLALCHEMY_DATABASE_URI"])
    logger.info("Connected to database: %s", db_url.render_as_string(hide_password=True))

    return app


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logger.exception("Unhandled error: %s", e)
        return jsonify({"message": "Internal server error"}), 500
