"""Flask application factory."""

import os

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from anithing.config import config

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""
    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    from anithing.extensions import cache, init_redis, init_sentry, limiter

    cache.init_app(app)
    limiter.init_app(app)
    init_redis(app)
    init_sentry(app)

    from anithing.logging_config import setup_logging

    setup_logging(app)

    # CORS
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)

    # Register blueprints
    from anithing.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api/v1")

    from anithing.cli import catalog, rewards

    app.cli.add_command(rewards)
    app.cli.add_command(catalog)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    # Shell context
    @app.shell_context_processor
    def make_shell_context():
        from anithing.models import (AcquisitionHistory, BoxInventory,
                                     RewardName, RewardState, Title, User)

        return {
            "db": db,
            "User": User,
            "RewardState": RewardState,
            "BoxInventory": BoxInventory,
            "RewardName": RewardName,
            "AcquisitionHistory": AcquisitionHistory,
            "Title": Title,
        }

    return app
