import logging
from datetime import timedelta

import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from services import TokenSettings, build_auth_service
from utils.security import utcnow

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Session Rotation API",
        "version": "1.0.0",
        "description": "Login, refresh token rotation with reuse detection, and logout.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the access token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` is applied on top of the selected config class (tests use it
    to point DATABASE_URL at a throwaway database).
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    # Token services get an explicit settings value, not the app config
    storage.reload(app.config["DATABASE_URL"])
    settings = TokenSettings.from_config(app.config)
    app.extensions["auth_service"] = build_auth_service(settings, storage)

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.cli.command("prune-tokens")
    @click.option("--days", default=0, show_default=True, help="Keep flagged rows this many days past expiry.")
    def prune_tokens(days):
        """Delete refresh token rows that are expired and already used or revoked."""
        service = app.extensions["auth_service"]
        removed = service.store.prune(utcnow() - timedelta(days=days))
        click.echo(f"pruned {removed} refresh token record(s)")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Session Rotation API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
