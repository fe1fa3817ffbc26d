import logging
import re

from flask import Flask, request
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from .errors import register_error_handlers
from models import storage

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "EcoManager API",
        "version": "1.0.0",
        "description": "Accounts and authentication for EcoManager: JWT access/refresh tokens, profiles and admin user management.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
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

# Requests that must work without a database
DB_FREE_PREFIXES = ("/apidocs", "/flasgger_static", "/swagger.json", "/api/health")


def _cors_origins(origins):
    """Strings starting with ^ are regexes, the rest exact origins."""
    return [re.compile(o) if o.startswith("^") else o for o in origins]


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Raises ConfigurationError (and so aborts startup) when token settings
    are missing or invalid.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)
    validate_config(app.config)

    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    CORS(
        app,
        resources={r"/*": {"origins": _cors_origins(app.config["CORS_ORIGINS"])}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        max_age=86400,
    )

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.configure(app.config["DATABASE_URL"], timeout=app.config["DB_TIMEOUT_SECONDS"])

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")

    @app.before_request
    def connect_storage():
        # First request connects; ServiceUnavailable becomes a 503
        if request.method == "OPTIONS" or request.path == "/":
            return None
        if request.path.startswith(DB_FREE_PREFIXES):
            return None
        storage.ensure_ready()
        return None

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "EcoManager API is running",
            "version": "1.0.0",
            "docs": "/apidocs/",
            "endpoints": {
                "health": "/api/health",
                "auth": "/api/auth",
                "users": "/api/users",
            },
        }, 200

    return app
