import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import DEV_ACCESS_SECRET, DEV_REFRESH_SECRET, AuthSettings, get_config
from .errors import register_error_handlers
from models import storage

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Library Auth API",
        "version": "1.0.0",
        "description": "Registration, login, token refresh and profile endpoints for the library backend.",
    },
    "basePath": "/",
    "schemes": ["http"],
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


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` is applied on top of the selected config class (used by tests).
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = AuthSettings.from_mapping(app.config)
    if not app.debug and not app.testing:
        dev_secrets = {DEV_ACCESS_SECRET, DEV_REFRESH_SECRET}
        if settings.access_secret in dev_secrets or settings.refresh_secret in dev_secrets:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set for production")
        if settings.access_secret == settings.refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.reload(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))

    from models.credential_store import CredentialStore
    from services.auth_service import AuthService
    from utils.security import PasswordHasher, TokenIssuer

    issuer = TokenIssuer(settings)
    app.extensions["token_issuer"] = issuer
    app.extensions["auth_service"] = AuthService(
        store=CredentialStore(storage),
        hasher=PasswordHasher(settings),
        issuer=issuer,
    )

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Library Auth API",
            "docs": "/apidocs/",
            "health": "/health",
        }, 200

    return app
