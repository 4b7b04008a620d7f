# backend/app/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.payments import payments_bp
    from .routes.storage import storage_bp
    from .routes.webhooks import webhooks_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(storage_bp)
    app.register_blueprint(webhooks_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = app.config.get("CORS_ALLOWED_ORIGINS", set())
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Actor-Id, X-Warehouse-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,PATCH,OPTIONS"
            response.headers["Access-Control-Expose-Headers"] = "ETag"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
