# backend/backoffice/__init__.py
from flask import Flask, jsonify, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp, alerts_bp
    from .routes.customers import customers_bp, credit_bp
    from .routes.orders import orders_bp
    from .routes.registers import terminals_bp, sessions_bp
    from .routes.checkout import checkout_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(alerts_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(credit_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(terminals_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(settings_bp)

    from .services.errors import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error: PosError):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
