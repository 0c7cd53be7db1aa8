# backend/barstock/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .services.gateway import SqlAlchemyGateway


def _configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger(__name__).setLevel(level)
    app.logger.setLevel(level)


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Every service reaches persistence through this gateway
    SqlAlchemyGateway().init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.catalog import catalog_bp
    from .routes.products import products_bp
    from .routes.scenarios import scenarios_bp
    from .routes.history import history_bp
    from .routes.distributors import distributors_bp
    from .routes.orders import orders_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(scenarios_bp)
    app.register_blueprint(history_bp)
    app.register_blueprint(distributors_bp)
    app.register_blueprint(orders_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Email, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
