# backend/laundrypos/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate, cache, change_feed

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def configure_logging(app: Flask) -> None:
    """One stream handler on the package logger; services log through logging.getLogger(__name__)."""
    logger = logging.getLogger("laundrypos")
    logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cache.init_app(app)
    change_feed.init_app(app, db, cache)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.stores import stores_bp
    from .routes.products import products_bp
    from .routes.stock_history import stock_history_bp
    from .routes.invoices import invoices_bp
    from .routes.counters import counters_bp
    from .routes.collections import collections_bp
    from .routes.settings import settings_bp
    from .routes.cache import cache_bp
    from .routes.events import events_bp
    from .routes.store_users import store_users_bp
    from .routes.errors import register_error_handlers

    app.register_blueprint(system_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(stock_history_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(counters_bp)
    app.register_blueprint(collections_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(cache_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(store_users_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-Staff-Role, X-Staff-Name, X-Staff-Id, X-Staff-Email, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
