# backend/app/__init__.py
import logging
import time

from flask import Flask, request
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate
from .responses import fail


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    if not app.logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        app.logger.addHandler(handler)


def _install_slow_query_logging(app: Flask) -> None:
    """Log statements slower than SLOW_QUERY_MS (debug aid, off by default)."""
    threshold_ms = app.config.get("SLOW_QUERY_MS", 200)
    engine = db.engine

    @event.listens_for(engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _log_slow(conn, cursor, statement, parameters, context, executemany):
        started = conn.info["query_start_time"].pop()
        elapsed_ms = (time.perf_counter() - started) * 1000
        if elapsed_ms >= threshold_ms:
            app.logger.warning("Slow query (%.1f ms): %s", elapsed_ms, statement)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        app.logger.warning("Integrity error: %s", e.orig)
        return fail("Duplicate entry found", 400)

    @app.errorhandler(404)
    def handle_not_found(e):
        return fail("Route not found", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return fail("Method not allowed", 405)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return fail(e.description or e.name, e.code or 500)
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", 500)


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

    if app.config.get("SQL_ECHO_DURATIONS"):
        with app.app_context():
            _install_slow_query_logging(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.distributors import distributors_bp
    from .routes.categories import categories_bp
    from .routes.products import products_bp
    from .routes.invoices import invoices_bp
    from .routes.payments import payments_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(distributors_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(dashboard_bp)

    _register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.logger.debug("Application created (database: %s)", app.config["SQLALCHEMY_DATABASE_URI"].split("://")[0])
    return app
