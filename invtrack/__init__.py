import logging

from flask import Flask, current_app, g, request
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .extensions import db
from .routes import (
    categories,
    errors,
    health,
    item_locations,
    items,
    locations,
    stock,
    suppliers,
    transactions,
    users,
)
from .utils.logging import REQUEST_ID_HEADER, assign_request_id, configure_logging
from config import Config
from . import models  # ensure models are registered with SQLAlchemy

request_logger = logging.getLogger("invtrack.requests")


def _ensure_admin_user(email: str, name: str) -> None:
    """Create the default administrative user that performs seeded transactions."""

    if not email:
        return

    for attempt in range(3):
        try:
            user = models.User.query.filter_by(email=email.lower()).first()
            if user is None:
                db.session.add(
                    models.User(
                        email=email.lower(),
                        name=name or "Administrator",
                        role=models.UserRole.ADMIN,
                    )
                )
                db.session.commit()
            return
        except IntegrityError:
            db.session.rollback()
            if attempt == 2:
                raise


def _ping_database() -> None:
    """Raise :class:`OperationalError` when the configured database is unreachable."""

    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    app.config.setdefault("DATABASE_ERROR", None)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    configure_logging(app)
    db.init_app(app)

    database_available = True
    database_error_message: str | None = None

    # create tables if they do not exist
    with app.app_context():
        try:
            _ping_database()
        except OperationalError as exc:
            database_available = False
            root_cause = getattr(exc, "orig", exc)
            details = str(root_cause).strip()
            database_error_message = (
                "Unable to connect to the configured database. Start the "
                "PostgreSQL service or update the DB_URL setting, then restart "
                "the service."
            )
            if details:
                database_error_message += f" (Error: {details})"
            message_suffix = f": {details}" if details else ""
            current_app.logger.error(
                "Database connection unavailable during startup%s",
                message_suffix,
                exc_info=current_app.debug,
            )
            db.session.remove()
            db.engine.dispose()
        else:
            try:
                db.create_all()
                _ensure_admin_user(
                    app.config.get("ADMIN_EMAIL", ""),
                    app.config.get("ADMIN_NAME", "Administrator"),
                )
            except SQLAlchemyError:
                database_available = False
                database_error_message = (
                    "The database schema could not be initialized. Review the logs "
                    "for details and restart the service once resolved."
                )
                current_app.logger.exception("Database initialization error")
                db.session.remove()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.config["DATABASE_ERROR"] = database_error_message

    # register blueprints
    app.register_blueprint(errors.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(users.bp)
    app.register_blueprint(categories.bp)
    app.register_blueprint(locations.bp)
    app.register_blueprint(suppliers.bp)
    app.register_blueprint(items.bp)
    app.register_blueprint(item_locations.bp)
    app.register_blueprint(transactions.bp)
    app.register_blueprint(stock.bp)

    app.before_request(assign_request_id)

    @app.after_request
    def _record_request_log(response):
        response.headers[REQUEST_ID_HEADER] = getattr(g, "request_id", "-")
        if request.endpoint and request.method != "OPTIONS":
            request_logger.info(
                "%s %s -> %s", request.method, request.path, response.status_code
            )
        return response

    return app
