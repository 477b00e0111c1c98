from flask import Flask
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.transactions import transactions_bp
    from .routes.payments import payments_bp
    from .routes.inventory_histories import inventory_bp
    from .routes.finance import finance_bp
    from .routes.catalog import customers_bp, products_bp, taxes_bp, unit_quantities_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(unit_quantities_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(taxes_bp)

    register_error_handlers(app)

    from .responses import assign_request_id, get_request_id

    @app.before_request
    def start_request():
        assign_request_id()

    @app.after_request
    def add_request_id_header(response):
        response.headers["X-Request-Id"] = get_request_id()
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """Map service errors to the JSON error envelope. No stack or SQL detail leaves the process."""
    from .responses import error_response
    from .validation import ApiError, InternalError

    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return error_response(exc.message, exc.status_code, code=exc.code, field=exc.field)

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(exc: SQLAlchemyError):
        app.logger.exception("Unhandled database error")
        db.session.rollback()
        err = InternalError("Internal server error")
        return error_response(err.message, err.status_code, code=err.code)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return error_response(exc.description or exc.name, exc.code or 500, code=code)
