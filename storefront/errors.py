# storefront/errors.py
from flask import jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .utils.api import api_error


class ApiError(Exception):
    """Base error carrying an HTTP status for the error handler."""
    status = 400

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class NotFound(ApiError):
    status = 404


class InvalidSelection(ApiError):
    status = 400


class ConfigurationError(ApiError):
    status = 400


class Conflict(ApiError):
    status = 409


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        db.session.rollback()
        r = jsonify(api_error(e.message))
        r.status_code = e.status
        return r

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        db.session.rollback()
        r = jsonify(api_error(str(e)))
        r.status_code = 422
        return r

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        current_app.logger.exception("database error")
        r = jsonify(api_error("Database error"))
        r.status_code = 500
        return r
