from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from services.errors import AuthError, StorageUnavailable


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Token and credential outcomes: the client has to re-authenticate
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        return error_response(err.error_code, err.message, err.status_code, details=err.detail or None)

    # The token store is down; no retry here
    @app.errorhandler(StorageUnavailable)
    def handle_storage_unavailable(err: StorageUnavailable):
        logging.error("storage unavailable: %s", err.message)
        return error_response(err.error_code, "Service temporarily unavailable", err.status_code)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=err)
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Integrity errors (unique constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=err)
        if "unique" in message.lower():
            return error_response("CONFLICT", "Unique constraint violated.", 409)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions (abort(...)) map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        codes = {401: "UNAUTHORIZED", 403: "FORBIDDEN", 404: "NOT_FOUND", 409: "CONFLICT", 422: "VALIDATION_ERROR"}
        status = err.code or 400
        return error_response(codes.get(status, "BAD_REQUEST"), err.description, status)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        details = None
        logging.exception("Unhandled exception", exc_info=err)
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
