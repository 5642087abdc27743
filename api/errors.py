import logging

from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError

from services.errors import AuthError


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Auth taxonomy: every service failure carries its own code and status
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        if err.status >= 500:
            logging.exception("Auth service failure", exc_info=err)
        return error_response(err.code, err.message, err.status)

    # Marshmallow validation errors: missing or malformed fields
    @app.errorhandler(SchemaValidationError)
    def handle_validation_error(err: SchemaValidationError):
        return error_response("VALIDATION_ERROR", "Invalid input", 400, details=err.messages)

    # Integrity errors that escaped the service layer; never echo the SQL
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        logging.exception("Integrity error", exc_info=err)
        lower_msg = str(getattr(err, "orig", err)).lower()
        if "unique" in lower_msg:
            return error_response("CONFLICT", "Unique constraint violated.", 400)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.name.upper().replace(" ", "_"), err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
