from flask import jsonify, current_app, request
from werkzeug.exceptions import HTTPException, NotFound
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
import logging

from utils.exceptions import AppError, ServiceUnavailable

logger = logging.getLogger(__name__)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def _debug() -> bool:
    return bool(current_app and current_app.debug)


def register_error_handlers(app):
    # Domain errors: status and code come from the exception class
    @app.errorhandler(AppError)
    def handle_app_error(err: AppError):
        details = None
        if _debug():
            details = {"type": err.__class__.__name__, **(err.details or {})}
        elif err.details and err.status == 400:
            # validation-style details (e.g. password requirements) are safe to show
            details = err.details
        if err.status >= 500:
            logger.error("%s on %s %s: %s", err.code, request.method, request.path, err.message)
        return error_response(err.code, err.message, err.status, details=details)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        # abort(404, description=...) names the missing resource
        if e.description and e.description != NotFound.description:
            return error_response("NOT_FOUND", e.description, 404)
        return error_response(
            "NOT_FOUND", "Route not found", 404,
            details={"path": request.path, "method": request.method},
        )

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Backing store unreachable or pool exhausted
    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def handle_db_unavailable(err):
        logger.error("Database unavailable: %s", err.__class__.__name__)
        return handle_app_error(ServiceUnavailable("Service temporarily unavailable - database unreachable"))

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        code = (err.name or "BAD_REQUEST").upper().replace(" ", "_")
        return error_response(code, err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        if _debug():
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
