import logging

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    status_code = 500

    def __init__(self, message, details=None, status_code=None, **extra):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra
        if status_code is not None:
            self.status_code = status_code


class BadRequest(APIError):
    status_code = 400


class Unauthorized(APIError):
    status_code = 401


class Forbidden(APIError):
    status_code = 403


class NotFound(APIError):
    status_code = 404


class Conflict(APIError):
    status_code = 409


class TooManyRequests(APIError):
    status_code = 429


class ServiceUnavailable(APIError):
    status_code = 503


def error_response(message, status_code, details=None, **extra):
    body = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    body.update(extra)
    return jsonify(body), status_code


def _validation_details(exc: ValidationError):
    details = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        details.append(f"{field}: {err.get('msg')}")
    return details


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(exc: APIError):
        return error_response(exc.message, exc.status_code, exc.details, **exc.extra)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return error_response("Invalid request data", 400, _validation_details(exc))

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        if exc.code == 429:
            # Flask-Limiter breach; description is the limit string
            return error_response("Too many attempts. Please try again later.", 429, exc.description)
        return error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return error_response("Internal server error", 500)
