"""Error handlers for the application.

Every error leaves the service in the same envelope as group errors, so
clients never have to parse HTML or framework-specific bodies.
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from groupsvc.core.errors import ERROR_STATUS, ErrorMessage


def error_envelope(code: str, detail: str | None = None):
    """Build an error envelope with a single message."""
    return jsonify({
        "status": ERROR_STATUS,
        "data": None,
        "messages": [ErrorMessage(code, None, detail).to_dict()],
    })


HTTP_ERROR_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        """Handle werkzeug HTTP errors (404, 405, 413, ...)."""
        code = HTTP_ERROR_CODES.get(error.code, "http_error")
        return error_envelope(code, error.description), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return handle_http_error(error)

        # Log full traceback server side; clients get a generic message
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return error_envelope("internal_error", "An unexpected error occurred"), 500
