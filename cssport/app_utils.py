import logging
from functools import wraps
from typing import Any, Optional

from flask import current_app, jsonify

from .errors import APIError

logger = logging.getLogger(__name__)

EXTENSION_KEY = "cssport"


def get_services():
    """Return the process-wide Services container attached to the current app."""
    return current_app.extensions[EXTENSION_KEY]


def make_ok(data: Optional[Any] = None, status_code: int = 200):
    """Return the raw JSON payload the UI components consume."""
    response = jsonify(data if data is not None else {})
    return response, status_code


def make_error(error: Any, message: str = "An error occurred", status_code: int = 500):
    """Return a JSON error body: {"error": message, "details": ...}."""
    details: Optional[str] = None
    if isinstance(error, APIError):
        message = error.message
        details = error.details or error.code
        status_code = error.status or status_code
    elif error is not None:
        details = str(error) or type(error).__name__

    payload = {"error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status_code


def json_errors(message: str):
    """Decorator converting unexpected route exceptions into JSON error bodies."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except APIError as exc:
                if exc.status >= 500:
                    logger.warning("%s: %s (%s)", message, exc.message, exc.details)
                return make_error(exc, message)
            except Exception as exc:
                logger.exception("%s", message)
                return make_error(exc, message, 500)

        return wrapper

    return decorator
