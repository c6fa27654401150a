"""
Response helpers.
Every error body has the shape {"error": "<message>"}.
"""
from flask import g, jsonify
from typing import Any, Dict, Optional

from utils.config_handler import is_production


def error_response(message: str, status_code: int = 400, details: Optional[Dict[str, Any]] = None) -> tuple:
    """
    Error body for the client.

    Args:
        message: human readable message
        status_code: HTTP status
        details: extra diagnostics, dropped in production

    Returns:
        (response, status_code)
    """
    body: Dict[str, Any] = {"error": message}
    if details and not is_production():
        body["details"] = details
    return jsonify(body), status_code


def not_found_response(resource: str = "Resource") -> tuple:
    return error_response(f"{resource} not found", 404)


def unauthorized_response(message: str = "Unauthorized") -> tuple:
    return error_response(message, 401)


def forbidden_response(message: str = "Forbidden") -> tuple:
    return error_response(message, 403)


def conflict_response(message: str = "Conflicting update, please retry") -> tuple:
    return error_response(message, 409)


def server_error_response(message: str = "Internal server error", exc: Exception | None = None) -> tuple:
    details = None
    if exc is not None:
        details = {"error_type": type(exc).__name__, "request_id": g.get("request_id")}
    return error_response(message, 500, details)
