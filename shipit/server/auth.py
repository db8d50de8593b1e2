"""API-key guard for the ShipIt REST endpoints."""

from functools import wraps
from typing import Optional

from flask import current_app, jsonify, request

BEARER_PREFIX = "Bearer "


def request_api_key() -> Optional[str]:
    """Key sent by the caller, from `Authorization: Bearer` or `X-API-Key`."""
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):].strip() or None
    return request.headers.get("X-API-Key") or None


def require_api_key(view):
    """
    Reject requests whose key is not listed in SHIPIT_API_KEYS.

    With no keys configured every request is refused, so the task API is
    never open by accident.

    Args:
        view: Flask view function

    Returns:
        Wrapped view answering 401 for missing or unknown keys
    """
    @wraps(view)
    def guarded(*args, **kwargs):
        server_config = current_app.config["SERVER_CONFIG"]
        api_key = request_api_key()

        if not api_key or not server_config.is_api_key_valid(api_key):
            current_app.logger.warning(f"Rejected {request.method} {request.path}: invalid or missing API key")
            return jsonify({
                "error": "Unauthorized",
                "message": "A valid ShipIt API key is required (Authorization: Bearer or X-API-Key)",
            }), 401

        return view(*args, **kwargs)

    return guarded
