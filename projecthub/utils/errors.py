"""Standardised API responses.

Usage
-----
    from projecthub.utils.errors import api_error, api_ok, E

    return api_ok({"stage": stage}, status=201)
    return api_error(E.NOT_FOUND, "Stage not found")
    return api_error(E.VALIDATION_INVALID, {"title": "Title is required"})
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation (HTTP 400)
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth (HTTP 401 / 403)
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found (HTTP 404)
    NOT_FOUND = "ERR_NOT_FOUND"

    # Workflow conflict (HTTP 409)
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server (HTTP 500)
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    error: str | dict,
    *,
    status: int | None = None,
):
    """Return ``({"success": false, "error": ..., "code": ...}, status)``.

    ``error`` is a message, or a field -> message map for validation
    failures. Status falls back to ``_DEFAULT_STATUS[code]``, then 400.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)
    return jsonify({"success": False, "error": error, "code": code}), http_status


def api_ok(data: dict | None = None, *, status: int = 200):
    """Return ``({"success": true, **data}, status)``."""
    body = {"success": True}
    if data:
        body.update(data)
    return jsonify(body), status
