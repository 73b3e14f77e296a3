"""
ProjectHub
Blueprint helpers shared by every API blueprint.

    register_error_handlers(bp)   map service exceptions to the error body
    @principal_required           401 unless the JWT resolver set g.principal
    json_body()                   request JSON as a dict (empty on bad input)
"""

import logging
from functools import wraps

from flask import g, request

from projecthub.core.exceptions import (
    ConstraintViolation,
    NotFoundError,
    PermissionDenied,
    PersistenceError,
    ValidationError,
)
from projecthub.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def principal_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if getattr(g, "principal", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return view(*args, **kwargs)
    return wrapper


def register_error_handlers(bp) -> None:
    """Attach the service-exception handlers to ``bp``."""

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, error.details or str(error))

    @bp.errorhandler(PermissionDenied)
    def _handle_permission(error: PermissionDenied):
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ConstraintViolation)
    def _handle_conflict(error: ConstraintViolation):
        return api_error(E.CONFLICT_STATE, str(error))

    @bp.errorhandler(PersistenceError)
    def _handle_persistence(error: PersistenceError):
        return api_error(E.DATABASE, str(error))
