"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
turn them into the structured ``{"success": false, ...}`` result with a
consistent HTTP status.

Usage:
    from projecthub.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Stage", resource_id=42)
    raise ValidationError("Invalid input", details={"title": "Title is required"})
"""

GENERIC_PERMISSION_MESSAGE = "You do not have permission to access this project"
GENERIC_PERSISTENCE_MESSAGE = "Database error, please retry"


class ProjectHubError(Exception):
    """Base class for every error the service layer raises on purpose."""

    code = "ERR_INTERNAL"
    status = 500


class ValidationError(ProjectHubError):
    """Raised when input fails schema or business-rule validation.

    Raised before any mutation starts.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names;
                 values are error descriptions.
    """

    code = "ERR_VALIDATION_INVALID"
    status = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PermissionDenied(ProjectHubError):
    """Raised when the principal lacks the role or membership for an action.

    The message is deliberately generic: a missing project and a denied
    project look the same to the caller.
    """

    code = "ERR_FORBIDDEN"
    status = 403

    def __init__(self, message: str = GENERIC_PERMISSION_MESSAGE) -> None:
        super().__init__(message)


class NotFoundError(ProjectHubError):
    """Raised when an entity does not exist or does not belong to the stated parent.

    Args:
        resource: Entity name (e.g. "Stage", "Comment").
        resource_id: The PK that was looked up. Logged, not shown to callers.
    """

    code = "ERR_NOT_FOUND"
    status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ConstraintViolation(ProjectHubError):
    """Raised when a well-formed request breaks a workflow rule.

    Examples: deleting a stage that still has components, approving a
    non-approval component, a bulk reorder whose id set does not match.
    """

    code = "ERR_CONFLICT_STATE"
    status = 409


class PersistenceError(ProjectHubError):
    """Raised when the underlying store fails mid-operation.

    The original exception is kept on ``cause`` for server-side logging;
    callers only ever see the generic message.
    """

    code = "ERR_DATABASE"
    status = 500

    def __init__(self, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(GENERIC_PERSISTENCE_MESSAGE)


class AuditSinkError(ProjectHubError):
    """Raised by an event consumer. Always caught and logged by the sink."""

    code = "ERR_AUDIT"
