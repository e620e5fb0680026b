"""
Platform-wide exception hierarchy.

Services raise these types; the application registers one handler per
type so every blueprint gets the same HTTP status codes.

The permission predicates in ``goldenbridge.services.permission`` never
raise. Services ask them and raise ``PermissionDenied`` on a False answer.

Usage:
    from goldenbridge.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Program", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Program", "Milestone").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class TransitionError(ValidationError):
    """Raised when an assignment workflow move is not allowed from the current state.

    Maps to HTTP 409.
    """

    def __init__(self, action: str, current: str | None, reason: str) -> None:
        self.action = action
        self.current = current
        self.reason = reason
        super().__init__(reason, details={"action": action, "current_state": current})


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique record.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        message: Optional user-facing message overriding the default.
    """

    def __init__(self, resource: str, field: str, value=None, message: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class PermissionDenied(Exception):
    """Raised when the acting user is not allowed to perform an action.

    Maps to HTTP 403.
    """

    def __init__(self, actor_id, action: str) -> None:
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"User {actor_id} is not authorized to {action}")
