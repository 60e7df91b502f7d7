"""
Platform-wide exception hierarchy for the request lifecycle.

Every lifecycle failure surfaces as one of these types. Blueprints register
handlers against them once and get consistent HTTP status codes everywhere.

Usage:
    from pfadmin.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Request", resource_id=42)
    raise ValidationError("remarks are required", details={"remarks": "required"})

Context carried by these errors names roles and statuses only, never the ids
of other actors assigned to the request.
"""


class LifecycleError(Exception):
    """Base class; ``code`` is the machine-readable error code."""

    code = "ERR_INTERNAL"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details()}

    def details(self) -> dict:
        return {}


class NotFoundError(LifecycleError):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Request", "User").
        resource_id: The PK that was looked up.
    """

    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    def details(self) -> dict:
        return {"resource": self.resource, "resource_id": self.resource_id}


class ValidationError(LifecycleError):
    """Raised when a field an operation requires is missing or malformed.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    code = "ERR_VALIDATION"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self._details = details or {}
        super().__init__(message)

    def details(self) -> dict:
        return dict(self._details)


class UnauthorizedError(LifecycleError):
    """Raised when the actor lacks the capability for an operation right now.

    Never retried automatically.
    """

    code = "ERR_FORBIDDEN"

    def __init__(self, actor_role: str | None, capability: str, current_status: str) -> None:
        self.actor_role = actor_role
        self.capability = capability
        self.current_status = current_status
        super().__init__(
            f"Role {actor_role or 'unknown'} lacks '{capability}' "
            f"for a request in status {current_status}"
        )

    def details(self) -> dict:
        return {
            "actor_role": self.actor_role,
            "required_capability": self.capability,
            "current_status": self.current_status,
        }


class InvalidTransitionError(LifecycleError):
    """Raised when an operation is not defined for the request's current status."""

    code = "ERR_INVALID_TRANSITION"

    def __init__(self, action: str, current_status: str, request_id: int | None = None) -> None:
        self.action = action
        self.current_status = current_status
        self.request_id = request_id
        super().__init__(f"Cannot '{action}' request {request_id} (status={current_status})")

    def details(self) -> dict:
        return {"action": self.action, "current_status": self.current_status}


class ConflictError(LifecycleError):
    """Raised when the optimistic compare-and-set lost a race.

    The caller may re-read and retry once against the fresh state.
    """

    code = "ERR_CONFLICT_STATE"

    def __init__(self, request_id: int, expected_status: str, actual_status: str) -> None:
        self.request_id = request_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Request {request_id} changed concurrently "
            f"(expected status={expected_status}, now {actual_status})"
        )

    def details(self) -> dict:
        return {"expected_status": self.expected_status, "current_status": self.actual_status}


class PersistenceError(LifecycleError):
    """Raised when the underlying store is unavailable. Not retried by the engine."""

    code = "ERR_DATABASE"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Persistence failure during '{operation}'")

    def details(self) -> dict:
        return {"operation": self.operation}
