"""
Workflow exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``practice_portal.utils.errors.register_error_handlers``) and get
consistent HTTP status codes everywhere.

Usage:
    from practice_portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Practice", resource_id=42)
    raise ValidationError("relevance must be between 1 and 5", details={"relevance": "1..5"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Practice", "EvaluationItem").
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
    """Raised when caller input is missing or out of range.

    Always raised before any write, so the caller can fix the request and
    retry. Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Field-level breakdown. Keys are field names; values are
                 error descriptions or the offending values.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when the caller is not allowed to act on the resource.

    Distinct from ValidationError so a client can tell "wrong person" from
    "bad input": the caller is not the practice's current owner, belongs to
    another contract, or lacks the required role. Maps to HTTP 403.
    """

    def __init__(self, message: str, *, caller_id: str | None = None) -> None:
        self.caller_id = caller_id
        super().__init__(message)


class ConflictError(Exception):
    """Raised when the caller's view of the data is stale or would duplicate a row.

    Maps to HTTP 409.

    Args:
        message: Human-readable explanation.
        resource: Model name.
        current_status: Stored status at the time of the check, when the
                        conflict is a state conflict.
        duplicate: True when a unique constraint rejected the write.
    """

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        current_status: str | None = None,
        duplicate: bool = False,
    ) -> None:
        self.resource = resource
        self.current_status = current_status
        self.duplicate = duplicate
        super().__init__(message)
