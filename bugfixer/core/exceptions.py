"""
Application-wide exception hierarchy.

Services raise these types; the app factory registers one error handler per
type so every blueprint gets the same HTTP mapping:

    NotFoundError        -> 404
    ForbiddenError       -> 403
    ConflictError        -> 400
    ValidationError      -> 400  (with field-level details)
    AuthenticationError  -> 401
    ExternalServiceError -> 502
    ServiceUnavailableError -> 503

Usage:
    from bugfixer.core.exceptions import NotFoundError, ForbiddenError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise ForbiddenError("Only the owner can delete the project")
"""


class BugFixerError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, payload: dict | None = None) -> None:
        self.message = message
        self.payload = payload or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, **self.payload}


class NotFoundError(BugFixerError):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Bug").
        resource_id: The key that was looked up. Logged, not returned.
        message: Optional override for the response text.
    """

    status_code = 404

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message or f"{resource} not found")


class ForbiddenError(BugFixerError):
    """Raised when the caller lacks the capability an action requires.

    The message names the missing capability, e.g.
    "Only the owner can change member roles".
    """

    status_code = 403


class ConflictError(BugFixerError):
    """Raised when an operation would duplicate a row or repeat a transition.

    Maps to HTTP 400 to keep the public API's historical status codes.
    """

    status_code = 400


class ValidationError(BugFixerError):
    """Raised when request input fails schema validation.

    Args:
        message: Summary, "Validation failed" by default.
        details: List of {"field": ..., "message": ...} dicts.
    """

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: list[dict] | None = None) -> None:
        self.details = details or []
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class AuthenticationError(BugFixerError):
    """Raised when a request needs an authenticated user and has none."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ExternalServiceError(BugFixerError):
    """Raised when a required outbound call (GitHub OAuth) fails."""

    status_code = 502


class ServiceUnavailableError(BugFixerError):
    """Raised when an optional backend (image storage) is not configured."""

    status_code = 503
