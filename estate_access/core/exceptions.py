"""Exception taxonomy for the access-control service.

Every error carries the HTTP status it is rendered with and a stable ``kind``
string that is returned to clients and used as the per-item failure reason in
bulk operations.
"""

from typing import Optional


class AccessControlError(Exception):
    """Base exception for Estate Access."""

    status_code = 400
    kind = "Error"
    default_message = "An error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(AccessControlError):
    """Raised when the identity is missing, expired, or invalid."""

    status_code = 401
    kind = "Unauthorized"
    default_message = "Not authenticated"


class AuthorizationError(AccessControlError):
    """Raised when a valid identity lacks the required role or permission.

    The message returned to clients is always the generic default; the
    internal reason is kept on ``reason`` for logging only.
    """

    status_code = 403
    kind = "Forbidden"
    default_message = "Insufficient permission"

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(self.default_message)


class ResourceNotFoundError(AccessControlError):
    """Raised when a requested role, permission, menu item or user is absent."""

    status_code = 404
    kind = "NotFound"
    default_message = "Resource not found"


class ResourceConflictError(AccessControlError):
    """Raised when a unique name or key is already taken."""

    status_code = 409
    kind = "Conflict"
    default_message = "Resource already exists"


class ValidationError(AccessControlError):
    """Raised when input validation fails."""

    status_code = 422
    kind = "ValidationError"
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class UnknownReferenceError(ResourceNotFoundError, ValidationError):
    """A mutation referenced a role, permission or menu item that does not exist."""

    status_code = 422
    kind = "NotFound"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        ValidationError.__init__(self, message, field)


class StoreError(AccessControlError):
    """Raised when the backing store fails (connectivity, constraint violation).

    Retryable at the transport layer; never a semantic denial.
    """

    status_code = 503
    kind = "StoreError"
    default_message = "Service temporarily unavailable, please retry later"
