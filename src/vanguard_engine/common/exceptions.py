"""Vanguard-Engine exception hierarchy."""


class VanguardError(Exception):
    """Base exception for all Vanguard errors."""

    status_code = 500

    def __init__(self, message: str = "", code: str = "VANGUARD_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class AuthenticationError(VanguardError):
    """Bad credentials, invalid or expired session, inactive principal or tenant.

    The message is deliberately generic so callers cannot tell an unknown
    email from a wrong password.
    """

    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code="UNAUTHORIZED")


class AuthorizationError(VanguardError):
    """Authenticated, but not allowed to perform the action."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="FORBIDDEN")


class NotFoundError(VanguardError):
    """Raised when an entity is absent or belongs to another tenant."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND")


class ConflictError(VanguardError):
    """Raised when a uniqueness constraint would be violated."""

    status_code = 409

    def __init__(self, message: str = "Conflict", code: str = "CONFLICT"):
        super().__init__(message, code=code)


class StateConflictError(ConflictError):
    """Raised when a visit is not in a state that allows the transition."""

    def __init__(self, message: str = "Visit is not in a valid state for this action"):
        super().__init__(message, code="STATE_CONFLICT")


class MalformedTokenError(VanguardError):
    """Raised when a capability token fails parsing or MAC verification."""

    status_code = 400

    def __init__(self, message: str = "Invalid QR code"):
        super().__init__(message, code="INVALID_TOKEN")


class RateLimitedError(VanguardError):
    """Raised when a caller exceeds its quota on an unauthenticated path."""

    status_code = 429

    def __init__(self, message: str = "Too many requests", retry_after: int = 0):
        self.retry_after = retry_after
        super().__init__(message, code="RATE_LIMITED")
