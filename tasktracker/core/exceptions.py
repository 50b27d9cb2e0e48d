class TaskTrackerError(Exception):
    """Base class for errors raised by the task tracker core."""

    message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(TaskTrackerError):
    """Required fields missing or empty. Reported to the caller, never retried."""

    message = "All fields are required"


class NotFoundError(TaskTrackerError):
    """Mutation target does not exist or belongs to another owner."""

    message = "Task not found"


class UpstreamUnavailable(TaskTrackerError):
    """A record store or cache store call failed."""


class CacheUnavailable(UpstreamUnavailable):
    """Cache store call failed. Callers degrade to the record store."""


class AuthError(TaskTrackerError):
    message = "Invalid Token"


class MissingTokenError(AuthError):
    message = "Access Denied: No Token"


class InvalidTokenError(AuthError):
    message = "Invalid Token"
