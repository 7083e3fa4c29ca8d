"""Custom exception classes for the designcoach API."""


class DesignCoachError(Exception):
    """Base exception for designcoach."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(DesignCoachError):
    """Schema or request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(DesignCoachError):
    """Resource not found (or not resolvable, e.g. a malformed share token)."""

    def __init__(self, resource: str, resource_id: str | None = None):
        message = f"{resource} '{resource_id}' not found" if resource_id else f"{resource} not found"
        super().__init__("NOT_FOUND", message, status_code=404)


class AuthenticationError(DesignCoachError):
    """Authentication required or token invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class ForbiddenError(DesignCoachError):
    """Resource exists but belongs to another user."""

    def __init__(self, message: str = "You do not have access to this resource"):
        super().__init__("FORBIDDEN", message, status_code=403)


class InvalidTransitionError(DesignCoachError):
    """A job status change that the lifecycle does not allow."""

    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(
            "INVALID_TRANSITION",
            f"Job '{job_id}' cannot move from {current} to {requested}",
            details={"current": current, "requested": requested},
            status_code=409,
        )


class NotReadyError(DesignCoachError):
    """Requested artifact depends on a job that has not finished."""

    def __init__(self, message: str = "Report is not ready yet"):
        super().__init__("NOT_READY", message, status_code=409)


class QueueUnavailableError(DesignCoachError):
    """Broker unreachable or timed out while enqueueing."""

    def __init__(self, message: str = "Evaluation queue unavailable"):
        super().__init__("QUEUE_UNAVAILABLE", message, status_code=503)
