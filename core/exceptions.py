"""
Centralized exception hierarchy for domain-specific errors.

These are raised by the HTTP layer and absorbed at the service boundary:
the geocode resolver and the road snapper convert them into degraded
results instead of propagating them to callers.
"""


class LocationPipelineError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ExternalServiceError(LocationPipelineError):
    """Exception raised when service calls fail."""

    @property
    def status(self) -> int | None:
        status = self.details.get("status")
        return status if isinstance(status, int) else None


class RateLimitError(ExternalServiceError):
    """Exception raised when rate limits are exceeded."""

    @property
    def retry_after(self) -> float | None:
        value = self.details.get("retry_after")
        return float(value) if value is not None else None


ExternalServiceException = ExternalServiceError
RateLimitException = RateLimitError
