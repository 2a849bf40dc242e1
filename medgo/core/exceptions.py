"""Application exceptions mapped to HTTP responses by the error handlers."""


class AppException(Exception):
    """Base application exception; subclasses fix the HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        """Initialize with a message, falling back to the class default."""
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestException(AppException):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedException(AppException):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenException(AppException):
    status_code = 403
    default_message = "Forbidden"


class NotFoundException(AppException):
    status_code = 404
    default_message = "Resource not found"


class ConflictException(AppException):
    status_code = 409
    default_message = "Conflict"


class AlreadyAcceptedException(ConflictException):
    """A driver acted on a request another driver already took."""

    default_message = "Request already accepted by another driver"


class RateLimitException(AppException):
    """Too many dispatch calls from one user inside the limiter window."""

    status_code = 429
    default_message = "Rate limit exceeded"


class UpstreamServiceException(AppException):
    """A third-party provider rejected the call or is not configured."""

    status_code = 502
    default_message = "Upstream service error"
