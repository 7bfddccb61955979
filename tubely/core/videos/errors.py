"""
Error taxonomy for the video endpoints.

Every failure in an upload pipeline surfaces as exactly one of these.
Each carries a stable kind, the HTTP status it maps to, and a message
that is safe to show the client. The underlying cause (tool stderr,
transport error) is chained via ``raise ... from`` and logged, never
returned.
"""


class VideoServiceError(Exception):
    """Base for all client-facing video service errors."""

    status_code = 500
    kind = "internal_error"
    stage = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(VideoServiceError):
    """Malformed ID, missing form file, oversize or truncated body."""
    status_code = 400
    kind = "bad_request"


class UnsupportedMediaTypeError(BadRequestError):
    """Declared content type is not one we accept."""
    status_code = 415


class UnauthorizedError(VideoServiceError):
    """Missing or invalid bearer credential."""
    status_code = 401
    kind = "unauthorized"


class ForbiddenError(VideoServiceError):
    """Authenticated, but not the owner of the record."""
    status_code = 403
    kind = "forbidden"


class NotFoundError(VideoServiceError):
    """Record does not exist."""
    status_code = 404
    kind = "not_found"


class InternalServerError(VideoServiceError):
    """Subprocess, storage or record-update failure."""
    status_code = 500
    kind = "internal_error"
