"""
Application error hierarchy.

Every error carries a stable machine-readable ``code`` and a human message so
callers can tell "no data available" apart from "service broken".
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Any = None,
        **extra: Any,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        body.update(self.extra)
        return body


class InvalidRequestError(AppError):
    """Client supplied a missing or malformed value."""
    status_code = 400
    default_code = "invalid_request"


class UnauthorizedError(AppError):
    status_code = 401
    default_code = "unauthorized"


class NotFoundError(AppError):
    status_code = 404
    default_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    default_code = "duplicate"


class UpstreamError(AppError):
    """A dependency (STAC catalog, TiTiler) failed or answered non-success."""
    status_code = 502
    default_code = "upstream_failed"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Any = None,
        upstream_status: Optional[int] = None,
        **extra: Any,
    ):
        super().__init__(message, code=code, detail=detail, **extra)
        self.upstream_status = upstream_status
