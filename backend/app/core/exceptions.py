"""
API exceptions with machine-readable error codes.

Every externally-facing failure is surfaced as one of these kinds so that
callers can tell them apart:

    NotFound            404  missing module / unit / episode / trend
    InvalidInput        400  missing or malformed input
    Unauthorized        401  no principal on the request
    Conflict            409  state conflict (generation already running, ...)
    QuotaExceeded       402  provider credits exhausted, do not retry
    RateLimited         429  provider throttling, retry after the hint
    UpstreamUnavailable 502  provider network / 5xx failure
    InternalError       500  anything unexpected

Example:
    from app.core.exceptions import NotFoundException

    episode = db.query(PodcastEpisode).filter(PodcastEpisode.id == episode_id).first()
    if not episode:
        raise NotFoundException("Episode not found", code="EPISODE_NOT_FOUND")
"""

from typing import Optional, Any, Dict
from fastapi import HTTPException


class APIException(HTTPException):
    """
    Base API exception with error code support.

    The response body is always `{"detail": {"message": ..., "code": ..., "details": ...}}`.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        self.message = message
        self.code = code

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )


class InvalidInputException(APIException):
    """400 Bad Request - Invalid input or malformed request."""

    def __init__(
        self,
        message: str = "Invalid input",
        code: str = "INVALID_INPUT",
        details: Optional[Any] = None,
    ):
        super().__init__(400, message, code, details)


class UnauthorizedException(APIException):
    """401 Unauthorized - No authenticated principal."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details)


class QuotaExceededException(APIException):
    """402 Payment Required - Upstream credits exhausted for the billing period."""

    def __init__(
        self,
        message: str = "Upstream quota exceeded",
        code: str = "QUOTA_EXCEEDED",
        details: Optional[Any] = None,
    ):
        super().__init__(402, message, code, details)


class NotFoundException(APIException):
    """404 Not Found - Resource doesn't exist."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 Conflict - Resource already exists or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class RateLimitedException(APIException):
    """429 Too Many Requests - Upstream throttling, carries a retry hint."""

    def __init__(
        self,
        message: str = "Upstream rate limit reached",
        code: str = "RATE_LIMITED",
        retry_after: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        if retry_after is not None:
            details = {**(details or {}), "retryAfter": retry_after}
        self.retry_after = retry_after
        super().__init__(429, message, code, details, headers)


class InternalErrorException(APIException):
    """500 Internal Server Error - Unexpected failure."""

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(500, message, code, details)


class UpstreamUnavailableException(APIException):
    """502 Bad Gateway - Upstream provider unreachable or failing."""

    def __init__(
        self,
        message: str = "Upstream provider unavailable",
        code: str = "UPSTREAM_UNAVAILABLE",
        details: Optional[Any] = None,
    ):
        super().__init__(502, message, code, details)
