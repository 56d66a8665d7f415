"""
Failure kinds of the proxy pipeline and their HTTP mapping.

Every failure is raised as a ``ProxyError`` subclass and converted to the
``{error, timestamp}`` JSON body at the route boundary. Anything that is not a
``ProxyError`` is answered as a generic 400 carrying the exception message.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from starlette.background import BackgroundTask
from starlette.responses import JSONResponse


class ProxyError(Exception):
    status_code = 400
    default_message = "Proxy request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class MissingTargetUrl(ProxyError):
    default_message = "Missing target URL"


class InvalidUrlFormat(ProxyError):
    default_message = "Invalid target URL format"


class SessionInvalidOrExpired(ProxyError):
    status_code = 401
    default_message = "Invalid or expired session"


class InsufficientBalance(ProxyError):
    status_code = 401
    default_message = "Insufficient time balance"


class UserNotFound(ProxyError):
    status_code = 401
    default_message = "User profile not found"


class UpstreamFetchFailure(ProxyError):
    # not retried here; retrying is the caller's call
    default_message = "Failed to fetch target URL"


class RateLimitExceeded(ProxyError):
    status_code = 429
    default_message = "Too many requests"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def status_for(exc: BaseException) -> int:
    if isinstance(exc, ProxyError):
        return exc.status_code
    return 400


def error_response(exc: BaseException, background: Optional[BackgroundTask] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"error": str(exc) or exc.__class__.__name__, "timestamp": utc_timestamp()},
        background=background,
    )
