"""
Error envelope shared by every endpoint.

All failures render as ``{"success": false, "message": ...}`` plus optional
extra keys, with the HTTP status carried on the response.
"""

import logging
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from app.core.config import settings
from app.core.cookies import clear_auth_cookies, set_auth_cookies
from app.core.rate_limiter import rate_limit_exceeded_handler

logger = logging.getLogger("perftracker.errors")


class APIError(HTTPException):
    """
    HTTPException carrying extra envelope keys, e.g. ``validDepartments``
    for an unknown department or ``details`` for a cross-department review.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        headers: Optional[Dict[str, str]] = None,
        clear_cookies: bool = False,
        **extra: Any,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.clear_cookies = clear_cookies
        self.extra = extra


class SessionExpiredError(APIError):
    """401 that also removes both session cookies from the client."""

    def __init__(self, message: str = "Session expired"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, clear_cookies=True)


def error_body(message: str, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return body


def get_cors_headers(request: Request) -> dict:
    """
    Responses produced by the catch-all handler bypass CORSMiddleware,
    so the allowed origin is echoed back here.
    """
    origin = request.headers.get("origin", "")
    if origin in settings.ALLOWED_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return {}


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc)

    if not field:
        return "Request body is required"
    if first.get("type") == "missing":
        return f"{field} is required"
    return f"Invalid value for {field}: {first.get('msg', 'invalid')}"


def carry_refreshed_cookies(request: Request, response: Response) -> Response:
    """
    Re-issue the session cookies rotated earlier in this request.
    The refresh token presented by the client is already revoked.
    """
    tokens = getattr(request.state, "refreshed_tokens", None)
    if tokens:
        set_auth_cookies(response, *tokens)
    return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    extra = getattr(exc, "extra", {}) or {}
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, **extra),
        headers=getattr(exc, "headers", None),
    )
    if getattr(exc, "clear_cookies", False):
        clear_auth_cookies(response)
        return response
    return carry_refreshed_cookies(request, response)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _describe_validation_error(exc)
    logger.info(f"Rejected {request.method} {request.url.path}: {message}")
    response = JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message),
    )
    return carry_refreshed_cookies(request, response)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for unhandled exceptions. The traceback is logged with a
    reference id; outside production the raw error text is returned too.
    """
    error_id = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")

    logger.error(
        f"Unhandled exception [{error_id}]: {exc}\n"
        f"Path: {request.url.path}\n"
        f"Method: {request.method}\n"
        f"Request ID: {getattr(request.state, 'request_id', None)}\n"
        f"Traceback: {traceback.format_exc()}"
    )

    body = error_body(f"Internal server error. Reference ID: {error_id}")
    if not settings.is_production:
        body["error"] = str(exc)

    response = JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
        headers=get_cors_headers(request),
    )
    return carry_refreshed_cookies(request, response)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, global_exception_handler)
