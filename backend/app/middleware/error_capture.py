"""FastAPI middleware that captures failed requests and logs them to the DB.

5xx responses and unhandled exceptions are recorded as errors; 4xx
responses other than auth and not-found noise are recorded as warnings.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import HTTPException, Request, Response
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from app.config import settings
from app.models.error_log import ErrorSeverity
from app.services.error_logger import log_error_standalone

logger = logging.getLogger("fiq.middleware")

_QUIET_STATUSES = {401, 403, 404}


def _user_id_from(request: Request) -> Optional[int]:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer ") or auth_header[7:].startswith(settings.api_key_prefix + "_"):
        return None
    try:
        payload = jwt.decode(auth_header[7:], settings.secret_key, algorithms=["HS256"])
    except JWTError:
        return None
    sub = payload.get("sub")
    return int(sub) if sub and str(sub).isdigit() else None


class ErrorCaptureMiddleware(BaseHTTPMiddleware):
    """Catches unhandled exceptions, returns 500, and persists the error."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        context = {
            "module": "middleware.error_capture",
            "function_name": "dispatch",
            "request_method": request.method,
            "request_path": str(request.url.path),
            "user_id": _user_id_from(request),
            "ip_address": request.client.host if request.client else None,
        }

        try:
            response = await call_next(request)
        except HTTPException as exc:
            if exc.status_code < 500:
                raise
            response = None
            failure: Exception = exc
        except Exception as exc:
            response = None
            failure = exc

        elapsed_ms = round((time.time() - start) * 1000, 2)

        if response is None:
            severity = ErrorSeverity.CRITICAL if "database" in str(failure).lower() else ErrorSeverity.ERROR
            await log_error_standalone(
                failure, severity=severity, status_code=500, response_time_ms=elapsed_ms, **context,
            )
            logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

        status = response.status_code
        if status >= 500 or (status >= 400 and status not in _QUIET_STATUSES):
            await log_error_standalone(
                Exception(f"HTTP {status} on {request.method} {request.url.path}"),
                severity=ErrorSeverity.ERROR if status >= 500 else ErrorSeverity.WARNING,
                status_code=status,
                response_time_ms=elapsed_ms,
                **context,
            )
        return response
