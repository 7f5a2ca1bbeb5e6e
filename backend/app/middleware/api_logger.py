"""Records calls to the public API in the api_logs table.

Also stamps every response with an ``X-Response-Time`` header. The scoring
endpoint stores the calling organization and key on ``request.state`` so
they can be attached to the log row after the response is produced.
"""

import hashlib
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.models.api_log import ApiLog

logger = logging.getLogger("fiq.middleware")

LOGGED_PREFIXES = ("/api/v1/",)


def payload_hash(body: bytes) -> str | None:
    if not body:
        return None
    return hashlib.sha256(body).hexdigest()


class ApiLoggerMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.monotonic()
        logged = request.url.path.startswith(LOGGED_PREFIXES)
        body = await request.body() if logged and request.method in ("POST", "PUT", "PATCH") else b""

        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        response.headers["X-Response-Time"] = f"{elapsed_ms}ms"

        if logged:
            await self._record(request, response.status_code, elapsed_ms, payload_hash(body))
        return response

    async def _record(self, request: Request, status_code: int, elapsed_ms: float, digest: str | None) -> None:
        from app.database import async_session

        try:
            async with async_session() as db:
                db.add(ApiLog(
                    organization_id=getattr(request.state, "organization_id", None),
                    api_key_id=getattr(request.state, "api_key_id", None),
                    user_id=getattr(request.state, "user_id", None),
                    endpoint=request.url.path,
                    method=request.method,
                    status_code=status_code,
                    response_time_ms=elapsed_ms,
                    payload_hash=digest,
                    ip_address=request.client.host if request.client else None,
                ))
                await db.commit()
        except Exception as exc:
            logger.warning("Failed to record API log for %s: %s", request.url.path, exc)
