"""Centralised error logging: captures exceptions to DB and Python logger.

Usage:
    # 1. As a function call in any try/except:
    from app.services.error_logger import log_error
    try:
        ...
    except Exception as e:
        await log_error(e, db=db, module="api.scorecards", function_name="create_scorecard")

    # 2. Middleware captures unhandled request errors automatically.
"""

from __future__ import annotations

import logging
import traceback as tb_module
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.error_log import ErrorLog, ErrorSeverity

logger = logging.getLogger("fiq.errors")


def _clip(value: object, max_len: int) -> str:
    """Replace control characters and truncate."""
    text = "".join(ch if (ch >= " " or ch in "\n\r\t") else " " for ch in str(value))
    return text[:max_len]


async def log_error(
    exc: Exception,
    *,
    db: Optional[AsyncSession] = None,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    module: Optional[str] = None,
    function_name: Optional[str] = None,
    request_method: Optional[str] = None,
    request_path: Optional[str] = None,
    status_code: Optional[int] = None,
    response_time_ms: Optional[float] = None,
    user_id: Optional[int] = None,
    organization_id: Optional[int] = None,
    ip_address: Optional[str] = None,
) -> Optional[ErrorLog]:
    """Log an exception to the Python logger and, given a session, the DB.

    Returns the ErrorLog row, or None when no session was given or the
    write failed.
    """
    error_type = type(exc).__name__
    message = _clip(exc, 2000)

    if exc.__traceback__ and not module:
        frame = exc.__traceback__
        while frame.tb_next:
            frame = frame.tb_next
        module = frame.tb_frame.f_code.co_filename
        function_name = function_name or frame.tb_frame.f_code.co_name

    log_msg = f"[{severity.value.upper()}] {error_type}: {message}"
    if request_path:
        log_msg = f"{request_method or '?'} {request_path} -> {log_msg}"
    if severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING):
        logger.warning(log_msg)
    else:
        logger.error(log_msg, exc_info=exc)

    if db is None:
        return None

    try:
        entry = ErrorLog(
            severity=severity,
            error_type=error_type,
            message=message,
            traceback=_clip(
                "".join(tb_module.format_exception(type(exc), exc, exc.__traceback__)),
                10000,
            ),
            module=_clip(module, 300) if module else None,
            function_name=_clip(function_name, 200) if function_name else None,
            request_method=request_method,
            request_path=_clip(request_path, 500) if request_path else None,
            status_code=status_code,
            response_time_ms=response_time_ms,
            user_id=user_id,
            organization_id=organization_id,
            ip_address=_clip(ip_address, 45) if ip_address else None,
        )
        db.add(entry)
        await db.flush()
        return entry
    except Exception as db_err:
        # Never let error-logging itself crash the app
        logger.warning("Failed to persist error log to DB: %s", db_err)
        return None


async def log_error_standalone(exc: Exception, **kwargs) -> Optional[ErrorLog]:
    """Log an error using its own DB session (for middleware use)."""
    from app.database import async_session

    try:
        async with async_session() as db:
            entry = await log_error(exc, db=db, **kwargs)
            await db.commit()
            return entry
    except Exception as db_err:
        logger.warning("Failed standalone error log: %s", db_err)
        return None
