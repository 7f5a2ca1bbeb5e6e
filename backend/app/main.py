"""FinIQ Scorecard Platform - FastAPI Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.database import engine, Base, async_session
from app import models  # noqa: F401  registers every table on Base.metadata
from app.middleware.api_logger import ApiLoggerMiddleware
from app.middleware.error_capture import ErrorCaptureMiddleware
from app.api import (
    ab_tests,
    api_keys,
    auth,
    dashboard,
    generator,
    logs,
    organizations,
    scorecards,
    scoring,
    simulation,
    users,
)
from app.seed import seed_demo_data

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup (dev only); in prod use Alembic migrations."""
    if settings.environment == "development":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with async_session() as db:
            await seed_demo_data(db)
    yield
    await engine.dispose()


app = FastAPI(
    title="FinIQ Scorecard API",
    description="Credit scorecard configuration, generation and simulation",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = auth.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Security headers middleware ──────────────────────────────────
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.environment != "development":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


# Error capture and API call logging
app.add_middleware(ErrorCaptureMiddleware)
app.add_middleware(ApiLoggerMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
)

# Routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["Organizations"])
app.include_router(users.router, prefix="/api/users", tags=["User Management"])
app.include_router(scorecards.router, prefix="/api/scorecards", tags=["Scorecards"])
app.include_router(generator.router, prefix="/api/generator", tags=["Scorecard Generator"])
app.include_router(simulation.router, prefix="/api/simulation", tags=["Simulation"])
app.include_router(ab_tests.router, prefix="/api/ab-tests", tags=["A/B Testing"])
app.include_router(api_keys.router, prefix="/api/api-keys", tags=["API Keys"])
app.include_router(logs.router, prefix="/api/logs", tags=["Logs"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(scoring.router, prefix="/api/v1", tags=["Public Scoring API"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "fiq-scorecard-api", "version": "1.0.0"}
