"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dropnow.api.middleware import (
    MobileCORSMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from dropnow.api.router import api_router
from dropnow.config import settings
from dropnow.database import close_db
from dropnow.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: Database initialization is handled by Alembic migrations
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title="Dropnow Admin API",
    description="Fleet operations backend: admin console and mobile pairing",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]

# Request ID middleware for distributed tracing (outermost of the two so the
# logging middleware sees the ID)
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

# Open CORS for the mobile app, configured origins for the admin console
app.add_middleware(
    MobileCORSMiddleware,  # type: ignore[arg-type]
    admin_origins=settings.cors_origins,
    mobile_max_age=settings.mobile_cors_max_age,
)

# Include API router
app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from dropnow.logging import get_uvicorn_log_config

    uvicorn.run(
        "dropnow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
