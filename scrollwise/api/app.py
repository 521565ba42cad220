"""FastAPI server for the Scrollwise tracking and insights backend"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scrollwise.api.routes.analytics import router as analytics_router
from scrollwise.api.routes.health import router as health_router
from scrollwise.api.routes.insights import router as insights_router
from scrollwise.api.routes.tracking import router as tracking_router
from scrollwise.config import APP_VERSION, EXTENSION_URLS, FRONTEND_URL, is_development
from scrollwise.infrastructure.database import init_database
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter, log_event

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize the database schema (idempotent) before serving."""
    try:
        logger.info("Initializing database schema...")
        init_database()
        logger.info("Database initialization complete")
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e

    log_event("api.startup", service="scrollwise", version=APP_VERSION)
    yield


app = FastAPI(title="Scrollwise API", version=APP_VERSION, lifespan=lifespan)


# Custom validation error handler to prevent information leakage
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Return field names only, never the validation rules themselves.

    Side Effects:
        - Logs the full validation errors
        - Increments api.validation_errors counter
    """
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


# CORS - dashboard and browser extension origins
ALLOWED_ORIGINS = [FRONTEND_URL]
ALLOWED_ORIGINS.extend(origin.strip() for origin in EXTENSION_URLS.split(",") if origin.strip())

if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(set(ALLOWED_ORIGINS)),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-ID", "X-Gateway-Secret", "X-Request-ID"],
)

app.include_router(health_router)
app.include_router(tracking_router)
app.include_router(analytics_router)
app.include_router(insights_router)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "Scrollwise API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "events": "/api/tracking/events",
            "summary": "/api/tracking/summary",
            "timeline": "/api/tracking/timeline",
            "streaks": "/api/tracking/streaks",
            "dashboard": "/api/analytics/dashboard",
            "insights": "/api/insights",
            "generate_insight": "/api/insights/generate",
        },
    }


def main() -> None:
    """Run the API with uvicorn (scrollwise-api entry point)."""
    import uvicorn

    from scrollwise.config import API_HOST, API_PORT, LOG_LEVEL

    uvicorn.run(
        "scrollwise.api.app:app",
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
