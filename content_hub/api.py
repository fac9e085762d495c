"""
FastAPI application for Content Hub.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__
from .config import get_settings
from .db.base import get_db, init_database
from .errors import ContentHubError, StorageError
from .logging_config import configure_logging
from .routes import router

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting Content Hub", environment=settings.environment)

    try:
        await init_database(seed_languages=settings.seed_languages)
    except Exception as e:
        logger.error("Failed to start application", error=str(e))
        raise

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="Content Hub",
    description="Runtime-defined content tables with relations, media and translations",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _failure(message: str) -> Dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.exception_handler(ContentHubError)
async def content_error_handler(request: Request, exc: ContentHubError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(
            "Storage error",
            path=request.url.path,
            error=exc.message,
            detail=exc.detail,
        )
    else:
        logger.info(
            "Request rejected",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid request ({location}): {first.get('msg')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=_failure(message))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content=_failure("Server error"))


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/healthz", tags=["system"])
def healthz(db: Session = Depends(get_db)) -> Dict[str, bool]:
    """Health check including a database round-trip."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", error=str(e))
        db_ok = False
    return {"ok": db_ok, "db": db_ok}


@app.get("/version", tags=["system"])
def version() -> Dict[str, str]:
    """Return the version of the application."""
    return {"version": __version__}


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
