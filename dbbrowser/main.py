"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dbbrowser.config import get_settings
from dbbrowser.core.exceptions import (
    BrowserError,
    DecodeError,
    NotConnectedError,
    QueryExecutionError,
    UnknownTableError,
    ValidationError,
)
from dbbrowser.core.logging_config import setup_logging
from dbbrowser.database import holder

settings = get_settings()
logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = (
    (NotConnectedError, status.HTTP_409_CONFLICT),
    (UnknownTableError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (QueryExecutionError, status.HTTP_502_BAD_GATEWAY),
    (DecodeError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    # Startup
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if settings.DATABASE_URL:
        await holder.connect_url(settings.DATABASE_URL)
    yield
    # Shutdown
    await holder.disconnect()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Browse and edit the tables of any MySQL database",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BrowserError)
async def browser_error_handler(request: Request, exc: BrowserError) -> JSONResponse:
    """Translate domain errors into JSON error responses."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, code in ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code = code
            break
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "connected": holder.is_connected,
    }


# Import and include routers after app is created to avoid circular imports
from dbbrowser.api.v1.router import api_router

app.include_router(api_router, prefix="/api/v1")
