"""
FastAPI Application

Main entry point for the periodization planner web API.
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Dict

from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from periodization.api.models.responses import Envelope, ErrorBody
from periodization.api.routes import catalog, objectives, programs, techniques
from periodization.config import configure_logging, get_settings
from periodization.database import Base, get_engine
from periodization.errors import PeriodizationError, StorageError

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(get_engine(settings.DATABASE_URL, settings.SQL_ECHO))
    logger.info("Database ready at %s", settings.DATABASE_URL)
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Periodization Planner API",
    description="Periodized training programs, objectives and technique templates",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS configuration - allow frontend to access API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(catalog.router, prefix="/api", tags=["Exercise Catalog"])
app.include_router(programs.router, prefix="/api", tags=["Programs"])
app.include_router(objectives.router, prefix="/api", tags=["Objectives"])
app.include_router(techniques.router, prefix="/api", tags=["Special Techniques"])


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint - API information."""
    return {
        "name": "Periodization Planner API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "periodization-api"}


def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    envelope = Envelope(error=ErrorBody(error=error, message=message, details=details or {}))
    return JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json"))


@app.exception_handler(PeriodizationError)
async def domain_exception_handler(request, exc: PeriodizationError):
    """Map domain errors to their HTTP status; storage details never leave the server."""
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s: %r", request.method, request.url.path, exc.cause)
        return _error_response(exc.status_code, exc.error_type, "The request could not be completed")
    return _error_response(exc.status_code, exc.error_type, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc: RequestValidationError):
    """Malformed request bodies are reported like any other validation error."""
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation Error",
        "Request validation failed",
        {"errors": errors},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return _error_response(exc.status_code, HTTPStatus(exc.status_code).phrase, str(exc.detail))


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "periodization.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
