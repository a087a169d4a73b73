"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fundfolio import __version__
from fundfolio.api.deps import reset_valuation_cache
from fundfolio.api.routers import (
    funds_router,
    holdings_router,
    portfolio_router,
    transactions_router,
)
from fundfolio.api.schemas import error_body
from fundfolio.config.logging_config import setup_logging
from fundfolio.config.settings import get_settings
from fundfolio.core.exceptions import (
    AppError,
    ConcurrencyConflict,
    DataUnavailableError,
    NotFoundError,
    OperationCancelled,
    ValidationError,
)
from fundfolio.repositories.sqlalchemy.database import init_db

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[AppError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConcurrencyConflict: 409,
    DataUnavailableError: 503,
    OperationCancelled: 499,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    init_db()
    yield
    reset_valuation_cache()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Fund portfolio analytics with a cached market data layer",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(holdings_router)
app.include_router(transactions_router)
app.include_router(portfolio_router)
app.include_router(funds_router)


def status_for(exc: AppError) -> int:
    for error_type, status in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 400


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Global handler for application errors."""
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=error_body(exc.code, exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests share the envelope of service-level validation errors."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    return JSONResponse(status_code=400, content=error_body("VALIDATION_ERROR", message))


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }
