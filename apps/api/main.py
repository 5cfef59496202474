"""
Household Planner API - FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from apps.api.routers import learning, purchases, trips
from packages.common.config import get_settings
from packages.common.database import sessionmanager
from packages.common.errors import (
    NotFoundError,
    ReconciliationError,
    TransactionError,
    ValidationError,
)

VERSION = "0.1.0"

settings = get_settings()

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, settings.log_level)),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Domain errors that reach the HTTP layer; anything else is a 500
ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    TransactionError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("starting_household_planner_api",
                environment=settings.environment,
                version=VERSION)

    await sessionmanager.init(settings.database_url, echo=settings.sql_echo)

    yield

    logger.info("shutting_down_household_planner_api")
    await sessionmanager.close()


app = FastAPI(
    title="Household Planner API",
    description="Purchase reconciliation across shopping trips, ledger, stock and catalog",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment != "production" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("validation_error",
                   path=request.url.path,
                   errors=exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ReconciliationError)
async def domain_exception_handler(request: Request, exc: ReconciliationError):
    """Map engine errors to status codes by class (most specific first)"""
    for error_class in type(exc).__mro__:
        if error_class in ERROR_STATUS:
            status_code = ERROR_STATUS[error_class]
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.warning("request_failed",
                   path=request.url.path,
                   error_type=type(exc).__name__,
                   status_code=status_code,
                   error=str(exc))
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception",
                 path=request.url.path,
                 error=str(exc),
                 exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "request_id": request.headers.get("x-request-id"),
        },
    )


app.include_router(purchases.router, tags=["Purchases"])
app.include_router(trips.router, tags=["Trips"])
app.include_router(learning.router, tags=["Learning"])


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness plus a round trip to the database"""
    try:
        async with sessionmanager.session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "error": str(e)},
        )

    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": VERSION,
        "services": {"database": "connected"},
    }


@app.get("/", tags=["System"])
async def root():
    return {
        "name": "Household Planner API",
        "version": VERSION,
        "docs": "/docs" if settings.environment != "production" else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
