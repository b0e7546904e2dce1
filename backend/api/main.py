"""
Waybill Tracker API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from core.config import get_settings
from core.errors import WaybillTrackerError
from core.logging import configure_logging

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging(settings)
    logger.info("app.startup", version=settings.app_version, env=settings.app_env)
    yield
    logger.info("app.shutdown")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Inbound waybill receiving, count reconciliation and discrepancy reporting",
    lifespan=lifespan,
)


@app.exception_handler(WaybillTrackerError)
async def domain_error_handler(request: Request, exc: WaybillTrackerError):
    if exc.status_code >= 500:
        logger.error("request.failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def _is_unique_violation(exc: IntegrityError) -> bool:
    # asyncpg reports SQLSTATE 23505; SQLite only says so in the message.
    if getattr(exc.orig, "sqlstate", None) == "23505":
        return True
    return "unique" in str(exc.orig).lower()


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    if _is_unique_violation(exc):
        # Unique constraints lost to a concurrent writer after the explicit check passed.
        logger.warning("request.integrity_conflict", path=request.url.path, error=str(exc.orig))
        return JSONResponse(status_code=409, content={"detail": "Conflicting record already exists."})

    logger.warning("request.integrity_invalid", path=request.url.path, error=str(exc.orig))
    return JSONResponse(status_code=422, content={"detail": "Record violates a data constraint."})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import (  # noqa: E402
    auth,
    counts,
    dashboard,
    products,
    reports,
    users,
    waybills,
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(products.router)
app.include_router(waybills.router)
app.include_router(counts.router)
app.include_router(reports.router)
app.include_router(dashboard.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
