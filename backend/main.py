"""
Shift Earnings Engine - Main Application Entry Point

Shift lifecycle, auto-closing, bonus rules and the earnings ledger for
deposit processors.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.db.session import engine
from backend.middleware.audit_log import AuditLogMiddleware
from backend.routers.v1 import admin, deposits, earnings, shifts
from engines.errors import ConflictError, NotFoundError, ShiftEngineError, ValidationError

settings = get_settings()

# Initialize Sentry for error monitoring
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"shift-earnings@{settings.app_version}",
        traces_sample_rate=0.1 if settings.environment == "production" else 1.0,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Database connection pool is lazy-initialized by SQLAlchemy
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Shift lifecycle and earnings computation for deposit processors: "
        "shift windows on the UTC+3 business day, automatic closing of "
        "overdue shifts, tiered deposit bonuses and an append-only earnings ledger."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    openapi_url="/api/openapi.json" if settings.debug else None,
)

# Audit logging middleware (outermost, captures all requests)
app.add_middleware(AuditLogMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


ERROR_STATUS: dict[type[ShiftEngineError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


@app.exception_handler(ShiftEngineError)
async def shift_engine_error_handler(request: Request, exc: ShiftEngineError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        500,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Health check endpoints
@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "shift-earnings-api"}


@app.get("/health/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    return {
        "status": "ready",
        "service": "shift-earnings-api",
        "version": settings.app_version,
        "environment": settings.environment,
    }


# API v1 routes
app.include_router(
    shifts.router,
    prefix=f"{settings.api_v1_prefix}/shifts",
    tags=["Shifts"],
)
app.include_router(
    deposits.router,
    prefix=f"{settings.api_v1_prefix}/deposits",
    tags=["Deposits"],
)
app.include_router(
    earnings.router,
    prefix=f"{settings.api_v1_prefix}/earnings",
    tags=["Earnings"],
)
app.include_router(
    admin.router,
    prefix=f"{settings.api_v1_prefix}/admin",
    tags=["Admin"],
)
