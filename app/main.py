"""
Main Application Entry Point
============================

Responsibilities:
- Initialize FastAPI application
- Configure middleware stack
- Register API routers
- Set up exception handlers
- Provide health check endpoints
- Configure CORS

IMPORTANT:
    Database tables are managed via Alembic migrations.
    Do NOT use Base.metadata.create_all() in production.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.envelope import error_response, ok
from app.core.exceptions import AppException, ErrorCode, error_code_for_status
from app.core.logging import get_logger
from app.db.session import check_database_connection

# Import models for Alembic detection
from app import models  # noqa: F401

# Import routers
from app.routes import (
    appraisal_routes,
    audit_routes,
    auth_routes,
    automation_routes,
    contact_routes,
    crew_routes,
    dashboard_routes,
    invoice_routes,
    job_routes,
    listing_routes,
    material_routes,
    notification_routes,
    org_routes,
    prospecting_routes,
    travel_time_routes,
)

# Import middleware
from app.middleware.auth_middleware import (
    AuthMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
)

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Application Lifespan Handler
# =====================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup logs the app identity and checks the database; shutdown
    only logs.
    """
    logger.info(
        "Application starting",
        extra={
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }
    )

    if not check_database_connection():
        logger.error("Database connection failed on startup")
    else:
        logger.info("Database connection established")

    try:
        yield
    except asyncio.CancelledError:
        logger.debug("Application shutdown requested (CancelledError caught)")
        raise
    finally:
        logger.info("Application shutdown complete")


# =====================================
# FastAPI App Initialization
# =====================================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    FieldOps - Multi-Tenant Business Operations Backend

    ## Features

    * **Sales pipeline**: Contacts, appraisals and listings with scored insights
    * **Field operations**: Jobs, hours, costs, materials and profitability guardrails
    * **Billing**: Invoices, payments and PDF invoices
    * **Notifications**: In-app notifications from an idempotent sweep

    ## Authentication

    Use the `/auth/login` endpoint to obtain access and refresh tokens.
    Include the access token in the `Authorization` header as `Bearer <token>`.

    ## Responses

    Every JSON response is wrapped as `{"ok": true, "data": ...}` or
    `{"ok": false, "error": {"code": ..., "message": ...}}`.
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)


# =====================================
# CORS Configuration
# =====================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.cors_methods_list,
    allow_headers=settings.cors_headers_list,
    max_age=3600,  # Cache preflight requests for 1 hour
)


# =====================================
# Custom Middleware
# =====================================

# Security headers (should be added early)
app.add_middleware(SecurityHeadersMiddleware)

# Rate limiting
app.add_middleware(RateLimitMiddleware)

# Request context and access logging
app.add_middleware(AuthMiddleware)


# =====================================
# Exception Handlers
# =====================================

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    logger.warning(
        "Application exception",
        extra={
            "exception_type": type(exc).__name__,
            "code": exc.code.value,
            "message": exc.message,
            "status_code": exc.status_code,
            "path": request.url.path,
        }
    )
    headers = None
    if exc.code == ErrorCode.RATE_LIMITED and "retry_after_seconds" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after_seconds"])}
    return error_response(exc.status_code, exc.code, exc.message, details=exc.details, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors.

    Provides detailed error messages for invalid requests.
    """
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        "Request validation error",
        extra={
            "path": request.url.path,
            "errors": errors,
        }
    )

    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VALIDATION_ERROR,
        "Validation error",
        details={"errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(
        exc.status_code,
        error_code_for_status(exc.status_code),
        message,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(
        "Integrity error",
        extra={"path": request.url.path, "error": str(exc.orig)},
    )
    return error_response(
        status.HTTP_409_CONFLICT,
        ErrorCode.CONFLICT,
        "Resource conflicts with existing data",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Logs the error and returns a generic error message.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    # Don't expose internal errors in production
    if settings.is_production:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred",
        )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        str(exc),
        details={"type": type(exc).__name__},
    )


# =====================================
# Register Routers
# =====================================

app.include_router(auth_routes.router)
app.include_router(org_routes.router)
app.include_router(crew_routes.router)
app.include_router(contact_routes.router)
app.include_router(prospecting_routes.router)
app.include_router(appraisal_routes.router)
app.include_router(listing_routes.router)
app.include_router(job_routes.router)
app.include_router(dashboard_routes.router)
app.include_router(invoice_routes.router)
app.include_router(material_routes.router)
app.include_router(notification_routes.router)
app.include_router(automation_routes.router)
app.include_router(audit_routes.router)
app.include_router(travel_time_routes.router)


# =====================================
# Health Check Endpoints
# =====================================

@app.get(
    "/",
    tags=["Health"],
    summary="Basic Health Check",
)
def health_check():
    return ok({
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    })


@app.get(
    "/health",
    tags=["Health"],
    summary="Detailed Health Check",
    description="Returns detailed health status including database connectivity.",
)
def detailed_health_check():
    db_healthy = check_database_connection()

    return ok({
        "status": "healthy" if db_healthy else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
        },
    })
