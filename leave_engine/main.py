"""
Leave Management Engine - FastAPI Application

- /docs and /openapi.json stay at root level, routers live under API_PREFIX
- Middleware order: CORS → CorrelationId → Logging
- Every error leaves as {"success": false, "errors": [{"msg", "code", "details"}]}
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from starlette.exceptions import HTTPException as StarletteHTTPException

import leave_engine.models  # noqa: F401  Force model registration with SQLAlchemy
from leave_engine.core.config import settings
from leave_engine.core.exceptions import AppException
from leave_engine.core.init_system import init_system_data
from leave_engine.core.logging import setup_logging
from leave_engine.core.middleware import CorrelationIdMiddleware, LoggingMiddleware
from leave_engine.database import init_db, SessionLocal
from leave_engine.models import LeaveType
from leave_engine.routers.api_router import api_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema and seed the default leave types before serving."""
    logger.info(f"Starting {settings.app_name} v{settings.version} ({settings.environment})")
    try:
        init_db()
        init_system_data()
    except Exception as e:
        logger.error(f"✗ Startup failed: {e}")
        raise
    logger.info("✓ Leave engine ready")

    yield

    logger.info("Gracefully shutting down...")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Leave balances, policies and approval workflow for the HR dashboard",
    docs_url="/docs",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Last added runs first
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.request_id_header, "X-Process-Time"],
)


def error_response(status_code: int, errors: List[dict]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "errors": errors})


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed payloads: one entry per offending field."""
    errors = [
        {
            "field": str(error["loc"][-1]) if error["loc"] else "unknown",
            "msg": error["msg"],
            "code": "VALIDATION_ERROR",
        }
        for error in exc.errors()
    ]
    logger.warning("Request validation failed", extra={"path": request.url.path, "errors": errors})
    return error_response(422, errors)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Leave rule violations, missing records and write conflicts."""
    logger.warning(f"{exc.error_code}: {exc.message}", extra={"code": exc.error_code, "path": request.url.path})
    error = {"msg": exc.message, "code": exc.error_code}
    if exc.details:
        error["details"] = exc.details
    return error_response(exc.status_code, [error])


@app.exception_handler(StarletteHTTPException)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: Union[HTTPException, StarletteHTTPException]):
    msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, [{"msg": msg, "code": f"HTTP_{exc.status_code}"}])


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled server error", extra={"path": request.url.path})
    return error_response(500, [{"msg": "An unexpected server error occurred.", "code": "INTERNAL_ERROR"}])


app.include_router(api_router, prefix=settings.api_prefix)


# ============================================================================
# OPERATIONAL ENDPOINTS (at root level)
# ============================================================================
@app.get("/", tags=["Health"])
def root():
    return {
        "message": "Leave Management Engine API",
        "version": settings.version,
        "docs": "/docs",
        "api": settings.api_prefix,
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness probe."""
    return {
        "status": "up",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "environment": settings.environment,
    }


@app.get("/readiness", tags=["Health"])
def readiness_check():
    """Readiness probe: the database answers and the leave tables exist."""
    try:
        with SessionLocal() as session:
            leave_types = session.execute(select(func.count()).select_from(LeaveType)).scalar_one()
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="Service not ready")
    return {
        "status": "ready",
        "components": {"database": "connected"},
        "leave_types": leave_types,
    }
