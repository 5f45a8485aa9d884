"""
FastAPI Server
Main API server for Mantrify

Provides HTTP endpoints for authentication, mantras, sound files, account
deletion and administration.

Run:
    uvicorn src.api.server:app --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config.logging_config import configure_logging
from src.config.settings import get_app_settings
from src.database.seed import run_startup_checks
from src.database.session import check_db_connection, dispose_engine
from src.types.errors import AppError, ErrorCode

# Route modules
from src.routes.admin_routes import router as admin_router
from src.routes.auth_routes import router as auth_router
from src.routes.mantra_routes import router as mantra_router
from src.routes.sound_routes import router as sound_router
from src.routes.user_routes import router as user_router

logger = logging.getLogger(__name__)

# Status codes without a more specific error code
_HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTH_FAILED,
    status.HTTP_403_FORBIDDEN: ErrorCode.UNAUTHORIZED_ACCESS,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
}


# ============================================================
# SERVICE STARTUP/SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup checks, then dispose pooled connections on shutdown"""
    configure_logging()
    logger.info("🚀 Starting Mantrify API...")

    await run_startup_checks()

    logger.info("✅ Mantrify API started")
    yield

    logger.info("🛑 Shutting down...")
    await dispose_engine()
    logger.info("✅ Shutdown complete")


# ============================================================
# ERROR HANDLING
# ============================================================

def _error_response(error: AppError) -> JSONResponse:
    include_details = get_app_settings().is_development
    return JSONResponse(status_code=error.status_code, content=error.to_dict(include_details))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc.code.value} {exc.message} ({exc.details})")
    return _error_response(exc)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    response = _error_response(AppError(code, str(exc.detail), exc.status_code))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return _error_response(AppError(ErrorCode.VALIDATION_ERROR, "Invalid request", 400, errors))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error_response(AppError(ErrorCode.INTERNAL_ERROR, "Internal server error", 500, str(exc)))


# ============================================================
# FAST API SETUP
# ============================================================

def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, handlers and routers"""
    settings = get_app_settings()

    application = FastAPI(
        title="Mantrify API",
        description="Mantra composition, streaming and account management",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    application.include_router(auth_router)
    application.include_router(user_router)
    application.include_router(mantra_router)
    application.include_router(sound_router)
    application.include_router(admin_router)

    application.add_api_route("/health", health_check, methods=["GET"], tags=["health"])

    return application


# ============================================================
# HEALTH & STATUS ENDPOINTS
# ============================================================

async def health_check():
    """
    Health check endpoint.

    Reports database connectivity; returns 503 when the database is unreachable.
    """
    database_ok = await check_db_connection()
    body = {
        "status": "ok" if database_ok else "degraded",
        "database": "connected" if database_ok else "unreachable",
        "timestamp": datetime.now().isoformat(),
    }
    if not database_ok:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


app = create_app()
