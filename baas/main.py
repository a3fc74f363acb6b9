import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from baas.api.deps import format_only_api_key, optional_api_key, strict_api_key
from baas.api.middleware import UsageTrackingMiddleware
from baas.api.v1 import api_keys, auth, projects, usage
from baas.api.v1.services import API_VERSION, create_services_router
from baas.core.config import get_settings
from baas.core.exceptions import BaaSError, InternalError
from baas.core.logging import setup_logging
from baas.db.session import create_db_and_tables
from baas.schemas.common import HealthResponse
from baas.services.retention import run_retention_sweeper

# Initialize logging
setup_logging()

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the usage retention sweep for the life of the app."""
    create_db_and_tables()
    sweeper = asyncio.create_task(run_retention_sweeper())
    logger.info(f"BaaS API started (env={settings.ENV}, legacy_auth={settings.LEGACY_FORMAT_ONLY_AUTH})")

    yield

    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    logger.info("BaaS API shut down")


app = FastAPI(
    title="BaaS API",
    description="Project API keys, capability checks and usage analytics",
    version=API_VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["X-Request-ID"] = str(uuid.uuid4())
    return response

# Usage recording runs outside the exception handlers so it sees the final status
app.add_middleware(UsageTrackingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

# Trusted hosts in production
if settings.ENV == "production":
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)


@app.exception_handler(BaaSError)
async def baas_error_handler(request: Request, exc: BaaSError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    try:
        reason = HTTPStatus(exc.status_code).phrase
    except ValueError:
        reason = "Error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": reason, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Global exception handler
@app.exception_handler(Exception)
async def internal_server_error(request: Request, exc: Exception):
    logger.error(f"Internal server error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


# Include routers
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(projects.router, prefix="/projects", tags=["projects"])
app.include_router(api_keys.router, prefix="/api-keys", tags=["api-keys"])
app.include_router(usage.router, prefix="/usage", tags=["usage"])

app.include_router(create_services_router(strict_api_key), prefix="/api/v1", tags=["api"])
if settings.LEGACY_FORMAT_ONLY_AUTH:
    logger.warning("Legacy format-only API key checks are enabled on /api/legacy")
    app.include_router(create_services_router(format_only_api_key), prefix="/api/legacy", tags=["api-legacy"])
app.include_router(create_services_router(optional_api_key), prefix="/api", tags=["api-sandbox"])


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc)
    )
