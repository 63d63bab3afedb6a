from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, FileResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from app.core.config import settings, DEFAULT_JWT_SECRET
from app.core.database import init_db, close_db, AsyncSessionLocal
from app.core.exceptions import DigiDiplomaError
from app.core.logging_config import logger
from app.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
    MaintenanceModeMiddleware,
    upload_path_limits,
)
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.api.router import api_router
from app.api.endpoints import realtime
from app.services.maintenance_service import load_maintenance_state
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError


def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if settings.is_production() and (not settings.JWT_SECRET or settings.JWT_SECRET == DEFAULT_JWT_SECRET):
        errors.append("JWT_SECRET is not set or using default value")

    # Warnings: App can function but some features degrade
    if not settings.is_r2_configured():
        warnings.append("R2 credentials not set - uploads are stored on local disk")
    if not settings.is_razorpay_configured():
        warnings.append("RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET not set - payments disabled")
    if not settings.SENDGRID_API_KEY and not settings.SMTP_USER:
        warnings.append("No SendGrid key or SMTP credentials - emails will not be delivered")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME} API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info("=" * 60)

    validate_critical_config()

    await init_db()
    logger.info("[Startup] Database tables ready")

    try:
        async with AsyncSessionLocal() as session:
            enabled = await load_maintenance_state(session)
        logger.info(f"[Maintenance] Loaded state: {'enabled' if enabled else 'disabled'}")
    except SQLAlchemyError as e:
        logger.error(f"[Maintenance] Could not load state, assuming disabled: {e}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME} API...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Study materials, subjects, payments and projects for diploma students",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False  # Prevent 307 redirects that break CORS
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(MaintenanceModeMiddleware)
app.add_middleware(
    RequestSizeLimitMiddleware,
    max_size=settings.MAX_REQUEST_SIZE,
    path_limits=upload_path_limits(),
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(DigiDiplomaError)
async def digidiploma_exception_handler(request: Request, exc: DigiDiplomaError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, request.url.path, error_code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": f"{field}: {message}" if field else message,
            "details": [
                {"field": ".".join(str(part) for part in e.get("loc", ())), "message": e.get("msg")}
                for e in errors
            ],
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    content = {"error": "Internal server error"}
    if settings.DEBUG:
        content["message"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Local uploads (R2 disabled or fallback)
@app.get("/uploads/{file_path:path}", tags=["Uploads"])
async def serve_upload(file_path: str):
    upload_root = settings.UPLOAD_DIR.resolve()
    target = (upload_root / file_path).resolve()

    if upload_root not in target.parents or not target.is_file():
        return JSONResponse(status_code=404, content={"error": "File not found", "path": file_path})

    if target.suffix.lower() == ".pdf":
        return FileResponse(
            target,
            media_type="application/pdf",
            headers={"Content-Disposition": f'inline; filename="{target.name}"'},
        )
    return FileResponse(target)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health"
    }


# Include API router
app.include_router(api_router, prefix="/api")
app.include_router(realtime.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.SERVER_HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
