"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Creates the storage repository and the TTL cache for the process lifetime
- Registers API routes (tracking, stats, admin)
- No business logic should be written here
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection
from app.db.indexes import create_indexes
from app.repositories.dependencies import build_repository
from app.services.cache_service import TTLCache
from app.api import tracking, stats, admin

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("🚀 Starting QR Track service...")

    try:
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        if settings.STORAGE_BACKEND == "mongo":
            logger.info("Connecting to MongoDB...")
            await connect_to_mongo()
            logger.info("✅ MongoDB connected")

            logger.info("Creating database indexes...")
            await create_indexes()
            logger.info("✅ Database indexes created")
        else:
            logger.warning("⚠️ Using in-memory storage; data is lost on shutdown")

        app.state.repository = build_repository()
        app.state.cache = TTLCache(default_ttl=settings.STATS_CACHE_TTL_SECONDS)

        if not await app.state.repository.ping():
            logger.warning("⚠️ Storage health check failed during startup")
        else:
            logger.info("✅ Storage health check passed")

        logger.info("🎉 QR Track service started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Storage backend: {settings.STORAGE_BACKEND}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    logger.info("🛑 Shutting down QR Track service...")

    app.state.cache.clear()
    app.state.repository = None

    if settings.STORAGE_BACKEND == "mongo":
        await close_mongo_connection()
        logger.info("✅ MongoDB connection closed")

    logger.info("👋 QR Track service shut down successfully")


app = FastAPI(
    title="QR Track",
    description="Scan/download tracking and counter reconciliation for QR-linked documents and business cards",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,  # Disable docs in production
    redoc_url="/redoc" if settings.is_development else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log slow requests
    if process_time > 2.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


# Register API routes
app.include_router(tracking.public_router)
app.include_router(tracking.router, prefix=settings.API_PREFIX, tags=["Tracking"])
app.include_router(stats.router, prefix=settings.API_PREFIX, tags=["Stats"])
app.include_router(admin.router, prefix=f"{settings.API_PREFIX}/admin", tags=["Admin"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "QR Track API",
        "version": APP_VERSION,
        "description": "Scan/download tracking and counter reconciliation",
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Comprehensive health check endpoint.
    Checks storage connectivity.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    repository = getattr(request.app.state, "repository", None)
    storage_healthy = repository is not None and await repository.ping()
    health_status["checks"]["storage"] = "healthy" if storage_healthy else "unhealthy"
    health_status["checks"]["backend"] = settings.STORAGE_BACKEND

    if not storage_healthy:
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check(request: Request):
    """
    Readiness probe - indicates if app is ready to receive traffic.
    """
    repository = getattr(request.app.state, "repository", None)
    if repository is not None and await repository.ping():
        return {"status": "ready"}
    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": "storage_unavailable"}
    )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    """
    Liveness probe - indicates if app is alive.
    """
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
