"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from estate_access.core.config import settings
from estate_access.core.exceptions import AccessControlError, AuthenticationError, StoreError
from estate_access.core.middleware import setup_middleware
from estate_access.core.rate_limiter import limiter
from estate_access.db.session import SessionLocal
from estate_access.services.cache_service import cache_service

from estate_access.api.auth import router as auth_router
from estate_access.api.menu import router as menu_router
from estate_access.api.admin import router as admin_router
from estate_access.api.roles import router as roles_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("estate_access")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Estate Access API")
    if settings.CACHE_ENABLED:
        if cache_service.health_check():
            logger.info("Redis connected, access cache enabled")
        else:
            logger.warning("Redis not available, menus will be resolved uncached")

    yield

    logger.info("Shutting down Estate Access API")


app = FastAPI(
    title="Estate Access API",
    description="Role-based access control and menu visibility",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AccessControlError)
async def access_control_exception_handler(request: Request, exc: AccessControlError):
    content = {"detail": exc.message, "error": exc.kind}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    error = StoreError()
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.message, "error": error.kind},
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(menu_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(roles_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """System health check: DB and Redis."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.warning("Database health check failed")
    finally:
        db.close()

    return {
        "database": "ok" if db_ok else "error",
        "redis": "ok" if cache_service.health_check() else "unavailable",
        "status": "healthy" if db_ok else "degraded",
    }
