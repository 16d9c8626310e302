"""
Bookstore storefront service
Catalog, cart, wishlist, checkout and the order fulfillment dashboard
"""

import os
import subprocess
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.core import RequestLoggingMiddleware, ServiceHealth, get_logger, setup_logging
from bookstore.api.admin_routes import router as admin_router
from bookstore.api.dependencies import close_postgrest_client
from bookstore.api.graphql import graphql_app
from bookstore.api.routes import cart_router, catalog_router, orders_router, wishlist_router
from bookstore.core_settings import get_settings
from bookstore.infrastructure.auth import user_id_from_request
from bookstore.infrastructure.db import engine, init_models
from bookstore.infrastructure.table_client import BackendError

settings = get_settings()

SERVICE_NAME = "bookstore-service"
SERVICE_VERSION = settings.SERVICE_VERSION
SERVICE_DESCRIPTION = "Bookstore storefront and order fulfillment service"
SERVICE_ROOT = os.path.join(os.path.dirname(__file__), "..")

setup_logging(
    service_name=SERVICE_NAME,
    level=settings.LOG_LEVEL,
    environment=settings.ENVIRONMENT,
    version=SERVICE_VERSION,
)

logger = get_logger(__name__)

def run_migrations() -> None:
    logger.info("Running database migrations")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=SERVICE_ROOT,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.error(f"Migration error: {e}")
        return
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {SERVICE_NAME} version {SERVICE_VERSION}")

    if settings.BACKEND == "sql":
        if settings.RUN_MIGRATIONS:
            run_migrations()
        init_models()
        logger.info("Database models initialized")

    logger.info(f"{SERVICE_NAME} started successfully", extra={"extra_fields": {"backend": settings.BACKEND}})
    yield
    logger.info(f"Shutting down {SERVICE_NAME}")
    if settings.BACKEND == "postgrest":
        close_postgrest_client()

app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware, user_resolver=user_id_from_request)

@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error(f"Backend error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage backend unavailable"})

health_service = ServiceHealth(
    SERVICE_NAME,
    SERVICE_VERSION,
    engine=engine if settings.BACKEND == "sql" else None,
    redis_url=settings.REDIS_URL,
    required_config={
        "SUPABASE_JWT_SECRET": settings.SUPABASE_JWT_SECRET,
        **(
            {"SUPABASE_URL": settings.SUPABASE_URL, "SUPABASE_SERVICE_ROLE_KEY": settings.SUPABASE_SERVICE_ROLE_KEY}
            if settings.BACKEND == "postgrest"
            else {"DATABASE_URL": settings.database_url}
        ),
    },
)
app.include_router(health_service.create_health_router())

app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(wishlist_router)
app.include_router(orders_router)
app.include_router(admin_router)
app.include_router(graphql_app, prefix="/graphql", include_in_schema=False)

@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs",
    }

@app.get("/info")
async def info():
    """Service information endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": settings.ENVIRONMENT,
        "backend": settings.BACKEND,
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "graphql": "/graphql",
            "docs": "/api/docs",
        },
    }
