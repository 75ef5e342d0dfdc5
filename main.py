"""
FastAPI application entry point
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import payments as payments_routes
from api.routes import shipping as shipping_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from api.middleware.locale import LocaleMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.i18n import t
from core.logging_config import get_logger, configure_logging
from core.settings import payment_settings
from infrastructure.database import create_tables
from infrastructure.external.cache import create_order_lock


# Configure logging explicitly at the entry point
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan."""
    # Create tables on startup in development only; production runs Alembic migrations
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )

    # Order lock: shared through Redis when configured, in-process otherwise
    app.state.order_lock = create_order_lock(settings)
    logger.info(
        "order_lock_initialized",
        backend="redis" if settings.redis.url else "in_process",
        genpay_environment=payment_settings.genpay.environment,
    )

    yield
    # Shutdown
    await app.state.order_lock.close()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="GenPay payment gateway and GenLog logistics connector",
)

# Middleware (executed bottom-up)
# 1. Request ID (runs first, provides request_id to the others)
app.add_middleware(RequestIDMiddleware)

# 2. Request logging (needs request_id)
app.add_middleware(LoggingMiddleware)

# 2.5 Locale resolution
app.add_middleware(LocaleMiddleware)

# 3. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
register_exception_handlers(app)


# Routes
app.include_router(payments_routes.router, prefix="/api/v1")
app.include_router(shipping_routes.router, prefix="/api/v1")


# Root
@app.get("/", tags=["Root"])
async def root():
    """API root."""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message=t("welcome")
    )


# Health check
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return success_response(data={"status": "healthy"}, message=t("health.ok"))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
