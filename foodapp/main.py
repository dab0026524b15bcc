"""
FastAPI Application Entry Point

Food Ordering Service - Hybrid Architecture
Supports both Mock services (development) and Real APIs (production).

Routers:
    - /api/menu-items, /api/categories: Storefront catalog
    - /api/cart, /api/orders, /api/addresses: Checkout flow
    - /api/offers, /api/loyalty, /api/otp: Promotions and verification
    - /api/users, /api/notifications: Customer account
    - /api/payments, /api/webhooks/auth: Gateway and identity webhooks
    - /api/admin: Admin panel API
    - /menu, /admin: Server-rendered pages
    - /health: System health check
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from foodapp.api import routers
from foodapp.core.config import get_settings, setup_logging
from foodapp.core.errors import register_exception_handlers
from foodapp.core.utils import utcnow
from foodapp.database import engine, get_db, init_db
from foodapp.schemas import HealthResponse
from foodapp.services.media import get_media_service
from foodapp.services.notifications import get_notification_service
from foodapp.services.payment import get_payment_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    logger.info(f"✅ Payment Service: {get_payment_service().provider_name}")
    logger.info(f"✅ Notification Service: {get_notification_service().provider_name}")
    logger.info(f"✅ Media Service: {get_media_service().provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Food ordering service: storefront, cart, checkout, order tracking, "
        "offers, loyalty points and an admin panel. Mock integrations in "
        "development, Stripe/Twilio/SendGrid/Cloudinary in production."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for router in routers:
    app.include_router(router)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍛 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "menu": "/menu",
        "admin": "/admin",
        "health": "/health",
    }


async def _redis_status() -> str:
    client = aioredis.from_url(settings.redis_url, socket_timeout=2)
    try:
        await client.ping()
        return "healthy"
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return f"unhealthy: {str(e)}"
    finally:
        await client.aclose()


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify all system components are operational."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = await _redis_status()

    payment_status = "healthy" if await get_payment_service().health_check() else "unhealthy"
    notification_status = "healthy" if await get_notification_service().health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, payment_status, notification_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        environment=settings.env_mode.value,
        database=db_status,
        redis=redis_status,
        payment=payment_status,
        notifications=notification_status,
        timestamp=utcnow(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("foodapp.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
