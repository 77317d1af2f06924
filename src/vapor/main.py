"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from vapor.admin.router import router as admin_router
from vapor.auth.router import router as auth_router
from vapor.cart.router import router as cart_router
from vapor.catalog.router import router as catalog_router
from vapor.community.router import router as community_router
from vapor.config import get_settings
from vapor.database import close_db, init_db
from vapor.health.router import router as health_router
from vapor.integrations.router import router as integrations_router
from vapor.library.router import router as store_router
from vapor.middleware import setup_middleware
from vapor.notifications.router import router as notifications_router
from vapor.payments.router import router as payments_router
from vapor.redis_client import close_redis, init_redis
from vapor.users.router import router as users_router
from vapor.wishlist.router import router as wishlist_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_enabled:
        await init_redis(settings.redis_url)
    else:
        logger.warning("redis_disabled", detail="rate limiting, lockout and email throttling are off")

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Vapor API",
        description="Backend API for the Vapor game storefront",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(catalog_router)
    app.include_router(cart_router)
    app.include_router(store_router)
    app.include_router(payments_router)
    app.include_router(wishlist_router)
    app.include_router(community_router)
    app.include_router(notifications_router)
    app.include_router(admin_router)
    app.include_router(integrations_router)

    return app


app = create_app()
