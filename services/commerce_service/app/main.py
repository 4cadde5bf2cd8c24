"""FastAPI application for the Commerce Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.commerce_service.routers import (
    admin_catalog_router,
    cart_router,
    catalog_router,
    checkout_router,
    coupons_router,
    inventory_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Commerce Service FastAPI app."""
    app = FastAPI(
        title="Commerce Service",
        version="0.1.0",
        description="Multi-store inventory, carts, coupons and checkout pricing.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "commerce"}

    # Public and member routes
    app.include_router(catalog_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(coupons_router)

    # Store operator routes (ownership checked per store)
    app.include_router(inventory_router)

    # Admin routes
    app.include_router(admin_catalog_router, prefix="/admin")

    return app


app = create_app()
