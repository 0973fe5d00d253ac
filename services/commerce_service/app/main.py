"""FastAPI application for the Commerce Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.commerce_service.routers import (
    admin_inventory_router,
    admin_orders_router,
    cart_router,
    checkout_router,
    orders_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Commerce Service FastAPI app."""
    app = FastAPI(
        title="Lanka Chemist Commerce Service",
        version="0.1.0",
        description="Wholesale cart, checkout, order lifecycle and stock ledger.",
    )

    # Rate limiter state (place-order is limited per customer)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "commerce"}

    # Customer routes
    app.include_router(cart_router, prefix="/api")
    app.include_router(checkout_router, prefix="/api")
    app.include_router(orders_router, prefix="/api")

    # Admin routes
    app.include_router(admin_orders_router, prefix="/api")
    app.include_router(admin_inventory_router, prefix="/api")

    return app


app = create_app()
