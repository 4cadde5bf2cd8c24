"""Commerce service routers package."""

from services.commerce_service.routers.cart import router as cart_router
from services.commerce_service.routers.catalog import admin_router as admin_catalog_router
from services.commerce_service.routers.catalog import router as catalog_router
from services.commerce_service.routers.checkout import router as checkout_router
from services.commerce_service.routers.coupons import router as coupons_router
from services.commerce_service.routers.inventory import router as inventory_router

__all__ = [
    "admin_catalog_router",
    "cart_router",
    "catalog_router",
    "checkout_router",
    "coupons_router",
    "inventory_router",
]
