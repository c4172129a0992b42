"""
API Version 1 Router.

Combines all API endpoints under /api/v1 prefix.
"""

from fastapi import APIRouter

from steersolo.api.v1.endpoints import (
    admin,
    auth,
    bookings,
    cart,
    courses,
    orders,
    payments,
    products,
    rewards,
    shops,
    subscriptions,
    webhooks,
    wishlist,
)

router = APIRouter()

# Include endpoint routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(shops.router, prefix="/shops", tags=["Shops"])
router.include_router(products.router, prefix="/products", tags=["Products"])
router.include_router(cart.router, prefix="/cart", tags=["Cart"])
router.include_router(orders.router, prefix="/orders", tags=["Orders"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])
router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
router.include_router(wishlist.router, prefix="/wishlist", tags=["Wishlist"])
router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
router.include_router(rewards.router, prefix="/rewards", tags=["Rewards"])
router.include_router(courses.router, prefix="/courses", tags=["Courses"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
