"""
Shop Module - storefront functionality.

Features:
- Shops and product/service catalogs
- Redis shopping cart
- Coupons
- Orders and bookings with status tables
- Reviews and wishlists
"""

from steersolo.modules.shop.bookings import BookingService
from steersolo.modules.shop.cart import CartService
from steersolo.modules.shop.coupons import CouponService, CouponValidation
from steersolo.modules.shop.orders import OrderService
from steersolo.modules.shop.reviews import ReviewService
from steersolo.modules.shop.service import ShopService
from steersolo.modules.shop.wishlist import WishlistService

__all__ = [
    "BookingService",
    "CartService",
    "CouponService",
    "CouponValidation",
    "OrderService",
    "ReviewService",
    "ShopService",
    "WishlistService",
]
