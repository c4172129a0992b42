"""ORM models. Importing this package registers every table."""

from steersolo.models.activity import ActivityLog
from steersolo.models.billing import (
    FeatureUsage,
    PayoutStatus,
    RevenueTransaction,
    ShopPayout,
    SpecialOffer,
    SubscriptionHistory,
    SubscriptionPlan,
)
from steersolo.models.order import (
    Booking,
    BookingStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentChoice,
    PaymentStatus,
)
from steersolo.models.rewards import (
    ClaimStatus,
    Course,
    CourseEnrollment,
    Prize,
    PrizeClaim,
    RewardsPoints,
)
from steersolo.models.shop import (
    Coupon,
    DiscountType,
    Product,
    ProductReview,
    ProductType,
    Shop,
    WishlistItem,
)
from steersolo.models.user import User, UserRole

__all__ = [
    "ActivityLog",
    "Booking",
    "BookingStatus",
    "ClaimStatus",
    "Coupon",
    "Course",
    "CourseEnrollment",
    "DiscountType",
    "FeatureUsage",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentChoice",
    "PaymentStatus",
    "PayoutStatus",
    "Prize",
    "PrizeClaim",
    "Product",
    "ProductReview",
    "ProductType",
    "RevenueTransaction",
    "RewardsPoints",
    "Shop",
    "ShopPayout",
    "SpecialOffer",
    "SubscriptionHistory",
    "SubscriptionPlan",
    "User",
    "UserRole",
    "WishlistItem",
]
