"""
Response builders shared by the v1 endpoints.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from steersolo.models.activity import ActivityLog
from steersolo.models.billing import ShopPayout, SubscriptionPlan
from steersolo.models.order import Booking, Order, OrderItem
from steersolo.models.rewards import Course, CourseEnrollment, Prize, PrizeClaim
from steersolo.models.shop import Coupon, Product, ProductReview, Shop
from steersolo.models.user import User
from steersolo.modules.shop.lifecycle import next_booking_statuses, next_order_statuses


def money(value: Decimal | None) -> str | None:
    """Naira amount as a two-decimal string, e.g. "15000.00"."""
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(Decimal("0.01")))


def rating(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def iso(value: datetime | date | time | None) -> str | None:
    return value.isoformat() if value is not None else None


def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone": user.phone,
        "role": user.role.value,
        "is_subscribed": user.is_subscribed,
        "subscription_expires_at": iso(user.subscription_expires_at),
        "subscription_plan_id": user.subscription_plan_id,
        "subscription_type": user.subscription_type,
        "created_at": iso(user.created_at),
    }


def shop_to_dict(shop: Shop, private: bool = False) -> dict[str, Any]:
    """Public shop profile; private adds payment settings for the owner."""
    data = {
        "id": shop.id,
        "owner_id": shop.owner_id,
        "shop_name": shop.shop_name,
        "shop_slug": shop.shop_slug,
        "description": shop.description,
        "whatsapp_number": shop.whatsapp_number,
        "state": shop.state,
        "country": shop.country,
        "logo_url": shop.logo_url,
        "banner_url": shop.banner_url,
        "primary_color": shop.primary_color,
        "secondary_color": shop.secondary_color,
        "accent_color": shop.accent_color,
        "theme_mode": shop.theme_mode,
        "font_style": shop.font_style,
        "payment_method": shop.payment_method,
        "is_active": shop.is_active,
        "is_verified": shop.is_verified,
        "average_rating": rating(shop.average_rating),
        "total_reviews": shop.total_reviews,
        "created_at": iso(shop.created_at),
    }
    if private:
        data.update(
            bank_name=shop.bank_name,
            bank_account_name=shop.bank_account_name,
            bank_account_number=shop.bank_account_number,
            paystack_subaccount_code=shop.paystack_subaccount_code,
        )
    return data


def product_to_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "shop_id": product.shop_id,
        "name": product.name,
        "description": product.description,
        "type": product.type.value,
        "price": money(product.price),
        "stock_quantity": product.stock_quantity,
        "is_available": product.is_available,
        "duration_minutes": product.duration_minutes,
        "booking_required": product.booking_required,
        "image_url": product.image_url,
        "video_url": product.video_url,
        "average_rating": rating(product.average_rating),
        "total_reviews": product.total_reviews,
        "created_at": iso(product.created_at),
    }


def coupon_to_dict(coupon: Coupon) -> dict[str, Any]:
    return {
        "id": coupon.id,
        "shop_id": coupon.shop_id,
        "code": coupon.code,
        "discount_type": coupon.discount_type.value,
        "discount_value": money(coupon.discount_value),
        "min_order_amount": money(coupon.min_order_amount),
        "max_uses": coupon.max_uses,
        "used_count": coupon.used_count,
        "valid_from": iso(coupon.valid_from),
        "valid_until": iso(coupon.valid_until),
        "is_active": coupon.is_active,
    }


def order_item_to_dict(item: OrderItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "price": money(item.price),
        "quantity": item.quantity,
        "total": money(item.line_total),
    }


def order_to_dict(order: Order, items: list[OrderItem] | None = None) -> dict[str, Any]:
    """Order with items. Pass items when the collection was not eager loaded."""
    items = order.items if items is None else items
    return {
        "id": order.id,
        "order_number": order.order_number,
        "shop_id": order.shop_id,
        "customer_id": order.customer_id,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "payment_choice": order.payment_choice.value,
        "subtotal": money(order.subtotal),
        "discount_amount": money(order.discount_amount),
        "delivery_fee": money(order.delivery_fee),
        "total_amount": money(order.total_amount),
        "coupon_code": order.coupon_code,
        "payment_reference": order.payment_reference,
        "paid_at": iso(order.paid_at),
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "delivery_address": order.delivery_address,
        "delivery_city": order.delivery_city,
        "delivery_state": order.delivery_state,
        "notes": order.notes,
        "confirmed_at": iso(order.confirmed_at),
        "processing_at": iso(order.processing_at),
        "out_for_delivery_at": iso(order.out_for_delivery_at),
        "delivered_at": iso(order.delivered_at),
        "completed_at": iso(order.completed_at),
        "cancelled_at": iso(order.cancelled_at),
        "cancelled_by": order.cancelled_by,
        "created_at": iso(order.created_at),
        "items": [order_item_to_dict(item) for item in items],
        "next_statuses": next_order_statuses(order.status),
    }


def booking_to_dict(booking: Booking) -> dict[str, Any]:
    return {
        "id": booking.id,
        "shop_id": booking.shop_id,
        "service_id": booking.service_id,
        "service_name": booking.service.name if booking.service else None,
        "customer_id": booking.customer_id,
        "booking_date": iso(booking.booking_date),
        "booking_time": booking.booking_time.strftime("%H:%M"),
        "duration_minutes": booking.duration_minutes,
        "status": booking.status.value,
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "customer_phone": booking.customer_phone,
        "notes": booking.notes,
        "confirmed_at": iso(booking.confirmed_at),
        "completed_at": iso(booking.completed_at),
        "cancelled_at": iso(booking.cancelled_at),
        "next_statuses": next_booking_statuses(booking.status),
    }


def review_to_dict(review: ProductReview) -> dict[str, Any]:
    return {
        "id": review.id,
        "product_id": review.product_id,
        "customer_id": review.customer_id,
        "customer_name": review.customer_name,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": iso(review.created_at),
    }


def plan_to_dict(plan: SubscriptionPlan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "name": plan.name,
        "slug": plan.slug,
        "description": plan.description,
        "price_monthly": plan.price_monthly,
        "price_yearly": plan.price_yearly,
        "features": plan.features or [],
        "max_products": plan.max_products,
        "ai_features_enabled": plan.ai_features_enabled,
        "priority_support": plan.priority_support,
        "display_order": plan.display_order,
    }


def payout_to_dict(payout: ShopPayout) -> dict[str, Any]:
    return {
        "id": payout.id,
        "shop_id": payout.shop_id,
        "amount": money(payout.amount),
        "bank_name": payout.bank_name,
        "account_number": payout.account_number,
        "account_name": payout.account_name,
        "status": payout.status.value,
        "reference": payout.reference,
        "admin_notes": payout.admin_notes,
        "requested_at": iso(payout.requested_at),
        "processed_at": iso(payout.processed_at),
    }


def prize_to_dict(prize: Prize) -> dict[str, Any]:
    return {
        "id": prize.id,
        "title": prize.title,
        "description": prize.description,
        "points_required": prize.points_required,
        "image_url": prize.image_url,
        "stock_quantity": prize.stock_quantity,
        "is_active": prize.is_active,
    }


def claim_to_dict(claim: PrizeClaim) -> dict[str, Any]:
    return {
        "id": claim.id,
        "prize_id": claim.prize_id,
        "prize_title": claim.prize.title if claim.prize else None,
        "user_id": claim.user_id,
        "points_spent": claim.points_spent,
        "status": claim.status.value,
        "claimed_at": iso(claim.claimed_at),
        "fulfilled_at": iso(claim.fulfilled_at),
    }


def course_to_dict(course: Course, with_content: bool = False) -> dict[str, Any]:
    data = {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "image_url": course.image_url,
        "video_url": course.video_url,
        "reward_points": course.reward_points,
        "target_audience": course.target_audience,
        "is_active": course.is_active,
        "created_at": iso(course.created_at),
    }
    if with_content:
        data["content"] = course.content
    return data


def enrollment_to_dict(enrollment: CourseEnrollment) -> dict[str, Any]:
    return {
        "id": enrollment.id,
        "course_id": enrollment.course_id,
        "user_id": enrollment.user_id,
        "progress": enrollment.progress,
        "reward_claimed": enrollment.reward_claimed,
        "enrolled_at": iso(enrollment.enrolled_at),
        "completed_at": iso(enrollment.completed_at),
    }


def activity_to_dict(entry: ActivityLog) -> dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "user_email": entry.user_email,
        "action_type": entry.action_type,
        "resource_type": entry.resource_type,
        "resource_id": entry.resource_id,
        "resource_name": entry.resource_name,
        "details": entry.details or {},
        "ip_address": entry.ip_address,
        "created_at": iso(entry.created_at),
    }
