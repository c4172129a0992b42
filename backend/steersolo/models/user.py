"""
User account model.

One table holds customers, entrepreneurs (shop owners) and admins,
together with their subscription state.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from steersolo.core.database import Base

if TYPE_CHECKING:
    from steersolo.models.shop import Shop


def enum_values(enum_cls: type[PyEnum]) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]


class UserRole(str, PyEnum):
    """Platform roles."""

    CUSTOMER = "customer"
    SHOP_OWNER = "shop_owner"
    ADMIN = "admin"


class User(Base):
    """User account and subscription profile."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=enum_values, native_enum=False, length=20),
        default=UserRole.CUSTOMER,
    )

    # Profile
    full_name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Subscription
    is_subscribed: Mapped[bool] = mapped_column(Boolean, default=False)
    subscription_expires_at: Mapped[datetime | None] = mapped_column(DateTime)
    subscription_plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("subscription_plans.id")
    )
    subscription_type: Mapped[str | None] = mapped_column(String(20))  # monthly / yearly

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    last_login: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    shops: Mapped[list["Shop"]] = relationship(back_populates="owner")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.email}>"
