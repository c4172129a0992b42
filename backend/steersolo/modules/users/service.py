"""
User Service - registration and login.
"""

from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.config import settings
from steersolo.core.exceptions import ConflictError, InvalidRequestError
from steersolo.core.security import create_access_token, hash_password, verify_password
from steersolo.models.user import User, UserRole
from steersolo.modules.activity import ActivityLogService

SELF_SERVICE_ROLES = {UserRole.CUSTOMER, UserRole.SHOP_OWNER}

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """
    Service for user accounts.

    Usage:
        users = UserService(db_session)
        user = await users.register("ada@example.com", "s3cretpass", role=UserRole.SHOP_OWNER)
        token = await users.login("ada@example.com", "s3cretpass")
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityLogService(db)

    async def get_user(self, user_id: int) -> User | None:
        return await self.db.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def register(
        self,
        email: str,
        password: str,
        full_name: str | None = None,
        role: UserRole = UserRole.CUSTOMER,
        phone: str | None = None,
    ) -> User:
        """
        Create an account. Shop owners start on a free trial.

        Raises:
            InvalidRequestError: Admin role requested or weak password
            ConflictError: Email already registered
        """
        role = UserRole(role)
        if role not in SELF_SERVICE_ROLES:
            raise InvalidRequestError("Cannot register with this role")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidRequestError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        email = normalize_email(email)
        if await self.get_by_email(email):
            raise ConflictError("An account with this email already exists")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            phone=phone,
            role=role,
            is_active=True,
            is_subscribed=False,
        )
        if role == UserRole.SHOP_OWNER:
            user.subscription_expires_at = datetime.utcnow() + timedelta(days=settings.trial_days)

        self.db.add(user)
        await self.db.flush()

        logger.info(f"User registered: {user.id} ({role.value})")
        await self.activity.log("signup", "user", user=user, resource_id=user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        """Return the user for valid credentials, None otherwise."""
        user = await self.get_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    async def login(self, email: str, password: str) -> tuple[User, str] | None:
        """
        Authenticate and issue an access token.

        Returns:
            (user, token) or None for bad credentials
        """
        user = await self.authenticate(email, password)
        if not user:
            logger.debug(f"Failed login for {normalize_email(email)}")
            return None

        user.last_login = datetime.utcnow()
        await self.db.flush()
        await self.activity.log("login", "auth", user=user, resource_id=user.id)
        return user, create_access_token(user.id, user.role.value)
