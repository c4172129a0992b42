"""Users Module - accounts and authentication."""

from steersolo.modules.users.service import UserService

__all__ = ["UserService"]
