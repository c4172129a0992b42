"""Admin Module - back office figures."""

from steersolo.modules.admin.service import AdminService

__all__ = ["AdminService"]
