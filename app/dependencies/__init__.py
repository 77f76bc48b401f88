"""
FastAPI dependencies for the SiteTree CMS service.

Usage:
    from app.dependencies import require_cms_access, is_ajax
"""

import logging
from typing import Callable

from fastapi import Depends, Request

from app.auth import get_current_member
from app.exceptions import PermissionFailure
from cms.pages.permissions import Permission, check_permission
from cms.types.member import Member

logger = logging.getLogger(__name__)


def require_permission(permission: Permission) -> Callable:
    """
    Dependency factory requiring the member to hold a permission code.

    Usage:
        @router.get("/", dependencies=[Depends(require_permission(Permission.ADMIN))])
    """

    async def dependency(member: Member = Depends(get_current_member)) -> Member:
        if not check_permission(member, permission):
            logger.warning(f"Member {member.id} lacks permission {permission.value}")
            raise PermissionFailure(required_permission=permission.value)
        return member

    return dependency


require_cms_access = require_permission(Permission.CMS_ACCESS_CMS_MAIN)


def is_ajax(request: Request) -> bool:
    """Whether the request was made by script (XMLHttpRequest or ?ajax=1)."""
    return (
        request.headers.get("X-Requested-With") == "XMLHttpRequest"
        or request.query_params.get("ajax") == "1"
    )


__all__ = [
    "require_permission",
    "require_cms_access",
    "is_ajax",
]
