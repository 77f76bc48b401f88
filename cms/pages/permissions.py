"""
Permission codes and page view checks.

Permission checks fail closed: a missing member or an unknown code is denied.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional, Set

from cms.types.member import Member
from cms.types.page import CanViewType, Page

if TYPE_CHECKING:
    from cms.pages.storage import BasePageStore

logger = logging.getLogger(__name__)


class PermissionDenied(Exception):
    """The member may not access the requested record."""


class Permission(str, Enum):
    """Permission codes granted to members."""
    ADMIN = "ADMIN"
    CMS_ACCESS_LEFT_AND_MAIN = "CMS_ACCESS_LeftAndMain"
    CMS_ACCESS_CMS_MAIN = "CMS_ACCESS_CMSMain"


CMS_ACCESS_PREFIX = "CMS_ACCESS_"

# Upper bound on parent walks when resolving inherited view rules
MAX_TREE_DEPTH = 100


def _code(permission) -> str:
    return permission.value if isinstance(permission, Permission) else str(permission)


def check_permission(member: Optional[Member], permission) -> bool:
    """
    Check whether a member holds a permission code.

    ADMIN implies every code. CMS_ACCESS_LeftAndMain implies every
    CMS_ACCESS_* code.

    Args:
        member: The member, or None for anonymous visitors.
        permission: A Permission or raw permission code.

    Returns:
        True if the member holds the permission.
    """
    if member is None:
        return False

    code = _code(permission)
    granted: Set[str] = set(member.permissions)

    if Permission.ADMIN.value in granted or code in granted:
        return True

    if (
        code.startswith(CMS_ACCESS_PREFIX)
        and Permission.CMS_ACCESS_LEFT_AND_MAIN.value in granted
    ):
        return True

    return False


async def can_view(
    page: Page,
    member: Optional[Member],
    store: "BasePageStore",
) -> bool:
    """
    Check whether a member may view a page.

    Inherit resolves through the parent chain; a root page inherits Anyone.
    Pages whose parent no longer exists are hidden from non-admins.
    """
    if check_permission(member, Permission.ADMIN):
        return True

    current = page
    for _ in range(MAX_TREE_DEPTH):
        rule = current.can_view_type

        if rule == CanViewType.ANYONE:
            return True
        if rule == CanViewType.LOGGED_IN_USERS:
            return member is not None
        if rule == CanViewType.ONLY_THESE_USERS:
            if member is None:
                return False
            return bool(set(member.groups) & set(current.viewer_groups))

        # Inherit
        if current.parent_id is None:
            return True
        parent = await store.get_page(current.parent_id)
        if parent is None:
            logger.warning(
                f"Page {current.id} has missing parent {current.parent_id}; denying view"
            )
            return False
        current = parent

    logger.warning(f"Page {page.id} exceeds maximum tree depth; denying view")
    return False
