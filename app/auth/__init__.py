"""Authentication components for the SiteTree CMS service."""

from .members import (
    API_KEY_HEADER,
    DEV_MEMBER,
    MemberStore,
    get_current_member,
    get_member_store,
    get_optional_member,
    set_member_store,
)

__all__ = [
    "API_KEY_HEADER",
    "DEV_MEMBER",
    "MemberStore",
    "get_current_member",
    "get_member_store",
    "get_optional_member",
    "set_member_store",
]
