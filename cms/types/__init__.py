"""Pydantic models shared across SiteTree CMS."""

from .comment import CommentSubmission, PageComment, PaginatedComments
from .member import Member
from .page import (
    VERSIONED_FIELDS,
    CanViewType,
    CreatePageRequest,
    Page,
    PageResponse,
    PageVersion,
    PageVersionSummary,
    UpdatePageRequest,
    VersionComparison,
    VersionListResponse,
)

__all__ = [
    "CanViewType",
    "CommentSubmission",
    "CreatePageRequest",
    "Member",
    "Page",
    "PageComment",
    "PageResponse",
    "PageVersion",
    "PageVersionSummary",
    "PaginatedComments",
    "UpdatePageRequest",
    "VERSIONED_FIELDS",
    "VersionComparison",
    "VersionListResponse",
]
