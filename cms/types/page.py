"""
Pydantic models for pages and their version history.

This module defines the data models for:
- Page records (the draft stage of the site tree)
- Page version snapshots and list summaries
- Page administration requests and responses
- Version comparison results
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class CanViewType(str, Enum):
    """
    Who may view a page.

    - ANYONE: Public page
    - LOGGED_IN_USERS: Any authenticated member
    - ONLY_THESE_USERS: Members of one of the page's viewer groups
    - INHERIT: Same answer as the parent page (public at the root)
    """
    ANYONE = "Anyone"
    LOGGED_IN_USERS = "LoggedInUsers"
    ONLY_THESE_USERS = "OnlyTheseUsers"
    INHERIT = "Inherit"


# Fields that are snapshotted into every version and can be compared.
VERSIONED_FIELDS = (
    "parent_id",
    "class_name",
    "title",
    "menu_title",
    "url_segment",
    "content",
    "meta_description",
    "sort",
    "can_view_type",
    "viewer_groups",
)


class Page(BaseModel):
    """
    A page in the site tree, as currently saved on the draft stage.
    """

    id: int = Field(..., ge=1, description="Page identifier")
    parent_id: Optional[int] = Field(
        default=None,
        description="Parent page ID (None for top-level pages)"
    )
    class_name: str = Field(
        default="Page",
        description="Page type, e.g. Page or RedirectorPage"
    )
    title: str = Field(..., description="Page title")
    menu_title: Optional[str] = Field(
        default=None,
        description="Navigation label (falls back to title)"
    )
    url_segment: str = Field(..., description="URL segment of the page")
    content: Optional[str] = Field(
        default=None,
        description="HTML content"
    )
    meta_description: Optional[str] = Field(default=None)
    sort: int = Field(default=0)
    can_view_type: CanViewType = Field(default=CanViewType.INHERIT)
    viewer_groups: List[str] = Field(
        default_factory=list,
        description="Group codes allowed to view when can_view_type is OnlyTheseUsers"
    )
    version: int = Field(
        default=1,
        ge=1,
        description="Current draft version number"
    )
    created: Optional[datetime] = Field(default=None)
    last_edited: Optional[datetime] = Field(default=None)

    @property
    def nav_title(self) -> str:
        return self.menu_title or self.title


class PageVersion(Page):
    """
    Snapshot of a page at a given version.

    The ``version`` field is the number of this snapshot; ``created`` is when it
    was written.
    """

    was_published: bool = Field(
        default=False,
        description="Whether this version was ever published to Live"
    )
    author_id: Optional[str] = Field(default=None)
    publisher_id: Optional[str] = Field(default=None)


class PageVersionSummary(BaseModel):
    """Row in the version list of a page."""

    version: int
    title: str
    was_published: bool = False
    author_id: Optional[str] = None
    publisher_id: Optional[str] = None
    created: Optional[datetime] = None
    active: bool = Field(
        default=False,
        description="Selected in the versions form"
    )


# =============================================================================
# Page administration
# =============================================================================


class CreatePageRequest(BaseModel):
    """Request to create a new page."""

    title: str = Field(..., min_length=1, max_length=255)
    url_segment: Optional[str] = Field(default=None, max_length=255)
    parent_id: Optional[int] = Field(default=None, ge=1)
    class_name: str = Field(default="Page", max_length=100)
    menu_title: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = Field(default=None)
    meta_description: Optional[str] = Field(default=None, max_length=1000)
    sort: int = Field(default=0)
    can_view_type: CanViewType = Field(default=CanViewType.INHERIT)
    viewer_groups: List[str] = Field(default_factory=list)


class UpdatePageRequest(BaseModel):
    """Request to write a new draft version of a page; omitted fields are kept."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    url_segment: Optional[str] = Field(default=None, max_length=255)
    parent_id: Optional[int] = Field(default=None, ge=1)
    class_name: Optional[str] = Field(default=None, max_length=100)
    menu_title: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = Field(default=None)
    meta_description: Optional[str] = Field(default=None, max_length=1000)
    sort: Optional[int] = Field(default=None)
    can_view_type: Optional[CanViewType] = Field(default=None)
    viewer_groups: Optional[List[str]] = Field(default=None)


class PageResponse(BaseModel):
    """Response containing a page."""

    success: bool = Field(default=True)
    page: Page
    live_version: Optional[int] = Field(
        default=None,
        description="Published version number, if the page is live"
    )
    message: Optional[str] = Field(default=None)


class VersionListResponse(BaseModel):
    """Response containing the version history of a page."""

    success: bool = Field(default=True)
    page_id: int
    current_version: int
    live_version: Optional[int] = None
    versions: List[PageVersionSummary] = Field(default_factory=list)


class VersionComparison(BaseModel):
    """Field-level diff between two versions of a page."""

    page_id: int
    from_version: int
    to_version: int
    fields: Dict[str, str] = Field(
        default_factory=dict,
        description="Field name to HTML diff markup"
    )
