"""
Pydantic models for page comments.
"""

import html
from datetime import datetime
from typing import List, Optional

import bleach
from pydantic import BaseModel, Field, field_validator


def strip_html(value: str) -> str:
    """Remove all markup, returning plain text."""
    cleaned = bleach.clean(value, tags=[], attributes={}, strip=True, strip_comments=True)
    return html.unescape(cleaned).strip()


class PageComment(BaseModel):
    """A visitor comment attached to a page."""

    id: Optional[int] = Field(default=None)
    parent_id: int = Field(..., ge=1, description="ID of the page commented on")
    name: str = Field(..., description="Commenter name")
    comment: str = Field(..., description="Comment text (HTML stripped)")
    is_spam: bool = Field(default=False)
    needs_moderation: bool = Field(default=False)
    created: Optional[datetime] = Field(default=None)


class PaginatedComments(BaseModel):
    """
    One page of comments, newest first.

    ``start`` is the offset carried in the ``commentStart`` query variable.
    """

    items: List[PageComment] = Field(default_factory=list)
    start: int = Field(default=0, ge=0)
    page_length: int = Field(default=10, ge=1)
    total: int = Field(default=0, ge=0)
    pagination_get_var: str = Field(default="commentStart")

    @property
    def more_than_one_page(self) -> bool:
        return self.total > self.page_length

    @property
    def next_start(self) -> Optional[int]:
        nxt = self.start + self.page_length
        return nxt if nxt < self.total else None

    @property
    def prev_start(self) -> Optional[int]:
        if self.start <= 0:
            return None
        return max(self.start - self.page_length, 0)


class CommentSubmission(BaseModel):
    """Data posted by the comment form."""

    parent_id: int = Field(..., ge=1, alias="ParentID")
    name: str = Field(..., min_length=1, max_length=200, alias="Name")
    comment: str = Field(..., min_length=1, max_length=10000, alias="Comment")
    math: Optional[str] = Field(default=None, max_length=50, alias="Math")
    math_token: Optional[str] = Field(default=None, max_length=500, alias="MathToken")

    model_config = {"populate_by_name": True}

    @field_validator("name", "comment")
    @classmethod
    def strip_markup(cls, v):
        """Strip HTML using bleach; comments are stored as plain text."""
        v = strip_html(str(v))
        if not v:
            raise ValueError("Value is empty once markup is removed")
        return v
