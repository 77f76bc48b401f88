"""
Pydantic model for CMS members (authenticated users).
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Member(BaseModel):
    """An authenticated CMS member with group and permission codes."""

    id: str = Field(..., description="Member identifier")
    email: Optional[str] = Field(default=None)
    first_name: Optional[str] = Field(default=None)
    surname: Optional[str] = Field(default=None)
    groups: List[str] = Field(
        default_factory=list,
        description="Group codes the member belongs to"
    )
    permissions: List[str] = Field(
        default_factory=list,
        description="Permission codes granted to the member"
    )

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.surname) if p)
        return full or self.email or self.id
