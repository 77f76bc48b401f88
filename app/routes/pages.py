"""
Page administration and public page view endpoints.

Admin endpoints (CMS_ACCESS_CMSMain):
- Create a page
- Read the draft of a page
- Write a new draft version
- Publish the current draft

Public endpoint:
- View a page, honouring its view permission
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse

from cms.comments import REMEMBERED_NAME_COOKIE, PageCommentInterface, get_comment_store
from cms.config import get_settings
from cms.pages.permissions import Permission, can_view, check_permission
from cms.pages.storage import get_page_store
from cms.templating import render_template
from cms.types.member import Member
from cms.types.page import CreatePageRequest, PageResponse, UpdatePageRequest

from ..auth import get_optional_member
from ..dependencies import require_cms_access
from ..exceptions import PageNotFound, PermissionFailure, VersionNotFound

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])


@router.post(
    "/admin/pages",
    response_model=PageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a page",
)
async def create_page(
    request: CreatePageRequest,
    member: Member = Depends(require_cms_access),
) -> PageResponse:
    store = get_page_store()
    if request.parent_id is not None and await store.get_page(request.parent_id) is None:
        raise PageNotFound(request.parent_id, message="Parent page not found")

    page = await store.create_page(request.model_dump(), author_id=member.id)
    return PageResponse(page=page, message=f"Created page {page.id}")


@router.get(
    "/admin/pages/{page_id}",
    response_model=PageResponse,
    summary="Get the draft of a page",
)
async def get_page(
    page_id: int,
    member: Member = Depends(require_cms_access),
) -> PageResponse:
    store = get_page_store()
    page = await store.get_page(page_id)
    if page is None:
        raise PageNotFound(page_id)
    if not await can_view(page, member, store):
        raise PermissionFailure()

    return PageResponse(
        page=page,
        live_version=await store.get_live_version_number(page_id),
    )


@router.put(
    "/admin/pages/{page_id}",
    response_model=PageResponse,
    summary="Write a new draft version",
    description="Fields that are omitted keep their current value. Every write creates a new version.",
)
async def update_page(
    page_id: int,
    request: UpdatePageRequest,
    member: Member = Depends(require_cms_access),
) -> PageResponse:
    store = get_page_store()
    current = await store.get_page(page_id)
    if current is None:
        raise PageNotFound(page_id)
    if not await can_view(current, member, store):
        raise PermissionFailure()

    changes = request.model_dump(exclude_unset=True)
    page = await store.write_page(page_id, changes, author_id=member.id)
    return PageResponse(
        page=page,
        live_version=await store.get_live_version_number(page_id),
        message=f"Saved version {page.version}",
    )


@router.post(
    "/admin/pages/{page_id}/publish",
    response_model=PageResponse,
    summary="Publish the current draft",
)
async def publish_page(
    page_id: int,
    member: Member = Depends(require_cms_access),
) -> PageResponse:
    store = get_page_store()
    current = await store.get_page(page_id)
    if current is None:
        raise PageNotFound(page_id)
    if not await can_view(current, member, store):
        raise PermissionFailure()

    published = await store.publish_page(page_id, publisher_id=member.id)
    return PageResponse(
        page=await store.get_page(page_id),
        live_version=published.version,
        message=f"Published version {published.version}",
    )


@router.get(
    "/pages/{page_id}",
    response_class=HTMLResponse,
    summary="View a page",
)
async def view_page(
    request: Request,
    page_id: int,
    stage: str = Query(default="Live", pattern="^(Live|Stage)$"),
    version: Optional[int] = Query(default=None, ge=1),
    comment_start: Optional[str] = Query(default=None, alias="commentStart"),
    showspam: Optional[str] = Query(default=None),
    member: Optional[Member] = Depends(get_optional_member),
) -> HTMLResponse:
    """
    Render the published version of a page with its comments.

    Draft (``stage=Stage``) and archived (``version=N``) views require CMS
    access.
    """
    store = get_page_store()
    page = await store.get_page(page_id)
    if page is None:
        raise PageNotFound(page_id)

    if stage == "Stage" or version is not None:
        if not check_permission(member, Permission.CMS_ACCESS_CMS_MAIN):
            raise PermissionFailure(required_permission=Permission.CMS_ACCESS_CMS_MAIN.value)

    if version is not None:
        record = await store.get_version(page_id, version)
        if record is None:
            raise VersionNotFound(page_id, version)
    elif stage == "Stage":
        record = page
    else:
        live_version = await store.get_live_version_number(page_id)
        record = await store.get_version(page_id, live_version) if live_version else None
        if record is None:
            raise PageNotFound(page_id)

    if not await can_view(page, member, store):
        raise PermissionFailure()

    comments = PageCommentInterface(record, get_comment_store())
    show_spam = showspam is not None and check_permission(member, Permission.CMS_ACCESS_CMS_MAIN)
    comments_html = await comments.render(
        comment_start=comment_start,
        show_spam=show_spam,
        remembered_name=request.cookies.get(REMEMBERED_NAME_COOKIE),
    )

    return HTMLResponse(render_template(
        "pages/page.html",
        site_title=get_settings().site.site_title,
        page=record,
        comments_html=comments_html,
    ))
