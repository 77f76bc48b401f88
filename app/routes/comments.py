"""
Page comment endpoints.

- POST /PageComment/postcomment: the comment form target
- GET /PageComment/rss: RSS feed of approved comments
- POST /PageComment/approve/{id}: release a comment held for moderation
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from cms.comments import (
    REMEMBERED_NAME_COOKIE,
    CommentContext,
    PageCommentInterface,
    build_comment_feed,
    get_comment_store,
)
from cms.config import get_settings
from cms.pages.permissions import can_view
from cms.pages.storage import get_page_store
from cms.types.comment import CommentSubmission
from cms.types.member import Member

from ..auth import get_optional_member
from ..dependencies import is_ajax, require_cms_access
from ..exceptions import PageNotFound, PermissionFailure, ResourceNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/PageComment", tags=["comments"])

# One year
REMEMBERED_NAME_MAX_AGE = 365 * 24 * 60 * 60

FEED_LIMIT = 20


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post(
    "/postcomment",
    summary="Post a comment on a page",
)
async def post_comment(
    request: Request,
    member: Optional[Member] = Depends(get_optional_member),
) -> Response:
    """
    Handle the comment form.

    Answers with an HTML fragment for AJAX requests (and for spam), and
    redirects back to the referring page otherwise.
    """
    form_data = await request.form()
    submission = CommentSubmission.model_validate(dict(form_data))

    page_store = get_page_store()
    page = await page_store.get_page(submission.parent_id)
    if page is None:
        raise PageNotFound(submission.parent_id)
    if not await can_view(page, member, page_store):
        raise PermissionFailure()

    interface = PageCommentInterface(page, get_comment_store())
    context = CommentContext(
        is_ajax=is_ajax(request),
        user_ip=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        referrer=request.headers.get("Referer"),
    )
    outcome = await interface.post_comment(submission, context)

    if outcome.redirect_back:
        response = RedirectResponse(
            url=request.headers.get("Referer") or interface.page_link(),
            status_code=303,
        )
    else:
        response = HTMLResponse(outcome.html or "")

    if outcome.remember_name:
        response.set_cookie(
            REMEMBERED_NAME_COOKIE,
            outcome.remember_name,
            max_age=REMEMBERED_NAME_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return response


@router.get(
    "/rss",
    summary="RSS feed of page comments",
)
async def comments_rss(
    pageid: Optional[int] = Query(default=None, ge=1, description="Restrict to one page"),
    member: Optional[Member] = Depends(get_optional_member),
) -> Response:
    page_store = get_page_store()
    settings = get_settings()

    page = None
    if pageid is not None:
        page = await page_store.get_page(pageid)
        if page is None:
            raise PageNotFound(pageid)
        if not await can_view(page, member, page_store):
            raise PermissionFailure()

    comment_store = get_comment_store()
    pages = {}
    visible = []
    start = 0
    # Keep reading until the feed is full, skipping comments on pages the reader can't view
    while len(visible) < FEED_LIMIT:
        batch = await comment_store.feed_comments(pageid, limit=FEED_LIMIT, start=start)
        for comment in batch:
            if comment.parent_id not in pages:
                pages[comment.parent_id] = await page_store.get_page(comment.parent_id)
            parent = pages[comment.parent_id]
            if parent is not None and await can_view(parent, member, page_store):
                visible.append(comment)
        if len(batch) < FEED_LIMIT:
            break
        start += FEED_LIMIT
    visible = visible[:FEED_LIMIT]

    body = build_comment_feed(
        visible,
        {page_id: p for page_id, p in pages.items() if p is not None},
        site_title=settings.site.site_title,
        base_url=settings.site.absolute_base_url,
        page=page,
    )
    return Response(content=body, media_type="application/rss+xml")


@router.post(
    "/approve/{comment_id}",
    summary="Approve a comment awaiting moderation",
)
async def approve_comment(
    comment_id: int,
    member: Member = Depends(require_cms_access),
) -> Dict[str, Any]:
    store = get_comment_store()
    if not await store.set_moderation(comment_id, needs_moderation=False):
        raise ResourceNotFoundError(
            f"Comment {comment_id} not found",
            resource_type="comment",
            resource_id=str(comment_id),
        )
    logger.info(f"Comment {comment_id} approved by {member.id}")
    return {"success": True, "comment_id": comment_id}
