"""
Page history endpoints.

Provides the history section of the CMS:
- Viewing a page version (read-only edit form)
- Comparing two versions
- Reverting to a previous version
- Selecting versions (versions form) and listing them as JSON

Views answer with a full HTML page, or with a JSON object of HTML fragments
when the request carries an ``X-Pjax`` header.

Authorization:
- All endpoints require the CMS_ACCESS_CMSMain permission
- The page must be viewable by the member
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse, Response

from cms.config import get_settings
from cms.forms import Form
from cms.pages.history import MENU_TITLE, PageHistoryService
from cms.pages.permissions import PermissionDenied, can_view
from cms.pages.storage import PageNotFoundError, get_page_store
from cms.templating import render_template
from cms.types.member import Member
from cms.types.page import VersionListResponse

from ..dependencies import require_cms_access
from ..exceptions import ValidationError
from ..negotiator import ResponseNegotiator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/pages/history",
    tags=["history"],
    dependencies=[Depends(require_cms_access)],
)


def get_history_service(member: Member = Depends(require_cms_access)) -> PageHistoryService:
    return PageHistoryService(get_page_store(), member)


async def build_negotiator(
    service: PageHistoryService,
    page_id: int,
    form: Optional[Form],
    action: str = "show",
    version_id: Optional[int] = None,
    other_version_id: Optional[int] = None,
) -> ResponseNegotiator:
    """Fragment callbacks shared by the history views."""
    page = await service.store.get_page(page_id)
    record = await service.get_record(page_id, version_id)
    versions_form = await service.versions_form(page_id, action, version_id, other_version_id)
    breadcrumbs = await service.breadcrumbs(page)
    navigator = await service.navigator(record)

    context = {
        "site_title": get_settings().site.site_title,
        "menu_title": MENU_TITLE,
        "page": page,
        "form": form,
        "versions_form": versions_form,
        "breadcrumbs": breadcrumbs,
        "navigator": navigator,
    }

    def current_form() -> str:
        if form is not None:
            return str(form.render())
        return render_template("history/empty.html")

    return ResponseNegotiator({
        "CurrentForm": current_form,
        "Content": lambda: render_template("history/content.html", **context),
        "Breadcrumbs": lambda: render_template("history/breadcrumbs.html", **context),
        "default": lambda: render_template("history/show.html", **context),
    })


@router.get(
    "/show/{page_id}",
    summary="Show the latest version of a page",
)
@router.get(
    "/show/{page_id}/{version_id}",
    summary="Show a version of a page",
)
async def show(
    request: Request,
    page_id: int,
    version_id: Optional[int] = None,
    service: PageHistoryService = Depends(get_history_service),
) -> Response:
    form = await service.get_edit_form(page_id, version_id)
    negotiator = await build_negotiator(service, page_id, form, "show", version_id)
    return await negotiator.respond(request)


@router.get(
    "/compare/{page_id}/{version_id}/{other_version_id}",
    summary="Compare two versions of a page",
)
async def compare(
    request: Request,
    page_id: int,
    version_id: int,
    other_version_id: int,
    service: PageHistoryService = Depends(get_history_service),
) -> Response:
    form = await service.compare_versions_form(page_id, version_id, other_version_id)
    negotiator = await build_negotiator(
        service, page_id, form, "compare", version_id, other_version_id
    )
    return await negotiator.respond(request)


@router.get(
    "/EditForm/{page_id}",
    summary="Edit form without a version (rejected)",
    include_in_schema=False,
)
async def edit_form_missing_version(page_id: int) -> Response:
    raise ValidationError("A version ID is required", field="VersionID")


@router.get(
    "/EditForm/{page_id}/{version_id}",
    summary="Read-only edit form of a page version",
)
async def edit_form(
    request: Request,
    page_id: int,
    version_id: int,
    service: PageHistoryService = Depends(get_history_service),
) -> Response:
    form = await service.get_edit_form(page_id, version_id)
    negotiator = ResponseNegotiator({
        "CurrentForm": form.render,
        "default": form.render,
    })
    return await negotiator.respond(request)


@router.post(
    "/EditForm/{page_id}/{version_id}/doRollback",
    summary="Revert a page to a version",
    status_code=303,
)
async def do_rollback(
    page_id: int,
    version_id: int,
    service: PageHistoryService = Depends(get_history_service),
) -> RedirectResponse:
    """
    Copy the version onto the draft, writing a new version, and redirect to
    the show view of the new version.
    """
    page = await service.rollback(page_id, version_id)
    message = (
        f"Rolled back to version #{version_id}. "
        f"New version number is #{page.version}"
    )
    logger.info(f"Page {page_id}: {message}")

    response = RedirectResponse(
        url=f"{service.link('show')}/{page_id}/{page.version}",
        status_code=303,
    )
    response.headers["X-Status"] = message
    return response


@router.get(
    "/VersionsForm/{page_id}",
    summary="Version selection form",
)
async def versions_form(
    request: Request,
    page_id: int,
    action: Optional[str] = Query(default=None, description="show or compare"),
    version_id: Optional[int] = Query(default=None, ge=0),
    other_version_id: Optional[int] = Query(default=None, ge=0),
    service: PageHistoryService = Depends(get_history_service),
) -> Response:
    form = await service.versions_form(
        page_id,
        action=action,
        version_id=version_id,
        other_version_id=other_version_id,
        request_vars={
            key: request.query_params[key]
            for key in ("ShowUnpublished", "CompareMode")
            if key in request.query_params
        },
    )
    negotiator = ResponseNegotiator({
        "VersionsForm": form.render,
        "default": form.render,
    })
    return await negotiator.respond(request)


@router.get(
    "/{page_id}/versions",
    response_model=VersionListResponse,
    summary="List page versions",
    description="Version history of a page, newest first.",
)
async def list_versions(
    page_id: int,
    version_id: Optional[int] = Query(default=None, ge=0),
    other_version_id: Optional[int] = Query(default=None, ge=0),
    service: PageHistoryService = Depends(get_history_service),
) -> VersionListResponse:
    page = await service.store.get_page(page_id)
    if page is None:
        raise PageNotFoundError(page_id)

    if not await can_view(page, service.member, service.store):
        raise PermissionDenied(f"Member may not view page {page_id}")

    return VersionListResponse(
        page_id=page_id,
        current_version=page.version,
        live_version=await service.store.get_live_version_number(page_id),
        versions=await service.version_summaries(page_id, version_id, other_version_id),
    )
