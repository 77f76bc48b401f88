"""
CMS report endpoints.

Authorization:
- All endpoints require the CMS_ACCESS_CMSMain permission
"""

import logging
from itertools import groupby
from typing import Dict, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from cms.config import get_settings
from cms.pages.storage import get_page_store
from cms.reports import ReportColumn, ReportRow, ReportSummary, get_report, list_reports
from cms.templating import render_template

from ..dependencies import require_cms_access
from ..exceptions import ErrorCode, ResourceNotFoundError
from ..negotiator import ResponseNegotiator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/reports",
    tags=["reports"],
    dependencies=[Depends(require_cms_access)],
)


class ReportGroup(BaseModel):
    title: str
    reports: List[ReportSummary] = Field(default_factory=list)


class ReportListResponse(BaseModel):
    success: bool = True
    groups: List[ReportGroup] = Field(default_factory=list)


class ReportResponse(BaseModel):
    success: bool = True
    report: ReportSummary
    columns: List[ReportColumn]
    rows: List[ReportRow]


def wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("Accept", "")


@router.get(
    "",
    summary="List reports",
    description="Reports grouped by their group title, sorted within each group.",
)
async def reports_index(request: Request) -> Response:
    summaries = [report.summary() for report in list_reports()]
    groups = [
        ReportGroup(title=title, reports=list(items))
        for title, items in groupby(summaries, key=lambda s: s.group)
    ]
    payload = ReportListResponse(groups=groups)

    if wants_json(request):
        return Response(payload.model_dump_json(), media_type="application/json")

    negotiator = ResponseNegotiator({
        "default": lambda: render_template(
            "reports/index.html",
            site_title=get_settings().site.site_title,
            groups=groups,
        ),
    })
    return await negotiator.respond(request)


@router.get(
    "/{report_name}",
    summary="Show a report",
)
async def show_report(request: Request, report_name: str) -> Response:
    report = get_report(report_name)
    if report is None:
        raise ResourceNotFoundError(
            f"Report {report_name} not found",
            resource_type="report",
            resource_id=report_name,
            error_code=ErrorCode.REPORT_NOT_FOUND,
        )

    rows = await report.rows(get_page_store())
    payload = ReportResponse(report=report.summary(), columns=report.columns(), rows=rows)

    if wants_json(request):
        return Response(payload.model_dump_json(), media_type="application/json")

    context: Dict = {
        "site_title": get_settings().site.site_title,
        "report": payload.report,
        "columns": payload.columns,
        "rows": payload.rows,
    }
    negotiator = ResponseNegotiator({
        "ReportContent": lambda: render_template("reports/table.html", **context),
        "default": lambda: render_template("reports/report.html", **context),
    })
    return await negotiator.respond(request)
