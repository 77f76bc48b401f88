"""CMS reports."""

from .base import Report, ReportColumn, ReportRow, ReportSummary, get_report, list_reports
from .empty_pages import EmptyPagesReport

__all__ = [
    "Report",
    "ReportColumn",
    "ReportRow",
    "ReportSummary",
    "get_report",
    "list_reports",
    "EmptyPagesReport",
]
