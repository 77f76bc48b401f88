"""
CMS reports.

A report selects source records from the page store and describes the
columns to show. Reports register themselves by subclassing ``Report``.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from cms.pages.storage import BasePageStore
from cms.types.page import Page

logger = logging.getLogger(__name__)


class ReportColumn(BaseModel):
    name: str
    title: str
    link: bool = False


class ReportRow(BaseModel):
    id: int
    values: Dict[str, Any] = Field(default_factory=dict)
    link: Optional[str] = None


class ReportSummary(BaseModel):
    name: str
    title: str
    group: str
    sort: int
    link: str


class Report:
    """Base class for reports; subclasses are registered automatically."""

    title: str = ""
    group: str = "Other"
    sort: int = 0

    registry: Dict[str, Type["Report"]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.registry[cls.__name__] = cls

    @classmethod
    def name(cls) -> str:
        return cls.__name__

    @classmethod
    def link(cls) -> str:
        return f"/admin/reports/{cls.name()}"

    def columns(self) -> List[ReportColumn]:
        return [ReportColumn(name="Title", title="Title")]

    async def source_records(self, store: BasePageStore) -> List[Page]:
        raise NotImplementedError

    def record_link(self, record: Page) -> str:
        return f"/admin/pages/history/show/{record.id}"

    async def rows(self, store: BasePageStore) -> List[ReportRow]:
        """Source records projected onto the report columns."""
        columns = self.columns()
        rows = []
        for record in await self.source_records(store):
            values = {column.name: getattr(record, _attribute(column.name), None) for column in columns}
            rows.append(ReportRow(id=record.id, values=values, link=self.record_link(record)))
        return rows

    def summary(self) -> ReportSummary:
        return ReportSummary(
            name=self.name(),
            title=self.title,
            group=self.group,
            sort=self.sort,
            link=self.link(),
        )


def _attribute(column_name: str) -> str:
    """CMS column name to page attribute, e.g. MenuTitle -> menu_title."""
    if column_name == "URLSegment":
        return "url_segment"
    out = []
    for index, char in enumerate(column_name):
        if char.isupper() and index:
            out.append("_")
        out.append(char.lower())
    return "".join(out)


def get_report(name: str) -> Optional[Report]:
    report_class = Report.registry.get(name)
    return report_class() if report_class else None


def list_reports() -> List[Report]:
    """All reports ordered by group, then sort, then title."""
    reports = [report_class() for report_class in Report.registry.values()]
    return sorted(reports, key=lambda r: (r.group, r.sort, r.title))
