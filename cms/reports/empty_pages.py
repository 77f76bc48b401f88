"""Report listing pages that have no content."""

from typing import List

from cms.pages.storage import BasePageStore
from cms.reports.base import Report, ReportColumn
from cms.types.page import Page

EMPTY_CONTENT_VALUES = (None, "", "<p></p>", "<p>&nbsp;</p>")

REDIRECTOR_PAGE = "RedirectorPage"


class EmptyPagesReport(Report):
    title = "Pages with no content"
    group = "Content reports"
    sort = 100

    def columns(self) -> List[ReportColumn]:
        return [ReportColumn(name="Title", title="Title", link=True)]

    async def source_records(self, store: BasePageStore) -> List[Page]:
        pages = await store.list_pages()
        empty = [
            page for page in pages
            if page.class_name != REDIRECTOR_PAGE and page.content in EMPTY_CONTENT_VALUES
        ]
        return sorted(empty, key=lambda page: page.title)
