"""
Page history: viewing, comparing and reverting page versions.

The service builds the forms shown by the history section of the CMS
(``/admin/pages/history``). It is bound to the member making the request so
that every form respects the member's view permission on the page.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from cms.forms import FieldType, Form, FormAction, FormField
from cms.pages.diff import compare_versions, order_version_pair
from cms.pages.permissions import Permission, PermissionDenied, can_view
from cms.pages.storage import BasePageStore, PageNotFoundError, VersionNotFoundError
from cms.templating import render_template
from cms.types.member import Member
from cms.types.page import Page, PageVersion, PageVersionSummary, VersionComparison
from cms.utils.logging import Timer

logger = logging.getLogger(__name__)

URL_SEGMENT = "admin/pages/history"
MENU_TITLE = "History"
REQUIRED_PERMISSION = Permission.CMS_ACCESS_CMS_MAIN

PAGES_LINK = "/admin/pages"

# Page attribute -> CMS form field name
FORM_FIELD_NAMES: Dict[str, str] = {
    "title": "Title",
    "menu_title": "MenuTitle",
    "url_segment": "URLSegment",
    "content": "Content",
    "meta_description": "MetaDescription",
}

Record = Union[Page, PageVersion]


class Crumb(BaseModel):
    title: str
    link: str


class NavigatorItem(BaseModel):
    name: str
    title: str
    link: str
    active: bool = False


def page_cms_fields(record: Record, live_version: Optional[int] = None) -> List[FormField]:
    """
    Editing fields of a page, on the Root.Main tab.

    Includes a ``Status`` field describing the publication state.
    """
    if live_version is None:
        status = "Draft"
    elif live_version == record.version:
        status = "Published"
    else:
        status = "Modified on draft"

    return [
        FormField(name="Status", title="Status", field_type=FieldType.READONLY,
                  value=status, tab="Root.Main"),
        FormField(name="Title", title="Page name", value=record.title, tab="Root.Main"),
        FormField(name="MenuTitle", title="Navigation label", value=record.menu_title,
                  tab="Root.Main"),
        FormField(name="URLSegment", title="URL segment", value=record.url_segment,
                  tab="Root.Main"),
        FormField(name="Content", title="Content", field_type=FieldType.TEXTAREA,
                  value=record.content, escape=False, tab="Root.Main"),
        FormField(name="MetaDescription", title="Meta Description",
                  field_type=FieldType.TEXTAREA, value=record.meta_description,
                  tab="Root.Main"),
    ]


class PageHistoryService:
    """Builds the history forms of a page for one member."""

    def __init__(self, store: BasePageStore, member: Optional[Member]):
        self.store = store
        self.member = member

    @staticmethod
    def link(action: Optional[str] = None) -> str:
        base = "/" + URL_SEGMENT
        return f"{base}/{action}" if action else base

    async def get_record(self, page_id: int, version_id: Optional[int] = None) -> Optional[Record]:
        """Return the draft page when no version is given, else that version."""
        if not version_id:
            return await self.store.get_page(page_id)
        return await self.store.get_version(page_id, version_id)

    def empty_form(self) -> Form:
        return Form(name="EditForm", html_id="Form_EditForm")

    async def get_edit_form(
        self,
        page_id: int,
        version_id: Optional[int] = None,
        compare_id: Optional[int] = None,
    ) -> Form:
        """
        Read-only edit form of a page version with a single revert action.

        Args:
            page_id: Page to show.
            version_id: Version to show; the draft when falsy.
            compare_id: Other version number when shown as a comparison.

        Returns:
            The form, or an empty form when the record does not exist.

        Raises:
            PermissionDenied: If the member cannot view the page.
        """
        record = await self.get_record(page_id, version_id)
        if record is None:
            return self.empty_form()

        if not await can_view(record, self.member, self.store):
            raise PermissionDenied(f"Member may not view page {page_id}")

        version_id = record.version
        live_version = await self.store.get_live_version_number(page_id)
        is_latest = await self.store.is_latest_version(record)

        revert = FormAction(
            name="doRollback",
            title="Revert to this version",
            use_button_tag=True,
        )
        form = Form(
            name="EditForm",
            html_id="Form_EditForm",
            fields=page_cms_fields(record, live_version),
            actions=[revert],
            form_action=self.link("EditForm"),
            extra_classes=["cms-content", "center", "cms-edit-form"],
        )

        form.remove_field("Status")
        form.push(FormField(name="ID", field_type=FieldType.HIDDEN))
        form.push(FormField(name="Version", field_type=FieldType.HIDDEN))
        form.make_readonly()

        if compare_id:
            show_link = f"{self.link('show')}/{page_id}"
            message = "Comparing versions {version1} and {version2}.".format(
                version1=f'{version_id} (<a href="{show_link}/{version_id}">view</a>)',
                version2=f'{compare_id} (<a href="{show_link}/{compare_id}">view</a>)',
            )
            revert.readonly = True
        elif is_latest:
            message = "Currently viewing the latest version."
        else:
            message = f"Currently viewing version {version_id}."

        form.insert_before(
            "Title",
            FormField(
                name="CurrentlyViewingMessage",
                field_type=FieldType.LITERAL,
                value=render_template("history/notice.html", message=message, classes="notice"),
                tab="Root.Main",
            ),
        )

        form.load_data_from({"ID": page_id, "Version": version_id})

        if is_latest:
            revert.readonly = True

        form.remove_extra_class("cms-content")
        form.form_action = f"{form.form_action}/{page_id}/{version_id}"
        return form

    async def version_summaries(
        self,
        page_id: int,
        version_id: Optional[int] = None,
        other_version_id: Optional[int] = None,
    ) -> List[PageVersionSummary]:
        """Version list of a page, newest first, with the selected versions active."""
        page = await self.store.get_page(page_id)
        if page is None:
            return []

        selected = version_id or page.version
        summaries = []
        for version in await self.store.all_versions(page_id):
            summaries.append(PageVersionSummary(
                version=version.version,
                title=version.title,
                was_published=version.was_published,
                author_id=version.author_id,
                publisher_id=version.publisher_id,
                created=version.created,
                active=version.version in (selected, other_version_id),
            ))
        return summaries

    async def versions_form(
        self,
        page_id: int,
        action: Optional[str] = None,
        version_id: Optional[int] = None,
        other_version_id: Optional[int] = None,
        request_vars: Optional[Mapping[str, Any]] = None,
    ) -> Form:
        """
        Version selection form, the entry point for viewing and comparing.

        Adapts to the current action and version parameters so a compare view
        can be reloaded directly.
        """
        page = await self.store.get_page(page_id)
        versions_html = ""
        show_unpublished = False

        if page is not None:
            if not await can_view(page, self.member, self.store):
                raise PermissionDenied(f"Member may not view page {page_id}")

            summaries = await self.version_summaries(page_id, version_id, other_version_id)
            show_unpublished = any(s.active and not s.was_published for s in summaries)
            versions_html = render_template(
                "history/versions.html",
                versions=summaries,
                page_id=page_id,
                show_link=self.link("show"),
            )

        form = Form(
            name="VersionsForm",
            html_id="Form_VersionsForm",
            method="GET",
            form_action=self.link("VersionsForm"),
            fields=[
                FormField(name="ShowUnpublished", title="Show unpublished versions",
                          field_type=FieldType.CHECKBOX, value=show_unpublished),
                FormField(name="CompareMode", title="Compare mode (select two)",
                          field_type=FieldType.CHECKBOX, value=action == "compare"),
                FormField(name="VersionsHtml", field_type=FieldType.LITERAL,
                          value=versions_html),
                FormField(name="ID", field_type=FieldType.HIDDEN, value=""),
            ],
        )
        if request_vars:
            form.load_data_from(request_vars)
        form.field("ID").value = page_id

        form.add_extra_class("cms-versions-form")
        form.set_attribute("data-link-tmpl-compare", self.link("compare") + "/%s/%s/%s")
        form.set_attribute("data-link-tmpl-show", self.link("show") + "/%s/%s")
        return form

    async def compare(
        self,
        page_id: int,
        version_id: Optional[int],
        other_version_id: Optional[int],
    ) -> Optional[VersionComparison]:
        """
        Diff two versions of a page, older version first.

        Returns:
            The comparison, or None when a version number is missing or the
            page no longer exists.

        Raises:
            PermissionDenied: If the member cannot view the page.
            VersionNotFoundError: If either version does not exist.
        """
        pair = order_version_pair(version_id, other_version_id)
        if pair is None:
            return None
        from_version, to_version = pair

        page = await self.store.get_page(page_id)
        if page is not None and not await can_view(page, self.member, self.store):
            raise PermissionDenied(f"Member may not view page {page_id}")

        from_record = await self.store.get_version(page_id, from_version)
        to_record = await self.store.get_version(page_id, to_version)
        if from_record is None:
            raise VersionNotFoundError(page_id, from_version)
        if to_record is None:
            raise VersionNotFoundError(page_id, to_version)

        if page is None:
            return None

        with Timer(f"compare_versions page={page_id}", logger):
            fields = compare_versions(from_record, to_record)

        return VersionComparison(
            page_id=page_id,
            from_version=from_version,
            to_version=to_version,
            fields=fields,
        )

    async def compare_versions_form(
        self,
        page_id: int,
        version_id: Optional[int],
        other_version_id: Optional[int],
    ) -> Optional[Form]:
        """
        Read-only form showing the diff of two versions.

        Returns None when no comparison can be made.
        """
        comparison = await self.compare(page_id, version_id, other_version_id)
        if comparison is None:
            return None

        form = await self.get_edit_form(
            page_id, comparison.from_version, compare_id=comparison.to_version
        )
        form.actions = []
        form.add_extra_class("compare")

        # Diff output is markup, so fields go read-only before the data is loaded
        form.make_readonly()
        form.load_data_from({
            FORM_FIELD_NAMES[name]: markup for name, markup in comparison.fields.items()
        })
        form.load_data_from({"ID": page_id, "Version": comparison.from_version})

        for field in form.data_fields():
            field.escape = False

        return form

    async def rollback(self, page_id: int, version: int) -> Page:
        """
        Revert a page to a previous version.

        Raises:
            PageNotFoundError: If the page does not exist.
            PermissionDenied: If the member cannot view the page.
            VersionNotFoundError: If the version does not exist.
            RollbackConflictError: If the version is already the latest.
        """
        page = await self.store.get_page(page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        if not await can_view(page, self.member, self.store):
            raise PermissionDenied(f"Member may not view page {page_id}")

        author_id = self.member.id if self.member else None
        return await self.store.rollback_to(page_id, version, author_id=author_id)

    async def breadcrumbs(self, page: Optional[Page]) -> List[Crumb]:
        """Crumbs from the pages section down to the page."""
        crumbs = [Crumb(title="Pages", link=PAGES_LINK)]
        if page is None:
            return crumbs

        trail = [page]
        parent_id = page.parent_id
        while parent_id is not None and len(trail) < 100:
            parent = await self.store.get_page(parent_id)
            if parent is None:
                break
            trail.append(parent)
            parent_id = parent.parent_id

        for item in reversed(trail):
            crumbs.append(Crumb(
                title=item.nav_title,
                link=f"{self.link('show')}/{item.id}",
            ))
        return crumbs

    async def navigator(self, record: Optional[Record]) -> List[NavigatorItem]:
        """Preview links for the draft, published and archived views of a record."""
        if record is None:
            return []

        view_link = f"/pages/{record.id}"
        latest = await self.store.get_latest_version_number(record.id)
        live = await self.store.get_live_version_number(record.id)

        items = [NavigatorItem(
            name="StageLink",
            title="Draft",
            link=f"{view_link}?stage=Stage",
            active=record.version == latest,
        )]
        if live is not None:
            items.append(NavigatorItem(
                name="LiveLink",
                title="Published",
                link=f"{view_link}?stage=Live",
                active=record.version == live,
            ))
        if record.version != latest:
            items.append(NavigatorItem(
                name="ArchiveLink",
                title="Archived",
                link=f"{view_link}?version={record.version}",
                active=True,
            ))
        return items
