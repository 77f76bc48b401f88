"""
Versioned Page Store.

Every write of a page creates a new immutable version snapshot, numbered
1, 2, 3... per page. Publishing marks the current draft version as published
and makes it the Live version.

Production: Postgres via asyncpg helpers in `cms.db`.
Dev/test: in-memory fallback when the database is not configured.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from cms.db import fetch as db_fetch
from cms.db import fetchrow as db_fetchrow
from cms.db import fetchval as db_fetchval
from cms.db import is_database_configured
from cms.types.page import VERSIONED_FIELDS, CanViewType, Page, PageVersion

logger = logging.getLogger(__name__)


class PageStoreError(Exception):
    """Base error for page store operations."""


class PageNotFoundError(PageStoreError):
    """The page does not exist."""

    def __init__(self, page_id: int):
        super().__init__(f"Page {page_id} not found")
        self.page_id = page_id


class VersionNotFoundError(PageStoreError):
    """The requested version of a page does not exist."""

    def __init__(self, page_id: int, version: int):
        super().__init__(f"Can't find version {version} of page {page_id}")
        self.page_id = page_id
        self.version = version


class RollbackConflictError(PageStoreError):
    """Rolling back to the version that is already the latest one."""

    def __init__(self, page_id: int, version: int):
        super().__init__(f"Version {version} is already the latest version of page {page_id}")
        self.page_id = page_id
        self.version = version


def generate_url_segment(title: str) -> str:
    """Build a URL segment from a page title."""
    segment = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return segment or "page"


def unique_url_segment(candidate: str, taken: Iterable[str]) -> str:
    """Append -2, -3... to ``candidate`` until it is not in ``taken``."""
    taken_set = set(taken)
    if candidate not in taken_set:
        return candidate
    suffix = 2
    while f"{candidate}-{suffix}" in taken_set:
        suffix += 1
    return f"{candidate}-{suffix}"


def _needs_unique_segment(current: Page, changes: Dict[str, Any]) -> bool:
    """A new segment, or a move under another parent, must not clash with siblings."""
    if changes.get("url_segment"):
        return True
    return "parent_id" in changes and changes["parent_id"] != current.parent_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BasePageStore(ABC):
    """Abstract base class for versioned page store implementations."""

    @abstractmethod
    async def create_page(self, data: Dict[str, Any], author_id: Optional[str] = None) -> Page:
        """Create a page; its first version is number 1."""

    @abstractmethod
    async def write_page(
        self,
        page_id: int,
        changes: Dict[str, Any],
        author_id: Optional[str] = None,
    ) -> Page:
        """
        Apply changes to the draft and write a new version.

        Raises:
            PageNotFoundError: If the page does not exist.
        """

    @abstractmethod
    async def publish_page(self, page_id: int, publisher_id: Optional[str] = None) -> PageVersion:
        """
        Publish the current draft version.

        Raises:
            PageNotFoundError: If the page does not exist.
        """

    @abstractmethod
    async def get_page(self, page_id: int) -> Optional[Page]:
        """Return the draft page, or None."""

    @abstractmethod
    async def get_version(self, page_id: int, version: int) -> Optional[PageVersion]:
        """Return a specific version of a page, or None."""

    @abstractmethod
    async def all_versions(self, page_id: int) -> List[PageVersion]:
        """Return every version of a page, newest first."""

    @abstractmethod
    async def get_latest_version_number(self, page_id: int) -> Optional[int]:
        """Return the highest version number of a page, or None."""

    @abstractmethod
    async def get_live_version_number(self, page_id: int) -> Optional[int]:
        """Return the published version number, or None if never published."""

    @abstractmethod
    async def list_pages(self) -> List[Page]:
        """Return all draft pages ordered by sort then ID."""

    async def is_latest_version(self, record: PageVersion) -> bool:
        """Check whether a version snapshot is the newest version of its page."""
        latest = await self.get_latest_version_number(record.id)
        return latest is not None and record.version == latest

    async def rollback_to(
        self,
        page_id: int,
        version: int,
        author_id: Optional[str] = None,
    ) -> Page:
        """
        Copy a previous version onto the draft, creating a new version.

        Raises:
            VersionNotFoundError: If the version does not exist.
            RollbackConflictError: If the version is already the latest one.
        """
        target = await self.get_version(page_id, version)
        if target is None:
            raise VersionNotFoundError(page_id, version)

        latest = await self.get_latest_version_number(page_id)
        if latest == version:
            raise RollbackConflictError(page_id, version)

        changes = {name: getattr(target, name) for name in VERSIONED_FIELDS}
        page = await self.write_page(page_id, changes, author_id=author_id)
        logger.info(
            f"Rolled back page {page_id} to version {version} "
            f"(new version: {page.version})"
        )
        return page


class InMemoryPageStore(BasePageStore):
    """In-memory page store for development and testing."""

    def __init__(self) -> None:
        self._pages: Dict[int, Page] = {}
        self._versions: Dict[int, List[PageVersion]] = {}
        self._live_versions: Dict[int, int] = {}
        self._next_id = 1
        logger.info("Initialized in-memory page store")

    def _snapshot(self, page: Page, author_id: Optional[str]) -> PageVersion:
        data = page.model_dump()
        data["created"] = page.last_edited or _utcnow()
        return PageVersion(**data, author_id=author_id)

    def _sibling_segments(self, parent_id: Optional[int], exclude_id: Optional[int]) -> List[str]:
        return [
            p.url_segment
            for p in self._pages.values()
            if p.parent_id == parent_id and p.id != exclude_id
        ]

    async def create_page(self, data: Dict[str, Any], author_id: Optional[str] = None) -> Page:
        page_id = self._next_id
        self._next_id += 1

        fields = {k: v for k, v in data.items() if k in VERSIONED_FIELDS and v is not None}
        segment = fields.get("url_segment") or generate_url_segment(fields.get("title", ""))
        fields["url_segment"] = unique_url_segment(
            segment, self._sibling_segments(fields.get("parent_id"), None)
        )

        now = _utcnow()
        page = Page(id=page_id, version=1, created=now, last_edited=now, **fields)

        self._pages[page_id] = page
        self._versions[page_id] = [self._snapshot(page, author_id)]

        logger.info(f"Created page {page_id} ({page.class_name}: {page.title!r})")
        return page.model_copy(deep=True)

    async def write_page(
        self,
        page_id: int,
        changes: Dict[str, Any],
        author_id: Optional[str] = None,
    ) -> Page:
        current = self._pages.get(page_id)
        if current is None:
            raise PageNotFoundError(page_id)

        data = current.model_dump()
        for name, value in changes.items():
            if name in VERSIONED_FIELDS:
                data[name] = value

        if _needs_unique_segment(current, changes):
            data["url_segment"] = unique_url_segment(
                data["url_segment"],
                self._sibling_segments(data["parent_id"], page_id),
            )

        data["version"] = self._versions[page_id][-1].version + 1
        data["last_edited"] = _utcnow()
        page = Page(**data)

        self._pages[page_id] = page
        self._versions[page_id].append(self._snapshot(page, author_id))

        logger.info(f"Wrote version {page.version} of page {page_id}")
        return page.model_copy(deep=True)

    async def publish_page(self, page_id: int, publisher_id: Optional[str] = None) -> PageVersion:
        page = self._pages.get(page_id)
        if page is None:
            raise PageNotFoundError(page_id)

        for version in self._versions[page_id]:
            if version.version == page.version:
                version.was_published = True
                version.publisher_id = publisher_id
                self._live_versions[page_id] = version.version
                logger.info(f"Published version {version.version} of page {page_id}")
                return version.model_copy(deep=True)

        raise VersionNotFoundError(page_id, page.version)

    async def get_page(self, page_id: int) -> Optional[Page]:
        page = self._pages.get(page_id)
        return page.model_copy(deep=True) if page else None

    async def get_version(self, page_id: int, version: int) -> Optional[PageVersion]:
        for snapshot in self._versions.get(page_id, []):
            if snapshot.version == version:
                return snapshot.model_copy(deep=True)
        return None

    async def all_versions(self, page_id: int) -> List[PageVersion]:
        versions = self._versions.get(page_id, [])
        return [v.model_copy(deep=True) for v in sorted(versions, key=lambda v: v.version, reverse=True)]

    async def get_latest_version_number(self, page_id: int) -> Optional[int]:
        versions = self._versions.get(page_id)
        if not versions:
            return None
        return max(v.version for v in versions)

    async def get_live_version_number(self, page_id: int) -> Optional[int]:
        return self._live_versions.get(page_id)

    async def list_pages(self) -> List[Page]:
        pages = sorted(self._pages.values(), key=lambda p: (p.sort, p.id))
        return [p.model_copy(deep=True) for p in pages]


_PAGE_COLUMNS = """
    parent_id,
    class_name,
    title,
    menu_title,
    url_segment,
    content,
    meta_description,
    sort,
    can_view_type,
    viewer_groups
"""


class PostgresPageStore(BasePageStore):
    """Postgres-backed page store for production."""

    def __init__(self) -> None:
        logger.info("Initialized Postgres page store")

    @staticmethod
    def _page_from_row(row: Any) -> Page:
        return Page(
            id=row["id"],
            parent_id=row["parent_id"],
            class_name=row["class_name"],
            title=row["title"],
            menu_title=row["menu_title"],
            url_segment=row["url_segment"],
            content=row["content"],
            meta_description=row["meta_description"],
            sort=row["sort"],
            can_view_type=CanViewType(row["can_view_type"]),
            viewer_groups=list(row["viewer_groups"] or []),
            version=row["version"],
            created=row["created"],
            last_edited=row["last_edited"],
        )

    @staticmethod
    def _version_from_row(row: Any) -> PageVersion:
        return PageVersion(
            id=row["page_id"],
            parent_id=row["parent_id"],
            class_name=row["class_name"],
            title=row["title"],
            menu_title=row["menu_title"],
            url_segment=row["url_segment"],
            content=row["content"],
            meta_description=row["meta_description"],
            sort=row["sort"],
            can_view_type=CanViewType(row["can_view_type"]),
            viewer_groups=list(row["viewer_groups"] or []),
            version=row["version"],
            created=row["created"],
            last_edited=row["created"],
            was_published=row["was_published"],
            author_id=row["author_id"],
            publisher_id=row["publisher_id"],
        )

    async def _sibling_segments(
        self,
        parent_id: Optional[int],
        segment: str,
        exclude_id: Optional[int],
    ) -> List[str]:
        rows = await db_fetch(
            """
            SELECT url_segment
              FROM site_tree
             WHERE parent_id IS NOT DISTINCT FROM $1
               AND url_segment LIKE $2 || '%'
               AND id IS DISTINCT FROM $3
            """,
            parent_id,
            segment,
            exclude_id,
        )
        return [row["url_segment"] for row in rows]

    @staticmethod
    def _column_values(page: Dict[str, Any]) -> List[Any]:
        can_view = page.get("can_view_type") or CanViewType.INHERIT
        return [
            page.get("parent_id"),
            page.get("class_name") or "Page",
            page["title"],
            page.get("menu_title"),
            page["url_segment"],
            page.get("content"),
            page.get("meta_description"),
            page.get("sort") or 0,
            CanViewType(can_view).value,
            list(page.get("viewer_groups") or []),
        ]

    async def create_page(self, data: Dict[str, Any], author_id: Optional[str] = None) -> Page:
        fields = {k: v for k, v in data.items() if k in VERSIONED_FIELDS and v is not None}
        segment = fields.get("url_segment") or generate_url_segment(fields.get("title", ""))
        taken = await self._sibling_segments(fields.get("parent_id"), segment, None)
        fields["url_segment"] = unique_url_segment(segment, taken)

        row = await db_fetchrow(
            f"""
            WITH created AS (
              INSERT INTO site_tree ({_PAGE_COLUMNS})
              VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
              RETURNING *
            ), snapshot AS (
              INSERT INTO site_tree_versions (page_id, version, {_PAGE_COLUMNS}, author_id, created)
              SELECT id, version, {_PAGE_COLUMNS}, $11, last_edited
                FROM created
            )
            SELECT * FROM created
            """,
            *self._column_values(fields),
            author_id,
        )
        if not row:
            raise RuntimeError("Failed to insert page")
        page = self._page_from_row(row)
        logger.info(f"Created page {page.id} ({page.class_name}: {page.title!r})")
        return page

    async def write_page(
        self,
        page_id: int,
        changes: Dict[str, Any],
        author_id: Optional[str] = None,
    ) -> Page:
        current = await self.get_page(page_id)
        if current is None:
            raise PageNotFoundError(page_id)

        data = current.model_dump()
        for name, value in changes.items():
            if name in VERSIONED_FIELDS:
                data[name] = value

        if _needs_unique_segment(current, changes):
            taken = await self._sibling_segments(data["parent_id"], data["url_segment"], page_id)
            data["url_segment"] = unique_url_segment(data["url_segment"], taken)

        row = await db_fetchrow(
            f"""
            WITH updated AS (
              UPDATE site_tree
                 SET parent_id = $2,
                     class_name = $3,
                     title = $4,
                     menu_title = $5,
                     url_segment = $6,
                     content = $7,
                     meta_description = $8,
                     sort = $9,
                     can_view_type = $10,
                     viewer_groups = $11,
                     version = (
                       SELECT COALESCE(MAX(version), 0) + 1
                         FROM site_tree_versions
                        WHERE page_id = $1
                     ),
                     last_edited = NOW()
               WHERE id = $1
              RETURNING *
            ), snapshot AS (
              INSERT INTO site_tree_versions (page_id, version, {_PAGE_COLUMNS}, author_id, created)
              SELECT id, version, {_PAGE_COLUMNS}, $12, last_edited
                FROM updated
            )
            SELECT * FROM updated
            """,
            page_id,
            *self._column_values(data),
            author_id,
        )
        if not row:
            raise PageNotFoundError(page_id)
        page = self._page_from_row(row)
        logger.info(f"Wrote version {page.version} of page {page_id}")
        return page

    async def publish_page(self, page_id: int, publisher_id: Optional[str] = None) -> PageVersion:
        row = await db_fetchrow(
            """
            WITH published AS (
              UPDATE site_tree_versions v
                 SET was_published = TRUE,
                     publisher_id = $2
                FROM site_tree p
               WHERE p.id = $1
                 AND v.page_id = p.id
                 AND v.version = p.version
              RETURNING v.*
            ), live AS (
              UPDATE site_tree
                 SET live_version = (SELECT version FROM published)
               WHERE id = $1
                 AND EXISTS (SELECT 1 FROM published)
            )
            SELECT * FROM published
            """,
            page_id,
            publisher_id,
        )
        if not row:
            raise PageNotFoundError(page_id)
        version = self._version_from_row(row)
        logger.info(f"Published version {version.version} of page {page_id}")
        return version

    async def get_page(self, page_id: int) -> Optional[Page]:
        row = await db_fetchrow("SELECT * FROM site_tree WHERE id = $1", page_id)
        if not row:
            return None
        return self._page_from_row(row)

    async def get_version(self, page_id: int, version: int) -> Optional[PageVersion]:
        row = await db_fetchrow(
            """
            SELECT *
              FROM site_tree_versions
             WHERE page_id = $1
               AND version = $2
            """,
            page_id,
            version,
        )
        if not row:
            return None
        return self._version_from_row(row)

    async def all_versions(self, page_id: int) -> List[PageVersion]:
        rows = await db_fetch(
            """
            SELECT *
              FROM site_tree_versions
             WHERE page_id = $1
             ORDER BY version DESC
            """,
            page_id,
        )
        return [self._version_from_row(row) for row in rows]

    async def get_latest_version_number(self, page_id: int) -> Optional[int]:
        return await db_fetchval(
            "SELECT MAX(version) FROM site_tree_versions WHERE page_id = $1",
            page_id,
        )

    async def get_live_version_number(self, page_id: int) -> Optional[int]:
        return await db_fetchval(
            "SELECT live_version FROM site_tree WHERE id = $1",
            page_id,
        )

    async def list_pages(self) -> List[Page]:
        rows = await db_fetch("SELECT * FROM site_tree ORDER BY sort ASC, id ASC")
        return [self._page_from_row(row) for row in rows]


class PageStore:
    """Store factory (Postgres when configured, otherwise in-memory)."""

    _instance: Optional[BasePageStore] = None

    @classmethod
    def get_store(cls) -> BasePageStore:
        if cls._instance is not None:
            return cls._instance

        if is_database_configured():
            cls._instance = PostgresPageStore()
            logger.info("Using Postgres storage for pages")
        else:
            cls._instance = InMemoryPageStore()
            logger.info("DATABASE_URL not configured. Using in-memory page storage")

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the store instance. Useful for testing."""
        cls._instance = None


def get_page_store() -> BasePageStore:
    """Get the page store instance."""
    return PageStore.get_store()
