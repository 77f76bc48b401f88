"""
Tests for the versioned in-memory page store.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cms.pages.storage import (
    InMemoryPageStore,
    PageNotFoundError,
    RollbackConflictError,
    VersionNotFoundError,
    generate_url_segment,
    unique_url_segment,
)


class TestUrlSegments:
    def test_generate_from_title(self):
        assert generate_url_segment("About Us!") == "about-us"
        assert generate_url_segment("  Contact -- Form ") == "contact-form"

    def test_generate_falls_back_to_page(self):
        assert generate_url_segment("???") == "page"

    def test_unique_segment(self):
        assert unique_url_segment("about", []) == "about"
        assert unique_url_segment("about", ["about"]) == "about-2"
        assert unique_url_segment("about", ["about", "about-2"]) == "about-3"


class TestVersioning:
    @pytest.mark.asyncio
    async def test_create_starts_at_version_one(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us"}, author_id="admin")

        assert page.id == 1
        assert page.version == 1
        assert page.url_segment == "about-us"
        assert await store.get_latest_version_number(page.id) == 1
        assert await store.get_live_version_number(page.id) is None

    @pytest.mark.asyncio
    async def test_sibling_segments_are_unique(self):
        store = InMemoryPageStore()
        first = await store.create_page({"title": "News"})
        second = await store.create_page({"title": "News"})
        child = await store.create_page({"title": "News", "parent_id": first.id})

        assert first.url_segment == "news"
        assert second.url_segment == "news-2"
        assert child.url_segment == "news"

    @pytest.mark.asyncio
    async def test_moving_a_page_keeps_sibling_segments_unique(self):
        store = InMemoryPageStore()
        archive = await store.create_page({"title": "Archive"})
        await store.create_page({"title": "News", "parent_id": archive.id})
        news = await store.create_page({"title": "News"})

        moved = await store.write_page(news.id, {"parent_id": archive.id})
        renamed = await store.write_page(news.id, {"title": "Old news"})

        assert moved.url_segment == "news-2"
        assert renamed.url_segment == "news-2"

    @pytest.mark.asyncio
    async def test_every_write_creates_a_version(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us", "content": "<p>One</p>"})

        await store.write_page(page.id, {"content": "<p>Two</p>"}, author_id="editor")
        page = await store.write_page(page.id, {"title": "About"}, author_id="editor")

        assert page.version == 3
        assert page.content == "<p>Two</p>"
        versions = await store.all_versions(page.id)
        assert [v.version for v in versions] == [3, 2, 1]
        assert versions[-1].content == "<p>One</p>"
        assert versions[0].author_id == "editor"

    @pytest.mark.asyncio
    async def test_write_missing_page(self):
        store = InMemoryPageStore()
        with pytest.raises(PageNotFoundError):
            await store.write_page(42, {"title": "Nope"})

    @pytest.mark.asyncio
    async def test_publish_marks_version(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us"})
        await store.write_page(page.id, {"content": "<p>Draft</p>"})

        published = await store.publish_page(page.id, publisher_id="admin")

        assert published.version == 2
        assert published.was_published is True
        assert published.publisher_id == "admin"
        assert await store.get_live_version_number(page.id) == 2
        assert (await store.get_version(page.id, 1)).was_published is False

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us"})
        page.title = "Changed"

        version = await store.get_version(page.id, 1)
        version.title = "Changed too"

        assert (await store.get_page(page.id)).title == "About us"
        assert (await store.get_version(page.id, 1)).title == "About us"

    @pytest.mark.asyncio
    async def test_is_latest_version(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us"})
        await store.write_page(page.id, {"title": "About"})

        assert await store.is_latest_version(await store.get_version(page.id, 2))
        assert not await store.is_latest_version(await store.get_version(page.id, 1))

    @pytest.mark.asyncio
    async def test_list_pages_sorted(self):
        store = InMemoryPageStore()
        await store.create_page({"title": "B", "sort": 2})
        await store.create_page({"title": "A", "sort": 1})
        await store.create_page({"title": "C", "sort": 1})

        assert [p.title for p in await store.list_pages()] == ["A", "C", "B"]


class TestRollback:
    @pytest.mark.asyncio
    async def test_rollback_writes_new_version(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us", "content": "<p>One</p>"})
        await store.write_page(page.id, {"title": "About", "content": "<p>Two</p>"})

        page = await store.rollback_to(page.id, 1, author_id="editor")

        assert page.version == 3
        assert page.title == "About us"
        assert page.content == "<p>One</p>"
        assert (await store.get_version(page.id, 2)).content == "<p>Two</p>"

    @pytest.mark.asyncio
    async def test_rollback_to_latest_conflicts(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us"})
        await store.write_page(page.id, {"title": "About"})

        with pytest.raises(RollbackConflictError):
            await store.rollback_to(page.id, 2)

    @pytest.mark.asyncio
    async def test_rollback_to_missing_version(self):
        store = InMemoryPageStore()
        page = await store.create_page({"title": "About us"})

        with pytest.raises(VersionNotFoundError) as exc_info:
            await store.rollback_to(page.id, 7)
        assert str(exc_info.value) == f"Can't find version 7 of page {page.id}"
