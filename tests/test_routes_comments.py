"""
Tests for the page comment endpoints: posting, RSS feed and moderation.
"""

import os
import sys
from unittest.mock import AsyncMock, patch
from xml.etree import ElementTree as ET

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from cms.comments.service import REMEMBERED_NAME_COOKIE, WRONG_ANSWER_HTML
from cms.comments.spam import AkismetClient, MathSpamProtection
from cms.types.comment import PageComment

AJAX = {"X-Requested-With": "XMLHttpRequest"}


@pytest.fixture
def live_page(page_store, make_page, run):
    page = make_page(title="About us")
    run(page_store.publish_page(page.id))
    return page


def comment_form(page_id, answer="5", **overrides):
    data = {
        "ParentID": str(page_id),
        "Name": "Sam",
        "Comment": "Great article",
        "Math": answer,
        "MathToken": MathSpamProtection().make_token(2, 3),
    }
    data.update(overrides)
    return data


class TestPostComment:
    def test_ajax_post(self, client, comment_store, live_page, run):
        response = client.post(
            "/PageComment/postcomment",
            data=comment_form(live_page.id),
            headers=AJAX,
        )

        assert response.status_code == 200
        assert 'id="PageComment_1"' in response.text
        assert "Great article" in response.text
        assert response.cookies.get(REMEMBERED_NAME_COOKIE) == "Sam"

        items, total = run(comment_store.list_comments(live_page.id))
        assert total == 1
        assert items[0].name == "Sam"

    def test_post_redirects_back(self, client, live_page):
        response = client.post(
            "/PageComment/postcomment",
            data=comment_form(live_page.id),
            headers={"Referer": "http://testserver/pages/1?commentStart=10"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "http://testserver/pages/1?commentStart=10"

    def test_post_without_referer_redirects_to_page(self, client, live_page):
        response = client.post(
            "/PageComment/postcomment",
            data=comment_form(live_page.id),
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == f"/pages/{live_page.id}"

    def test_wrong_answer_ajax(self, client, comment_store, live_page, run):
        response = client.post(
            "/PageComment/postcomment",
            data=comment_form(live_page.id, answer="9"),
            headers=AJAX,
        )

        assert response.status_code == 200
        assert response.text == WRONG_ANSWER_HTML
        assert REMEMBERED_NAME_COOKIE not in response.cookies
        assert run(comment_store.list_comments(live_page.id))[1] == 0

    def test_ajax_query_variable(self, client, live_page):
        response = client.post(
            "/PageComment/postcomment?ajax=1",
            data=comment_form(live_page.id, answer="nine"),
        )

        assert response.text == WRONG_ANSWER_HTML

    def test_markup_is_stripped(self, client, comment_store, live_page, run):
        client.post(
            "/PageComment/postcomment",
            data=comment_form(live_page.id, Comment="<a href='x'>Nice</a> <b>post</b>"),
            headers=AJAX,
        )

        items, _ = run(comment_store.list_comments(live_page.id))
        assert items[0].comment == "Nice post"

    def test_empty_comment_rejected(self, client, live_page):
        response = client.post(
            "/PageComment/postcomment",
            data=comment_form(live_page.id, Comment="<p></p>"),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_missing_page(self, client):
        response = client.post("/PageComment/postcomment", data=comment_form(77))

        assert response.status_code == 404

    def test_spam(self, client, comment_store, live_page, run, monkeypatch):
        from cms.config import get_settings

        monkeypatch.setenv("AKISMET_API_KEY", "testkey")
        get_settings.cache_clear()

        with patch.object(AkismetClient, "is_comment_spam", AsyncMock(return_value=True)) as check:
            response = client.post(
                "/PageComment/postcomment",
                data=comment_form(live_page.id),
                headers={"User-Agent": "spambot/1.0", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
            )

        assert response.status_code == 200
        assert "Spam detected" in response.text
        assert check.await_args.kwargs["user_ip"] == "203.0.113.9"
        assert check.await_args.kwargs["user_agent"] == "spambot/1.0"
        items, total = run(comment_store.list_comments(live_page.id, include_spam=True))
        assert total == 1
        assert items[0].is_spam is True


class TestCommentFeed:
    def test_feed_excludes_spam_and_moderated(self, client, comment_store, live_page, run):
        run(comment_store.add_comment(PageComment(parent_id=live_page.id, name="Sam", comment="Approved")))
        run(comment_store.add_comment(
            PageComment(parent_id=live_page.id, name="Bot", comment="Spam", is_spam=True)
        ))
        run(comment_store.add_comment(
            PageComment(parent_id=live_page.id, name="Kim", comment="Held", needs_moderation=True)
        ))

        response = client.get(f"/PageComment/rss?pageid={live_page.id}")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/rss+xml")
        channel = ET.fromstring(response.content).find("channel")
        assert channel.findtext("title") == "SiteTree CMS: comments on About us"
        items = channel.findall("item")
        assert [item.findtext("description") for item in items] == ["Approved"]
        assert items[0].findtext("title") == "Comment by Sam on About us"
        assert items[0].findtext("link") == f"http://localhost:8000/pages/{live_page.id}#PageComment_1"
        assert items[0].findtext("pubDate")

    def test_site_wide_feed_respects_view_permission(
        self, client, comment_store, make_page, run
    ):
        public = make_page(title="Public")
        private = make_page(title="Members", can_view_type="LoggedInUsers")
        run(comment_store.add_comment(PageComment(parent_id=public.id, name="A", comment="Hello")))
        run(comment_store.add_comment(PageComment(parent_id=private.id, name="B", comment="Secret")))

        response = client.get("/PageComment/rss")

        channel = ET.fromstring(response.content).find("channel")
        assert channel.findtext("title") == "SiteTree CMS: page comments"
        assert [i.findtext("description") for i in channel.findall("item")] == ["Hello"]

    def test_site_wide_feed_skips_past_hidden_comments(
        self, client, comment_store, make_page, run
    ):
        public = make_page(title="Public")
        private = make_page(title="Members", can_view_type="LoggedInUsers")
        for n in range(3):
            run(comment_store.add_comment(PageComment(parent_id=public.id, name="A", comment=f"Hello {n}")))
        for n in range(25):
            run(comment_store.add_comment(PageComment(parent_id=private.id, name="B", comment=f"Secret {n}")))

        response = client.get("/PageComment/rss")

        items = ET.fromstring(response.content).find("channel").findall("item")
        assert [i.findtext("description") for i in items] == ["Hello 2", "Hello 1", "Hello 0"]

    def test_site_wide_feed_is_limited(self, client, comment_store, make_page, run):
        public = make_page(title="Public")
        for n in range(25):
            run(comment_store.add_comment(PageComment(parent_id=public.id, name="A", comment=f"Hello {n}")))

        response = client.get("/PageComment/rss")

        items = ET.fromstring(response.content).find("channel").findall("item")
        assert len(items) == 20
        assert items[0].findtext("description") == "Hello 24"

    def test_feed_for_missing_page(self, client):
        assert client.get("/PageComment/rss?pageid=5").status_code == 404


class TestModeration:
    def test_approve(self, client, editor_headers, comment_store, live_page, run):
        comment = run(comment_store.add_comment(
            PageComment(parent_id=live_page.id, name="Kim", comment="Held", needs_moderation=True)
        ))

        response = client.post(f"/PageComment/approve/{comment.id}", headers=editor_headers)

        assert response.status_code == 200
        assert run(comment_store.get_comment(comment.id)).needs_moderation is False

    def test_approve_requires_cms_access(self, client, visitor_headers, comment_store, live_page, run):
        comment = run(comment_store.add_comment(
            PageComment(parent_id=live_page.id, name="Kim", comment="Held", needs_moderation=True)
        ))

        response = client.post(f"/PageComment/approve/{comment.id}", headers=visitor_headers)

        assert response.status_code == 403

    def test_approve_missing_comment(self, client, editor_headers):
        response = client.post("/PageComment/approve/3", headers=editor_headers)

        assert response.status_code == 404
