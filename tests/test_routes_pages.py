"""
Tests for page administration and the public page view.
"""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cms.types.comment import PageComment


class TestPageAdministration:
    def test_create_page(self, client, editor_headers):
        response = client.post("/admin/pages", json={"title": "About us"}, headers=editor_headers)

        assert response.status_code == 201
        page = response.json()["page"]
        assert page["version"] == 1
        assert page["url_segment"] == "about-us"
        assert page["can_view_type"] == "Inherit"

    def test_create_page_with_missing_parent(self, client, editor_headers):
        response = client.post(
            "/admin/pages",
            json={"title": "Child", "parent_id": 99},
            headers=editor_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Parent page not found"

    def test_create_page_validation(self, client, editor_headers):
        response = client.post("/admin/pages", json={"title": ""}, headers=editor_headers)

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_update_keeps_omitted_fields(self, client, editor_headers, make_page):
        page = make_page(title="About us", content="<p>Body</p>")

        response = client.put(
            f"/admin/pages/{page.id}",
            json={"title": "About"},
            headers=editor_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["page"]["version"] == 2
        assert data["page"]["content"] == "<p>Body</p>"
        assert data["message"] == "Saved version 2"

    def test_publish(self, client, editor_headers, make_page):
        page = make_page()

        response = client.post(f"/admin/pages/{page.id}/publish", headers=editor_headers)

        assert response.status_code == 200
        assert response.json()["live_version"] == 1

    def test_get_missing_page(self, client, editor_headers):
        response = client.get("/admin/pages/12", headers=editor_headers)

        assert response.status_code == 404
        assert response.json()["error_code"] == "PAGE_NOT_FOUND"

    def test_requires_cms_access(self, client, visitor_headers, make_page):
        page = make_page()

        response = client.get(f"/admin/pages/{page.id}", headers=visitor_headers)

        assert response.status_code == 403


class TestPageView:
    def test_unpublished_page_is_not_found(self, client, make_page):
        page = make_page()

        assert client.get(f"/pages/{page.id}").status_code == 404

    def test_published_page(self, client, page_store, make_page, run):
        page = make_page(title="About us", content="<p>Welcome</p>")
        run(page_store.publish_page(page.id))
        run(page_store.write_page(page.id, {"content": "<p>Draft only</p>"}))

        response = client.get(f"/pages/{page.id}")

        assert response.status_code == 200
        assert "<p>Welcome</p>" in response.text
        assert "Draft only" not in response.text
        assert "No one has commented on this page yet." in response.text
        assert 'id="Form_PageComments_PostCommentForm"' in response.text
        assert f"PageComment/rss?pageid={page.id}" in response.text

    def test_stage_view_requires_cms_access(self, client, editor_headers, page_store, make_page, run):
        page = make_page(content="<p>Live</p>")
        run(page_store.publish_page(page.id))
        run(page_store.write_page(page.id, {"content": "<p>Draft only</p>"}))

        assert client.get(f"/pages/{page.id}?stage=Stage").status_code == 403

        response = client.get(f"/pages/{page.id}?stage=Stage", headers=editor_headers)
        assert response.status_code == 200
        assert "Draft only" in response.text

    def test_archived_version(self, client, editor_headers, page_store, make_page, run):
        page = make_page(content="<p>First</p>")
        run(page_store.write_page(page.id, {"content": "<p>Second</p>"}))

        response = client.get(f"/pages/{page.id}?version=1", headers=editor_headers)
        assert response.status_code == 200
        assert "<p>First</p>" in response.text

        missing = client.get(f"/pages/{page.id}?version=7", headers=editor_headers)
        assert missing.status_code == 404

    def test_logged_in_users_page(self, client, visitor_headers, page_store, make_page, run):
        page = make_page(can_view_type="LoggedInUsers")
        run(page_store.publish_page(page.id))

        assert client.get(f"/pages/{page.id}").status_code == 403
        assert client.get(f"/pages/{page.id}", headers=visitor_headers).status_code == 200

    def test_spam_only_shown_to_cms_users(
        self, client, editor_headers, page_store, comment_store, make_page, run
    ):
        page = make_page()
        run(page_store.publish_page(page.id))
        run(comment_store.add_comment(PageComment(parent_id=page.id, name="Ham", comment="Nice page")))
        run(comment_store.add_comment(
            PageComment(parent_id=page.id, name="Spammer", comment="Buy now", is_spam=True)
        ))

        public = client.get(f"/pages/{page.id}?showspam=1")
        assert "Nice page" in public.text
        assert "Buy now" not in public.text

        admin = client.get(f"/pages/{page.id}?showspam=1", headers=editor_headers)
        assert "Buy now" in admin.text

    def test_comment_pagination(self, client, page_store, comment_store, make_page, run):
        page = make_page()
        run(page_store.publish_page(page.id))
        for i in range(12):
            run(comment_store.add_comment(
                PageComment(parent_id=page.id, name="Visitor", comment=f"Comment number {i}")
            ))

        first = client.get(f"/pages/{page.id}")
        assert first.text.count('class="pageComment"') == 10
        assert f'href="/pages/{page.id}?commentStart=10"' in first.text

        second = client.get(f"/pages/{page.id}?commentStart=10")
        assert second.text.count('class="pageComment"') == 2

        garbage = client.get(f"/pages/{page.id}?commentStart=abc")
        assert garbage.text.count('class="pageComment"') == 10
