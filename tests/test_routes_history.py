"""
Tests for the page history endpoints.

Covers full page and PJAX fragment responses, version comparison, rollback
and the access checks of /admin/pages/history.
"""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from cms.types.page import CanViewType

HISTORY = "/admin/pages/history"


@pytest.fixture
def history_page(client, admin_headers):
    """A page with three versions; version 2 is published."""
    response = client.post(
        "/admin/pages",
        json={"title": "About us", "content": "<p>Hello world</p>"},
        headers=admin_headers,
    )
    page_id = response.json()["page"]["id"]
    client.put(
        f"/admin/pages/{page_id}",
        json={"content": "<p>Hello there world</p>"},
        headers=admin_headers,
    )
    client.post(f"/admin/pages/{page_id}/publish", headers=admin_headers)
    client.put(f"/admin/pages/{page_id}", json={"title": "About"}, headers=admin_headers)
    return page_id


class TestShow:
    def test_show_latest_version(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/show/{history_page}", headers=editor_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'id="Form_EditForm"' in response.text
        assert 'id="Form_VersionsForm"' in response.text
        assert "Currently viewing the latest version." in response.text
        assert 'id="Form_EditForm_action_doRollback" disabled="disabled"' in response.text

    def test_show_older_version(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/show/{history_page}/1", headers=editor_headers)

        assert response.status_code == 200
        assert "Currently viewing version 1." in response.text
        assert f'action="{HISTORY}/EditForm/{history_page}/1"' in response.text
        assert 'id="Form_EditForm_action_doRollback">Revert to this version</button>' in response.text
        assert "SilverStripeNavigatorLink_ArchiveLink" in response.text

    def test_pjax_fragments(self, client, editor_headers, history_page):
        headers = dict(editor_headers, **{"X-Pjax": "CurrentForm,Breadcrumbs"})
        response = client.get(f"{HISTORY}/show/{history_page}", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"CurrentForm", "Breadcrumbs"}
        assert data["CurrentForm"].startswith('<form id="Form_EditForm"')
        assert "About" in data["Breadcrumbs"]
        assert 'href="/admin/pages"' in data["Breadcrumbs"]

    def test_unknown_fragment(self, client, editor_headers, history_page):
        headers = dict(editor_headers, **{"X-Pjax": "CurrentForm,Sidebar"})
        response = client.get(f"{HISTORY}/show/{history_page}", headers=headers)

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "UNKNOWN_FRAGMENT"
        assert data["details"]["fragments"] == ["Sidebar"]

    def test_missing_page_shows_empty_form(self, client, editor_headers):
        headers = dict(editor_headers, **{"X-Pjax": "CurrentForm"})
        response = client.get(f"{HISTORY}/show/999", headers=headers)

        assert response.status_code == 200
        assert "Form_EditForm_Title" not in response.json()["CurrentForm"]


class TestCompare:
    def test_compare_versions(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/compare/{history_page}/2/1", headers=editor_headers)

        assert response.status_code == 200
        assert "Comparing versions 1" in response.text
        assert "<ins>there" in response.text
        assert "action_doRollback" not in response.text

    def test_compare_missing_version(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/compare/{history_page}/1/9", headers=editor_headers)

        assert response.status_code == 404
        assert response.json()["error_code"] == "VERSION_NOT_FOUND"

    def test_compare_without_version_shows_empty_content(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/compare/{history_page}/0/2", headers=editor_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "cms-history-empty" in response.text

    def test_compare_without_version_fragment(self, client, editor_headers, history_page):
        headers = dict(editor_headers, **{"X-Pjax": "CurrentForm"})
        response = client.get(f"{HISTORY}/compare/{history_page}/0/2", headers=headers)

        assert response.status_code == 200
        assert "cms-history-empty" in response.json()["CurrentForm"]


class TestEditForm:
    def test_edit_form_requires_version(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/EditForm/{history_page}", headers=editor_headers)

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "VersionID"

    def test_edit_form(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/EditForm/{history_page}/2", headers=editor_headers)

        assert response.status_code == 200
        assert response.text.startswith('<form id="Form_EditForm"')
        assert "Currently viewing version 2." in response.text


class TestRollback:
    def test_rollback_redirects_to_new_version(self, client, editor_headers, history_page):
        response = client.post(
            f"{HISTORY}/EditForm/{history_page}/1/doRollback",
            headers=editor_headers,
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == f"{HISTORY}/show/{history_page}/4"
        assert response.headers["X-Status"] == "Rolled back to version #1. New version number is #4"

        page = client.get(f"/admin/pages/{history_page}", headers=editor_headers).json()["page"]
        assert page["version"] == 4
        assert page["title"] == "About us"
        assert page["content"] == "<p>Hello world</p>"

    def test_rollback_to_latest_conflicts(self, client, editor_headers, history_page):
        response = client.post(
            f"{HISTORY}/EditForm/{history_page}/3/doRollback",
            headers=editor_headers,
            follow_redirects=False,
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_LATEST_VERSION"

    def test_rollback_missing_version(self, client, editor_headers, history_page):
        response = client.post(
            f"{HISTORY}/EditForm/{history_page}/9/doRollback",
            headers=editor_headers,
            follow_redirects=False,
        )

        assert response.status_code == 404

    def test_rollback_missing_page(self, client, editor_headers):
        response = client.post(
            f"{HISTORY}/EditForm/404/1/doRollback",
            headers=editor_headers,
            follow_redirects=False,
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "PAGE_NOT_FOUND"


class TestVersions:
    def test_versions_form(self, client, editor_headers, history_page):
        response = client.get(
            f"{HISTORY}/VersionsForm/{history_page}",
            params={"action": "compare", "version_id": 1, "other_version_id": 2},
            headers=editor_headers,
        )

        assert response.status_code == 200
        assert 'data-link-tmpl-compare="/admin/pages/history/compare/%s/%s/%s"' in response.text
        assert (
            'name="CompareMode" id="Form_VersionsForm_CompareMode" value="1" checked="checked"'
        ) in response.text

    def test_list_versions(self, client, editor_headers, history_page):
        response = client.get(f"{HISTORY}/{history_page}/versions", headers=editor_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["current_version"] == 3
        assert data["live_version"] == 2
        assert [v["version"] for v in data["versions"]] == [3, 2, 1]
        assert [v["was_published"] for v in data["versions"]] == [False, True, False]


class TestAccess:
    def test_missing_api_key(self, client, member_store, history_page):
        response = client.get(f"{HISTORY}/show/{history_page}")

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTHENTICATION_REQUIRED"

    def test_member_without_cms_access(self, client, visitor_headers, history_page):
        response = client.get(f"{HISTORY}/show/{history_page}", headers=visitor_headers)

        assert response.status_code == 403
        assert response.json()["details"]["required_permission"] == "CMS_ACCESS_CMSMain"

    def test_page_view_permission(self, client, admin_headers, editor_headers):
        response = client.post(
            "/admin/pages",
            json={
                "title": "Board minutes",
                "can_view_type": CanViewType.ONLY_THESE_USERS.value,
                "viewer_groups": ["board"],
            },
            headers=admin_headers,
        )
        page_id = response.json()["page"]["id"]

        assert client.get(f"{HISTORY}/show/{page_id}", headers=editor_headers).status_code == 403
        assert client.get(f"{HISTORY}/{page_id}/versions", headers=editor_headers).status_code == 403
        assert client.get(f"{HISTORY}/show/{page_id}", headers=admin_headers).status_code == 200
