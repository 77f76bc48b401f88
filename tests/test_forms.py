"""
Tests for the declarative form model and its HTML rendering.
"""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cms.forms import FieldType, Form, FormAction, FormField, checkbox_value


def sample_form():
    return Form(
        name="EditForm",
        fields=[
            FormField(name="Title", title="Page name", value="About us"),
            FormField(name="Notice", field_type=FieldType.LITERAL, value="<p>Hi</p>"),
            FormField(name="Content", field_type=FieldType.TEXTAREA, value="<p>Body</p>"),
        ],
        actions=[FormAction(name="save", title="Save")],
        form_action="/admin/save",
    )


class TestFormStructure:
    def test_id_defaults_from_name(self):
        assert Form(name="PageComments.PostCommentForm").id == "Form_PageComments_PostCommentForm"
        assert Form(name="EditForm", html_id="Custom").id == "Custom"

    def test_insert_before(self):
        form = sample_form()
        assert form.insert_before("Content", FormField(name="Menu"))
        assert [f.name for f in form.fields] == ["Title", "Notice", "Menu", "Content"]

    def test_insert_before_missing_target_appends(self):
        form = sample_form()
        assert not form.insert_before("Nope", FormField(name="Menu"))
        assert form.fields[-1].name == "Menu"

    def test_remove_field(self):
        form = sample_form()
        assert form.remove_field("Title")
        assert not form.remove_field("Title")
        assert form.field("Title") is None

    def test_load_data_skips_literal_fields(self):
        form = sample_form()
        form.load_data_from({"Title": "New", "Notice": "ignored", "Unknown": 1})

        assert form.field("Title").value == "New"
        assert form.field("Notice").value == "<p>Hi</p>"

    def test_load_data_coerces_checkboxes(self):
        form = Form(name="Options", fields=[
            FormField(name="Enabled", field_type=FieldType.CHECKBOX, value=True),
            FormField(name="Other", field_type=FieldType.CHECKBOX),
        ])
        form.load_data_from({"Enabled": "0", "Other": "1"})

        assert form.field("Enabled").value is False
        assert form.field("Other").value is True

    def test_checkbox_value(self):
        for value in ("", "0", "false", "OFF", "no", None, 0, False):
            assert checkbox_value(value) is False
        for value in ("1", "on", "true", 1, True):
            assert checkbox_value(value) is True

    def test_data_fields(self):
        assert [f.name for f in sample_form().data_fields()] == ["Title", "Content"]

    def test_extra_classes(self):
        form = sample_form()
        form.add_extra_class("cms-content center")
        form.add_extra_class("center")
        form.remove_extra_class("cms-content")
        assert form.extra_classes == ["center"]


class TestFormRendering:
    def test_editable_fields(self):
        html = str(sample_form().render())

        assert '<form id="Form_EditForm" action="/admin/save" method="post">' in html
        assert 'name="Title" id="Form_EditForm_Title" value="About us"' in html
        assert "&lt;p&gt;Body&lt;/p&gt;</textarea>" in html
        assert '<div id="Form_EditForm_Notice" class="field literal"><p>Hi</p></div>' in html
        assert 'name="action_save"' in html

    def test_readonly_fields_escape_by_default(self):
        form = sample_form().make_readonly()
        html = str(form.render())

        assert 'class="field readonly text"' in html
        assert "&lt;p&gt;Body&lt;/p&gt;" in html
        assert "<textarea" not in html

    def test_readonly_fields_without_escaping(self):
        form = sample_form().make_readonly()
        form.field("Content").escape = False
        html = str(form.render())

        assert '<span id="Form_EditForm_Content" class="readonly"><p>Body</p></span>' in html

    def test_readonly_action_is_disabled(self):
        form = sample_form()
        form.actions = [FormAction(name="doRollback", title="Revert", readonly=True, use_button_tag=True)]
        html = str(form.render())

        assert (
            '<button type="submit" name="action_doRollback" '
            'id="Form_EditForm_action_doRollback" disabled="disabled">Revert</button>'
        ) in html

    def test_attributes_and_hidden_fields(self):
        form = Form(
            name="VersionsForm",
            method="GET",
            fields=[FormField(name="ID", field_type=FieldType.HIDDEN, value=3)],
        )
        form.set_attribute("data-link-tmpl-show", "/admin/pages/history/show/%s/%s")
        html = str(form.render())

        assert 'method="get"' in html
        assert 'data-link-tmpl-show="/admin/pages/history/show/%s/%s"' in html
        assert '<input type="hidden" name="ID" id="Form_VersionsForm_ID" value="3">' in html
