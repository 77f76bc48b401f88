"""
Declarative form model.

Forms are plain pydantic models so they can be returned as JSON, and are
rendered to HTML through the ``forms/form.html`` Jinja2 template. Field names
follow the CMS database field names (``Title``, ``URLSegment``...).
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from markupsafe import Markup
from pydantic import BaseModel, Field

from cms.templating import render_template

logger = logging.getLogger(__name__)


class FieldType(str, Enum):
    HIDDEN = "hidden"
    TEXT = "text"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    LITERAL = "literal"
    READONLY = "readonly"


# Field types that display markup only and hold no submitted value
NON_DATA_TYPES = frozenset({FieldType.LITERAL})

# Submitted checkbox values that mean "unchecked"
FALSE_CHECKBOX_VALUES = frozenset({"", "0", "false", "off", "no"})


def checkbox_value(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_CHECKBOX_VALUES
    return bool(value)


class FormField(BaseModel):
    """A single form field."""

    name: str
    title: Optional[str] = None
    field_type: FieldType = FieldType.TEXT
    value: Any = None
    readonly: bool = False
    escape: bool = Field(
        default=True,
        description="Escape the value when rendered read-only; off for diff markup"
    )
    tab: Optional[str] = Field(default=None, description="Tab the field belongs to")
    extra_classes: List[str] = Field(default_factory=list)

    @property
    def is_data_field(self) -> bool:
        return self.field_type not in NON_DATA_TYPES


class FormAction(BaseModel):
    """A submit action of a form."""

    name: str
    title: str
    readonly: bool = False
    use_button_tag: bool = False
    extra_classes: List[str] = Field(default_factory=list)


class Form(BaseModel):
    """A form with ordered fields and actions."""

    name: str
    html_id: Optional[str] = None
    fields: List[FormField] = Field(default_factory=list)
    actions: List[FormAction] = Field(default_factory=list)
    form_action: str = ""
    method: str = "POST"
    extra_classes: List[str] = Field(default_factory=list)
    attributes: Dict[str, str] = Field(default_factory=dict)
    message: Optional[str] = None
    message_type: str = "good"

    @property
    def id(self) -> str:
        return self.html_id or "Form_" + self.name.replace(".", "_")

    def field(self, name: str) -> Optional[FormField]:
        """Look up a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def action(self, name: str) -> Optional[FormAction]:
        for a in self.actions:
            if a.name == name:
                return a
        return None

    def remove_field(self, name: str) -> bool:
        """Remove a field; returns False when there was none."""
        before = len(self.fields)
        self.fields = [f for f in self.fields if f.name != name]
        return len(self.fields) != before

    def push(self, field: FormField) -> "Form":
        self.fields.append(field)
        return self

    def insert_before(self, target: str, field: FormField) -> bool:
        """
        Insert ``field`` before the field named ``target``.

        Returns:
            True if inserted before target, False if target was missing and
            the field was appended instead.
        """
        for index, existing in enumerate(self.fields):
            if existing.name == target:
                self.fields.insert(index, field)
                return True
        self.fields.append(field)
        return False

    def make_readonly(self) -> "Form":
        """Mark every field read-only."""
        for f in self.fields:
            f.readonly = True
        return self

    def load_data_from(self, data: Mapping[str, Any]) -> "Form":
        """Set field values from a mapping keyed by field name."""
        for f in self.data_fields():
            if f.name not in data:
                continue
            if f.field_type == FieldType.CHECKBOX:
                f.value = checkbox_value(data[f.name])
            else:
                f.value = data[f.name]
        return self

    def data_fields(self) -> List[FormField]:
        """Fields that carry a value (everything except literal markup)."""
        return [f for f in self.fields if f.is_data_field]

    def add_extra_class(self, css_class: str) -> "Form":
        for name in css_class.split():
            if name not in self.extra_classes:
                self.extra_classes.append(name)
        return self

    def remove_extra_class(self, css_class: str) -> "Form":
        names = set(css_class.split())
        self.extra_classes = [c for c in self.extra_classes if c not in names]
        return self

    def set_attribute(self, name: str, value: str) -> "Form":
        self.attributes[name] = value
        return self

    def field_id(self, field: FormField) -> str:
        return f"{self.id}_{field.name}"

    def render(self) -> Markup:
        """Render the form to HTML."""
        return Markup(render_template("forms/form.html", form=self))

    def __html__(self) -> str:
        return str(self.render())
