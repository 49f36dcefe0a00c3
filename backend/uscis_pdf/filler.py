"""
Form filling engine.

Takes a form type and the nested data a user submitted, flattens the data into
camel-cased composite keys, resolves each key through the form's field mapping
and writes it into the official PDF template. The result is flattened (values
baked into the page content, every field read-only) and returned as bytes.

Only a missing or unreadable template aborts a fill. Everything that can go
wrong for a single field is recorded as a ``FieldOutcome`` in the
``FillSummary`` and logged for the people maintaining the mappings.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from pypdf import PdfWriter

from .field_mappings import FieldMappingRegistry
from .pdf_utils import (
    FormWidget,
    WidgetKind,
    check_box,
    index_form_widgets,
    lock_form,
    match_choice_option,
    prepare_form,
    render_field_values,
    select_radio,
    write_bytes,
)
from .template_store import TemplateStore

logger = logging.getLogger(__name__)

CHECKBOX_TRUE_STRINGS = ("true", "yes", "1")


class FieldOutcome(enum.Enum):
    FILLED = "filled"
    SKIPPED_NO_VALUE = "skipped_no_value"
    NOT_FOUND = "not_found"
    UNMATCHED_CHOICE = "unmatched_choice"
    UNSUPPORTED = "unsupported"


@dataclass
class FillSummary:
    form_type: str
    mapping_found: bool = True
    outcomes: Dict[str, FieldOutcome] = field(default_factory=dict)

    def count(self, *outcomes: FieldOutcome) -> int:
        return sum(1 for outcome in self.outcomes.values() if outcome in outcomes)

    @property
    def fields_filled(self) -> int:
        return self.count(FieldOutcome.FILLED)

    @property
    def fields_not_found(self) -> int:
        return self.count(FieldOutcome.NOT_FOUND, FieldOutcome.UNMATCHED_CHOICE)

    @property
    def fields_skipped(self) -> int:
        return self.count(FieldOutcome.SKIPPED_NO_VALUE)

    @property
    def fields_unsupported(self) -> int:
        return self.count(FieldOutcome.UNSUPPORTED)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "form_type": self.form_type,
            "mapping_found": self.mapping_found,
            "fields_filled": self.fields_filled,
            "fields_not_found": self.fields_not_found,
            "fields_skipped": self.fields_skipped,
            "fields_unsupported": self.fields_unsupported,
        }


@dataclass
class FillResult:
    content: bytes
    summary: FillSummary


def flatten_form_data(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested submission data into single-level composite keys.

    The nested key is appended to the prefix with its first letter upper-cased,
    so ``{"petitionerInfo": {"lastName": "Smith"}}`` becomes
    ``{"petitionerInfoLastName": "Smith"}``. Lists and other non-mapping values
    are leaves and are never descended into.
    """
    flattened: Dict[str, Any] = {}
    for key, value in data.items():
        key = str(key)
        composite = prefix + key[:1].upper() + key[1:] if prefix else key
        if isinstance(value, Mapping):
            flattened.update(flatten_form_data(value, composite))
        else:
            flattened[composite] = value
    return flattened


def field_text(value: Any) -> str:
    """String form of a submitted value, following JSON conventions."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else field_text(item) for item in value)
    return str(value)


def is_checked_value(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value in CHECKBOX_TRUE_STRINGS)


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


class FormFiller:
    """Fills official form templates using the registered field mappings."""

    def __init__(self, templates: TemplateStore, mappings: FieldMappingRegistry):
        self.templates = templates
        self.mappings = mappings

    def fill(self, form_type: str, form_data: Mapping[str, Any]) -> bytes:
        return self.fill_with_summary(form_type, form_data).content

    def fill_with_summary(self, form_type: str, form_data: Mapping[str, Any]) -> FillResult:
        reader = self.templates.open_template(form_type)
        writer = PdfWriter(clone_from=reader)
        prepare_form(writer)
        summary = FillSummary(form_type=form_type)

        field_mapping = self.mappings.lookup_mapping(form_type)
        if field_mapping is None:
            logger.warning("No field mapping found for form type %s; returning the blank template", form_type)
            summary.mapping_found = False
        else:
            self._fill_fields(writer, field_mapping, flatten_form_data(form_data or {}), summary)

        locked = lock_form(writer)
        logger.info(
            "Filled %s: %d filled, %d not found, %d skipped, %d fields locked",
            form_type,
            summary.fields_filled,
            summary.fields_not_found,
            summary.fields_skipped,
            locked,
        )
        return FillResult(content=write_bytes(writer), summary=summary)

    def _fill_fields(
        self,
        writer: PdfWriter,
        field_mapping: Mapping[str, str],
        flattened: Mapping[str, Any],
        summary: FillSummary,
    ) -> None:
        widgets = index_form_widgets(writer)
        rendered: Dict[str, str] = {}

        for logical_key, pdf_field in field_mapping.items():
            value = flattened.get(logical_key)
            if not _has_value(value):
                summary.outcomes[logical_key] = FieldOutcome.SKIPPED_NO_VALUE
                continue

            widget = widgets.get(pdf_field)
            if widget is None:
                logger.warning("Field not found in PDF: %s (%s)", pdf_field, logical_key)
                summary.outcomes[logical_key] = FieldOutcome.NOT_FOUND
                continue

            outcome = self._fill_widget(widget, value, rendered)
            if outcome is FieldOutcome.UNMATCHED_CHOICE:
                logger.warning(
                    "No option %r for choice field %s (%s)", field_text(value), pdf_field, logical_key
                )
            summary.outcomes[logical_key] = outcome

        render_field_values(writer, rendered)

    def _fill_widget(self, widget: FormWidget, value: Any, rendered: Dict[str, str]) -> FieldOutcome:
        text = field_text(value)

        if widget.kind is WidgetKind.TEXT:
            rendered[widget.name] = text
            return FieldOutcome.FILLED

        if widget.kind is WidgetKind.CHECKBOX:
            if not is_checked_value(value):
                return FieldOutcome.SKIPPED_NO_VALUE
            check_box(widget)
            return FieldOutcome.FILLED

        if widget.kind is WidgetKind.CHOICE:
            if widget.is_radio:
                return FieldOutcome.FILLED if select_radio(widget, text) else FieldOutcome.UNMATCHED_CHOICE
            export = match_choice_option(widget, text)
            if export is None:
                return FieldOutcome.UNMATCHED_CHOICE
            rendered[widget.name] = export
            return FieldOutcome.FILLED

        logger.debug("Field %s has an unsupported widget type", widget.name)
        return FieldOutcome.UNSUPPORTED


def fill_form(
    form_type: str,
    form_data: Mapping[str, Any],
    templates: TemplateStore,
    mappings: Optional[FieldMappingRegistry] = None,
) -> bytes:
    """Convenience wrapper around ``FormFiller.fill``."""
    return FormFiller(templates, mappings or FieldMappingRegistry()).fill(form_type, form_data)
