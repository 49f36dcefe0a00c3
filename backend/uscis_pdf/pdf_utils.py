"""
Low-level AcroForm utilities for filling official form templates.

Fields are addressed by their fully qualified names (``form1[0].#subform[0].Pt2Line4a_FamilyName[0]``),
the same names the field mappings use. Each field is classified once into a
``WidgetKind`` when the form is indexed; the filler dispatches on that kind.
"""

from __future__ import annotations

import enum
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from pypdf import PdfReader, PdfWriter
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    NameObject,
    NumberObject,
    PdfObject,
    StreamObject,
)

logger = logging.getLogger(__name__)

# Field flag bits (PDF 32000-1, tables 221 and 226)
FF_READ_ONLY = 1
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16

OFF_STATE = NameObject("/Off")
DEFAULT_ON_STATE = NameObject("/Yes")


class WidgetKind(enum.Enum):
    TEXT = "text"
    CHECKBOX = "checkbox"
    CHOICE = "choice"
    OTHER = "other"


def _resolve(obj: Optional[PdfObject]):
    return obj.get_object() if obj is not None else None


def _inherited(node: DictionaryObject, key: str):
    """Look up an inheritable field attribute, walking up ``/Parent`` links."""
    while node is not None:
        if key in node:
            return _resolve(node[key])
        node = _resolve(node.get("/Parent"))
    return None


def _field_flags(node: DictionaryObject) -> int:
    return int(_inherited(node, "/Ff") or 0)


def classify_field(node: DictionaryObject) -> WidgetKind:
    field_type = _inherited(node, "/FT")
    if field_type == "/Tx":
        return WidgetKind.TEXT
    if field_type == "/Btn":
        flags = _field_flags(node)
        if flags & FF_PUSHBUTTON:
            return WidgetKind.OTHER
        if flags & FF_RADIO:
            return WidgetKind.CHOICE
        return WidgetKind.CHECKBOX
    if field_type == "/Ch":
        return WidgetKind.CHOICE
    return WidgetKind.OTHER


def appearance_states(widget: DictionaryObject) -> List[NameObject]:
    """Names of the "on" appearance states of a button widget."""
    appearance = _resolve(widget.get("/AP"))
    if appearance is None:
        return []
    normal = _resolve(appearance.get("/N"))
    if normal is None or isinstance(normal, StreamObject):
        return []
    return [NameObject(state) for state in normal.keys() if state != OFF_STATE]


@dataclass
class FormWidget:
    """A terminal form field together with the widget annotations that display it."""

    name: str
    field: DictionaryObject
    kind: WidgetKind
    widgets: List[DictionaryObject]

    @property
    def is_radio(self) -> bool:
        return self.kind is WidgetKind.CHOICE and _inherited(self.field, "/FT") == "/Btn"

    def on_state(self) -> NameObject:
        for widget in self.widgets:
            states = appearance_states(widget)
            if states:
                return states[0]
        return DEFAULT_ON_STATE

    def choice_options(self) -> List[Tuple[str, str]]:
        """Selectable options as ``(value, display label)`` pairs.

        Radio groups take their values from the ``/Opt`` array when present,
        otherwise from each widget's appearance state name.
        """
        opts = _resolve(_inherited(self.field, "/Opt")) or ArrayObject()
        options: List[Tuple[str, str]] = []
        if self.is_radio:
            for index, widget in enumerate(self.widgets):
                for state in appearance_states(widget):
                    label = str(_resolve(opts[index])) if index < len(opts) else state[1:]
                    options.append((state[1:], label))
            return options

        for entry in opts:
            entry = _resolve(entry)
            if isinstance(entry, ArrayObject) and len(entry) >= 2:
                options.append((str(_resolve(entry[0])), str(_resolve(entry[1]))))
            else:
                options.append((str(entry), str(entry)))
        return options


def _walk_fields(node_ref: PdfObject, parent_name: str, index: Dict[str, FormWidget]) -> None:
    node = _resolve(node_ref)
    if not isinstance(node, DictionaryObject):
        return

    name = parent_name
    partial = node.get("/T")
    if partial is not None:
        name = f"{parent_name}.{partial}" if parent_name else str(partial)

    kids = _resolve(node.get("/Kids")) or ArrayObject()
    child_fields = [kid for kid in kids if "/T" in _resolve(kid)]
    if child_fields:
        for kid in child_fields:
            _walk_fields(kid, name, index)
        return

    if not name:
        return
    widgets = [_resolve(kid) for kid in kids] if kids else [node]
    index[name] = FormWidget(name=name, field=node, kind=classify_field(node), widgets=widgets)


def index_form_widgets(document: Union[PdfReader, PdfWriter]) -> Dict[str, FormWidget]:
    """Map every terminal field of the document's AcroForm by fully qualified name."""
    acroform = _resolve(document.root_object.get("/AcroForm"))
    if acroform is None:
        return {}
    index: Dict[str, FormWidget] = {}
    for field_ref in _resolve(acroform.get("/Fields")) or ArrayObject():
        _walk_fields(field_ref, "", index)
    return index


def prepare_form(writer: PdfWriter) -> None:
    """Drop the XFA layer so viewers render the AcroForm values we set."""
    acroform = _resolve(writer.root_object.get("/AcroForm"))
    if acroform is not None and "/XFA" in acroform:
        del acroform["/XFA"]
        logger.debug("Removed XFA form layer")


def check_box(widget: FormWidget) -> None:
    on_state = widget.on_state()
    widget.field[NameObject("/V")] = on_state
    for annotation in widget.widgets:
        states = appearance_states(annotation)
        annotation[NameObject("/AS")] = on_state if on_state in states or not states else OFF_STATE


def select_radio(widget: FormWidget, value: str) -> bool:
    """Select the radio option whose value or label equals ``value``."""
    for state_name, label in widget.choice_options():
        if value in (state_name, label):
            state = NameObject(f"/{state_name}")
            break
    else:
        return False

    widget.field[NameObject("/V")] = state
    for annotation in widget.widgets:
        annotation[NameObject("/AS")] = state if state in appearance_states(annotation) else OFF_STATE
    return True


def match_choice_option(widget: FormWidget, value: str) -> Optional[str]:
    """Export value of the list/combo option matching ``value``, if any."""
    for export, label in widget.choice_options():
        if value in (export, label):
            return export
    return None


def render_field_values(writer: PdfWriter, values: Dict[str, str]) -> None:
    """Set text/choice values and merge their appearance streams into the page content."""
    if not values:
        return
    for page in writer.pages:
        if page.get("/Annots"):
            writer.update_page_form_field_values(page, values, auto_regenerate=False, flatten=True)


def lock_form(writer: PdfWriter) -> int:
    """Mark every field read-only; returns the number of fields locked."""
    acroform = _resolve(writer.root_object.get("/AcroForm"))
    if acroform is None:
        return 0

    locked = 0
    for widget in index_form_widgets(writer).values():
        widget.field[NameObject("/Ff")] = NumberObject(_field_flags(widget.field) | FF_READ_ONLY)
        locked += 1
    if "/NeedAppearances" in acroform:
        del acroform["/NeedAppearances"]
    return locked


def write_bytes(writer: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()
