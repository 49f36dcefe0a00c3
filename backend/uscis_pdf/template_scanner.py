"""
PDF Template Scanner

Lists the fillable fields of official form templates with their widget kind
and selectable options. Mapping authors use the output to find the exact
field names to put in a field mapping.

Usage::

    python -m uscis_pdf.template_scanner pdfs/i-130.pdf
"""

import argparse
import io
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .errors import TemplateUnavailable
from .pdf_utils import WidgetKind, index_form_widgets
from .template_store import TemplateStore

logger = logging.getLogger(__name__)


def describe_fields(reader: PdfReader) -> List[Dict]:
    fields = []
    for name, widget in index_form_widgets(reader).items():
        entry = {"name": name, "kind": widget.kind.value, "options": []}
        if widget.kind is WidgetKind.CHOICE:
            entry["options"] = [value for value, _ in widget.choice_options()]
        fields.append(entry)
    return fields


def format_field_list(fields: List[Dict]) -> str:
    lines = []
    for number, entry in enumerate(fields, start=1):
        line = f"{number}. {entry['name']} ({entry['kind']})"
        if entry["options"]:
            line += f" options: {', '.join(entry['options'])}"
        lines.append(line)
    return "\n".join(lines)


class TemplateScanner:
    """Scans PDF templates for form fields"""

    def __init__(self, templates: TemplateStore):
        self.templates = templates

    def scan_template(self, form_type: str) -> Dict:
        """
        Scan the template of one form type.

        Returns: {
            "template_file": "i-130.pdf",
            "form_fields": [{"name": ..., "kind": "text", "options": []}, ...],
            "has_fields": bool,
            "field_count": int
        }
        """
        reader = self.templates.open_template(form_type)
        fields = describe_fields(reader)
        return {
            "template_file": self.templates.template_path(form_type).name,
            "form_fields": fields,
            "has_fields": bool(fields),
            "field_count": len(fields),
        }

    def scan_all_templates(self) -> Dict[str, Dict]:
        results = {}
        for form_type in self.templates.list_form_types():
            try:
                results[form_type] = self.scan_template(form_type)
            except TemplateUnavailable as exc:
                logger.error("Error scanning template %s: %s", form_type, exc)
                results[form_type] = {
                    "template_file": f"{form_type}.pdf",
                    "form_fields": [],
                    "has_fields": False,
                    "field_count": 0,
                    "error": str(exc),
                }
        return results

    def get_template_fields(self, form_type: str) -> Optional[List[str]]:
        try:
            scan = self.scan_template(form_type)
        except TemplateUnavailable:
            return None
        return [entry["name"] for entry in scan["form_fields"]]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="List the fillable fields of a PDF form.")
    parser.add_argument("pdf", type=Path, help="PDF file to analyze, e.g. pdfs/i-130.pdf")
    parser.add_argument("--output", type=Path, help="where to write the field list (default: <pdf>_fields.txt)")
    args = parser.parse_args(argv)

    try:
        reader = PdfReader(io.BytesIO(args.pdf.read_bytes()), strict=False)
    except (OSError, PyPdfError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    fields = describe_fields(reader)
    listing = format_field_list(fields)
    print(f"Found {len(fields)} fields in {args.pdf}:\n")
    print(listing)

    output = args.output or args.pdf.with_name(f"{args.pdf.stem}_fields.txt")
    output.write_text(listing + "\n", encoding="utf-8")
    print(f"\nField list saved to: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
