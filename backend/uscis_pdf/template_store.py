"""Resolution of form types to blank PDF templates on disk."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .errors import TemplateUnavailable

logger = logging.getLogger(__name__)


class TemplateStore:
    """Blank templates live in one directory as ``<form type, lower-cased>.pdf``."""

    def __init__(self, templates_dir: Path):
        self.templates_dir = Path(templates_dir)

    def template_path(self, form_type: str) -> Path:
        name = form_type.strip().lower()
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise TemplateUnavailable(form_type, "invalid form type")
        return self.templates_dir / f"{name}.pdf"

    def load_template_bytes(self, form_type: str) -> bytes:
        path = self.template_path(form_type)
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.error("Cannot read template %s for %s: %s", path, form_type, exc)
            raise TemplateUnavailable(form_type, f"cannot read {path.name}") from exc

    def open_template(self, form_type: str) -> PdfReader:
        """Load and parse the template; any parse failure is reported as unavailable."""
        template_bytes = self.load_template_bytes(form_type)
        try:
            return PdfReader(io.BytesIO(template_bytes), strict=False)
        except (PyPdfError, ValueError) as exc:
            logger.error("Cannot parse template for %s: %s", form_type, exc)
            raise TemplateUnavailable(form_type, "template is not a readable PDF") from exc

    def list_form_types(self) -> List[str]:
        if not self.templates_dir.exists():
            return []
        return sorted(pdf_file.stem for pdf_file in self.templates_dir.glob("*.pdf"))
