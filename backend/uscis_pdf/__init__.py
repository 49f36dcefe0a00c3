"""
PDF generation package for the USCIS form filing backend.

This module bundles reusable utilities for:
  - mapping submitted form data onto official PDF form fields
  - filling and flattening the form templates
  - generating, storing and retrieving the PDF of a paid submission
"""

from .errors import FormPdfError, TemplateUnavailable
from .filler import FormFiller, flatten_form_data
from .service import FormPdfService

__all__ = ["FormPdfService", "FormFiller", "FormPdfError", "TemplateUnavailable", "flatten_form_data"]
