"""Exceptions raised by the USCIS PDF service."""

from __future__ import annotations


class FormPdfError(RuntimeError):
    """Domain-specific exception for service errors."""


class TemplateUnavailable(FormPdfError):
    """The blank template for a form type is missing or cannot be parsed."""

    def __init__(self, form_type: str, reason: str = ""):
        self.form_type = form_type
        self.reason = reason
        message = f"PDF template for '{form_type}' is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SubmissionNotFound(FormPdfError):
    pass


class PaymentIncomplete(FormPdfError):
    pass


class DocumentNotGenerated(FormPdfError):
    pass


class DocumentMissing(FormPdfError):
    """A PDF path is recorded on the submission but the file is gone."""
