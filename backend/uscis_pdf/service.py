"""
High-level service that exposes form PDF generation to the FastAPI layer.

Responsibilities
----------------
* resolve templates and field mappings for each form type
* generate the PDF for a paid submission exactly once and record its path
* store generated PDFs locally or in S3 and stream them back to their owner
* keep a small in-memory cache for recently downloaded PDFs
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import boto3
from botocore.exceptions import ClientError
from cachetools import TTLCache

from .errors import (
    DocumentMissing,
    DocumentNotGenerated,
    PaymentIncomplete,
    SubmissionNotFound,
)
from .field_mappings import FieldMappingRegistry
from .filler import FillResult, FillSummary, FormFiller
from .submissions import FormSubmission, SubmissionStore
from .template_scanner import TemplateScanner
from .template_store import TemplateStore

logger = logging.getLogger(__name__)

GENERATED_DIR_NAME = "generated-pdfs"


@dataclass
class GenerationResult:
    submission_id: str
    pdf_path: str
    already_generated: bool
    summary: Optional[FillSummary] = None


@dataclass
class StoredDocument:
    filename: str
    content: bytes


class FormPdfService:
    def __init__(
        self,
        base_dir: Optional[Path] = None,
        templates_dir: Optional[Path] = None,
        mappings_dir: Optional[Path] = None,
        submission_store: Optional[SubmissionStore] = None,
        s3_client=None,
    ):
        self.base_dir = Path(
            base_dir
            or os.getenv("FORMS_BASE_DIR")
            or Path(__file__).resolve().parent
        )
        self.base_dir.mkdir(parents=True, exist_ok=True)

        self.templates_dir = Path(templates_dir or os.getenv("FORMS_TEMPLATES_DIR") or self.base_dir / "pdfs")
        self.generated_dir = self.base_dir / GENERATED_DIR_NAME

        mappings_dir = mappings_dir or os.getenv("FORMS_MAPPINGS_DIR")
        self.mappings = FieldMappingRegistry(Path(mappings_dir) if mappings_dir else None)
        self.templates = TemplateStore(self.templates_dir)
        self.filler = FormFiller(self.templates, self.mappings)
        self.template_scanner = TemplateScanner(self.templates)
        self.submissions = submission_store or SubmissionStore(self.base_dir)

        self._pdf_cache: TTLCache = TTLCache(maxsize=64, ttl=int(os.getenv("PDF_CACHE_TTL", "300")))
        self._cache_lock = threading.Lock()

        self.s3_bucket = os.getenv("FORMS_S3_BUCKET")
        self.s3_prefix = os.getenv("FORMS_S3_PREFIX", f"{GENERATED_DIR_NAME}/")
        self.s3 = s3_client
        if self.s3_bucket and self.s3 is None:
            self.s3 = boto3.client("s3")

    # ------------------------------------------------------------------
    # Templates + mappings
    # ------------------------------------------------------------------
    def list_templates(self) -> List[Dict]:
        results = []
        for form_type in self.templates.list_form_types():
            mapping = self.mappings.lookup_mapping(form_type)
            results.append(
                {
                    "form_type": form_type,
                    "template_file": f"{form_type}.pdf",
                    "has_mapping": mapping is not None,
                    "mapped_field_count": len(mapping) if mapping is not None else 0,
                    "description": self.mappings.describe(form_type),
                }
            )
        return results

    def scan_template(self, form_type: str) -> Dict:
        return self.template_scanner.scan_template(form_type)

    def get_mapping(self, form_type: str) -> Optional[Dict[str, str]]:
        mapping = self.mappings.lookup_mapping(form_type)
        return dict(mapping) if mapping is not None else None

    def fill_preview(self, form_type: str, form_data: Mapping[str, Any]) -> FillResult:
        """Fill a form without touching any submission or storage."""
        return self.filler.fill_with_summary(form_type, form_data)

    # ------------------------------------------------------------------
    # Submission PDFs
    # ------------------------------------------------------------------
    def generate_pdf(self, submission_id: str, user_id: str) -> GenerationResult:
        submission = self._get_submission(submission_id, user_id)
        if not submission.is_paid:
            raise PaymentIncomplete(f"Payment for submission '{submission_id}' is not completed")

        if submission.pdf_path and self._exists(submission.pdf_path):
            logger.info("PDF for submission %s already generated at %s", submission_id, submission.pdf_path)
            return GenerationResult(submission_id, submission.pdf_path, already_generated=True)

        result = self.filler.fill_with_summary(submission.form_type, submission.form_data)
        filename = f"{submission.form_type}_{submission.id}_{int(time.time() * 1000)}.pdf"
        pdf_path = self._store_pdf(filename, result.content)
        self.submissions.set_pdf_path(submission.id, pdf_path)

        logger.info("Generated PDF for submission %s at %s", submission_id, pdf_path)
        return GenerationResult(submission_id, pdf_path, already_generated=False, summary=result.summary)

    def get_pdf(self, submission_id: str, user_id: str) -> StoredDocument:
        submission = self._get_submission(submission_id, user_id)
        if not submission.pdf_path:
            raise DocumentNotGenerated(f"PDF for submission '{submission_id}' has not been generated yet")

        with self._cache_lock:
            content = self._pdf_cache.get(submission.pdf_path)
        if content is None:
            content = self._read_pdf(submission.pdf_path)
            with self._cache_lock:
                self._pdf_cache[submission.pdf_path] = content
        return StoredDocument(filename=f"{submission.form_type}_filled.pdf", content=content)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _get_submission(self, submission_id: str, user_id: str) -> FormSubmission:
        submission = self.submissions.get_submission(submission_id, user_id)
        if submission is None:
            raise SubmissionNotFound(f"Form submission '{submission_id}' not found")
        return submission

    def _local_path(self, pdf_path: str) -> Path:
        base = self.base_dir.resolve()
        target = (base / pdf_path).resolve()
        if base not in target.parents:
            raise DocumentMissing(f"PDF path '{pdf_path}' is outside the storage directory")
        return target

    def _exists(self, pdf_path: str) -> bool:
        if self.s3_bucket:
            try:
                self.s3.head_object(Bucket=self.s3_bucket, Key=pdf_path)
            except ClientError:
                return False
            return True
        try:
            return self._local_path(pdf_path).is_file()
        except DocumentMissing:
            return False

    def _read_pdf(self, pdf_path: str) -> bytes:
        if self.s3_bucket:
            try:
                obj = self.s3.get_object(Bucket=self.s3_bucket, Key=pdf_path)
            except ClientError as exc:
                raise DocumentMissing(f"PDF file '{pdf_path}' not found") from exc
            return obj["Body"].read()

        target = self._local_path(pdf_path)
        try:
            with target.open("rb") as f:
                return f.read()
        except OSError as exc:
            raise DocumentMissing(f"PDF file '{pdf_path}' not found") from exc

    def _store_pdf(self, filename: str, pdf_bytes: bytes) -> str:
        if self.s3_bucket:
            key = f"{self.s3_prefix}{filename}"
            self.s3.put_object(Bucket=self.s3_bucket, Key=key, Body=pdf_bytes, ContentType="application/pdf")
            return key

        self.generated_dir.mkdir(parents=True, exist_ok=True)
        target = self.generated_dir / filename
        with target.open("wb") as f:
            f.write(pdf_bytes)
        return f"{GENERATED_DIR_NAME}/{filename}"
