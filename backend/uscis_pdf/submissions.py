"""
Form submission storage for the PDF service.

Persists one JSON document per submission under ``submissions/`` inside a
configurable base path. The store is constructed explicitly and handed to the
service; the filling engine itself never touches it.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)

PAYMENT_COMPLETED = "completed"


@dataclass
class FormSubmission:
    """One user's submitted form and its payment/PDF state."""

    user_id: str
    form_type: str
    form_data: Dict[str, Any] = field(default_factory=dict)
    payment_status: str = "pending"
    pdf_path: Optional[str] = None
    id: str = ""
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            self.id = uuid.uuid4().hex
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_COMPLETED


class SubmissionStore:
    """Handles the submission directory and per-submission JSON files."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.submissions_dir = self.base_dir / "submissions"
        self.submissions_dir.mkdir(parents=True, exist_ok=True)

    def _submission_file(self, submission_id: str) -> Path:
        return self.submissions_dir / f"{Path(submission_id).name}.json"

    def _load(self, submission_file: Path) -> Optional[FormSubmission]:
        try:
            with submission_file.open("r", encoding="utf-8") as f:
                return FormSubmission(**json.load(f))
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Error loading submission %s: %s", submission_file.name, exc)
            return None

    def save(self, submission: FormSubmission) -> FormSubmission:
        submission_file = self._submission_file(submission.id)
        with submission_file.open("w", encoding="utf-8") as f:
            json.dump(asdict(submission), f, indent=2)
        return submission

    def get_submission(self, submission_id: str, user_id: str) -> Optional[FormSubmission]:
        """Return the submission only if it belongs to ``user_id``."""
        submission_file = self._submission_file(submission_id)
        if not submission_file.exists():
            return None
        submission = self._load(submission_file)
        if submission is None or submission.user_id != user_id:
            return None
        return submission

    def set_pdf_path(self, submission_id: str, pdf_path: str) -> None:
        submission_file = self._submission_file(submission_id)
        submission = self._load(submission_file) if submission_file.exists() else None
        if submission is None:
            logger.error("Cannot record PDF path for unknown submission %s", submission_id)
            return
        submission.pdf_path = pdf_path
        self.save(submission)

    def list_submissions(self, user_id: str) -> List[FormSubmission]:
        submissions = []
        for submission_file in sorted(self.submissions_dir.glob("*.json")):
            submission = self._load(submission_file)
            if submission is not None and submission.user_id == user_id:
                submissions.append(submission)
        return submissions
