import io
import json

import pytest
from botocore.exceptions import ClientError

from uscis_pdf.errors import (
    DocumentMissing,
    DocumentNotGenerated,
    PaymentIncomplete,
    SubmissionNotFound,
    TemplateUnavailable,
)
from uscis_pdf.service import FormPdfService
from uscis_pdf.submissions import FormSubmission

from conftest import I130_MAPPING, read_fields


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = Body

    def head_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "Not Found"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}


@pytest.fixture
def mappings_dir(tmp_path):
    directory = tmp_path / "mappings"
    directory.mkdir()
    (directory / "i-130.json").write_text(
        json.dumps({"form_type": "I-130", "description": "Petition for Alien Relative", "field_mapping": I130_MAPPING}),
        encoding="utf-8",
    )
    return directory


@pytest.fixture
def make_service(tmp_path, templates_dir, mappings_dir, monkeypatch):
    monkeypatch.delenv("FORMS_S3_BUCKET", raising=False)

    def factory(**kwargs):
        return FormPdfService(
            base_dir=tmp_path / "data", templates_dir=templates_dir, mappings_dir=mappings_dir, **kwargs
        )

    return factory


@pytest.fixture
def service(make_service):
    return make_service()


def _submit(service, payment_status="completed", form_type="I-130", user_id="u1"):
    return service.submissions.save(
        FormSubmission(
            user_id=user_id,
            form_type=form_type,
            form_data={"petitionerInfo": {"lastName": "Garcia", "married": True}},
            payment_status=payment_status,
        )
    )


def test_generate_pdf_stores_file_and_records_path(service):
    submission = _submit(service)

    result = service.generate_pdf(submission.id, "u1")

    assert result.already_generated is False
    assert result.pdf_path.startswith("generated-pdfs/I-130_")
    assert result.summary.fields_filled == 2
    stored = service.base_dir / result.pdf_path
    assert read_fields(stored.read_bytes())["Pt1Line6a"]["/V"] == "Garcia"
    assert service.submissions.get_submission(submission.id, "u1").pdf_path == result.pdf_path


def test_generate_pdf_is_idempotent(service):
    submission = _submit(service)
    first = service.generate_pdf(submission.id, "u1")

    second = service.generate_pdf(submission.id, "u1")

    assert second.already_generated is True
    assert second.pdf_path == first.pdf_path
    assert len(list(service.generated_dir.glob("*.pdf"))) == 1


def test_generate_pdf_regenerates_when_file_was_removed(service):
    submission = _submit(service)
    first = service.generate_pdf(submission.id, "u1")
    (service.base_dir / first.pdf_path).unlink()

    second = service.generate_pdf(submission.id, "u1")

    assert second.already_generated is False
    assert (service.base_dir / second.pdf_path).is_file()


def test_generate_pdf_requires_completed_payment(service):
    submission = _submit(service, payment_status="pending")

    with pytest.raises(PaymentIncomplete):
        service.generate_pdf(submission.id, "u1")
    assert not service.generated_dir.exists() or not list(service.generated_dir.iterdir())


def test_generate_pdf_for_other_user_is_not_found(service):
    submission = _submit(service)

    with pytest.raises(SubmissionNotFound):
        service.generate_pdf(submission.id, "someone-else")


def test_generate_pdf_without_template_records_nothing(service):
    submission = _submit(service, form_type="I-999")

    with pytest.raises(TemplateUnavailable):
        service.generate_pdf(submission.id, "u1")
    assert service.submissions.get_submission(submission.id, "u1").pdf_path is None


def test_get_pdf_returns_stored_bytes(service):
    submission = _submit(service)
    result = service.generate_pdf(submission.id, "u1")

    document = service.get_pdf(submission.id, "u1")

    assert document.filename == "I-130_filled.pdf"
    assert document.content == (service.base_dir / result.pdf_path).read_bytes()


def test_get_pdf_before_generation(service):
    submission = _submit(service)

    with pytest.raises(DocumentNotGenerated):
        service.get_pdf(submission.id, "u1")


def test_get_pdf_when_file_is_gone(service):
    submission = _submit(service)
    service.submissions.set_pdf_path(submission.id, "generated-pdfs/missing.pdf")

    with pytest.raises(DocumentMissing):
        service.get_pdf(submission.id, "u1")


def test_get_pdf_rejects_paths_outside_storage(service):
    submission = _submit(service)
    service.submissions.set_pdf_path(submission.id, "../../etc/passwd")

    with pytest.raises(DocumentMissing):
        service.get_pdf(submission.id, "u1")


def test_s3_storage(make_service, monkeypatch):
    monkeypatch.setenv("FORMS_S3_BUCKET", "filings")
    s3 = FakeS3()
    service = make_service(s3_client=s3)
    submission = _submit(service)

    result = service.generate_pdf(submission.id, "u1")

    assert result.pdf_path.startswith("generated-pdfs/I-130_")
    assert ("filings", result.pdf_path) in s3.objects
    assert service.generate_pdf(submission.id, "u1").already_generated is True
    assert service.get_pdf(submission.id, "u1").content == s3.objects[("filings", result.pdf_path)]


def test_list_templates_reports_mapping_status(service):
    templates = {entry["form_type"]: entry for entry in service.list_templates()}

    assert templates["i-130"]["has_mapping"] is True
    assert templates["i-130"]["mapped_field_count"] == len(I130_MAPPING)
    assert templates["i-130"]["description"] == "Petition for Alien Relative"
    assert templates["i-765"]["has_mapping"] is False


def test_fill_preview_does_not_persist(service):
    result = service.fill_preview("I-130", {"petitionerInfo": {"lastName": "Garcia"}})

    assert result.summary.fields_filled == 1
    assert not service.generated_dir.exists()
