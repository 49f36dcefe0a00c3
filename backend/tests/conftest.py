import io
import os
import tempfile
from pathlib import Path

# main.py builds its service at import time; keep it out of the package directory
os.environ.setdefault("FORMS_BASE_DIR", tempfile.mkdtemp(prefix="uscis-pdf-tests-"))

import pytest
from pypdf import PdfReader
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from uscis_pdf.field_mappings import FieldMappingRegistry
from uscis_pdf.filler import FormFiller
from uscis_pdf.template_store import TemplateStore

I130_MAPPING = {
    "petitionerInfoLastName": "Pt1Line6a",
    "petitionerInfoFirstName": "Pt1Line6b",
    "petitionerInfoMarried": "Pt1Married",
    "petitionerInfoSex": "Pt1Sex",
    "petitionerAddressState": "Pt1State",
    "petitionerInfoNickname": "Pt1NoSuchField",
}


def build_form_pdf(path, text_fields=(), checkboxes=(), radio_groups=None, choices=None):
    """Write a one-page AcroForm PDF with the given widgets."""
    c = canvas.Canvas(str(path), pagesize=letter)
    form = c.acroForm
    y = 720

    for name in text_fields:
        c.drawString(72, y + 4, name)
        form.textfield(name=name, x=250, y=y, width=250, height=18, borderStyle="inset", forceBorder=True)
        y -= 30
    for name in checkboxes:
        c.drawString(72, y + 4, name)
        form.checkbox(name=name, x=250, y=y, size=14, buttonStyle="check", checked=False)
        y -= 30
    for name, values in (radio_groups or {}).items():
        c.drawString(72, y + 4, name)
        for offset, value in enumerate(values):
            form.radio(name=name, value=value, selected=False, x=250 + offset * 40, y=y, size=14)
        y -= 30
    for name, options in (choices or {}).items():
        c.drawString(72, y + 4, name)
        form.choice(name=name, value=options[0], options=list(options), x=250, y=y, width=150, height=18)
        y -= 30

    c.showPage()
    c.save()
    return Path(path)


def read_fields(pdf_bytes):
    return PdfReader(io.BytesIO(pdf_bytes)).get_fields() or {}


@pytest.fixture
def templates_dir(tmp_path):
    directory = tmp_path / "pdfs"
    directory.mkdir()
    build_form_pdf(
        directory / "i-130.pdf",
        text_fields=["Pt1Line6a", "Pt1Line6b"],
        checkboxes=["Pt1Married"],
        radio_groups={"Pt1Sex": ["M", "F"]},
        choices={"Pt1State": ["CA", "NY", "TX"]},
    )
    build_form_pdf(directory / "i-765.pdf", text_fields=["Line1a"], checkboxes=["Line2"])
    (directory / "broken.pdf").write_bytes(b"")
    return directory


@pytest.fixture
def template_store(templates_dir):
    return TemplateStore(templates_dir)


@pytest.fixture
def registry():
    return FieldMappingRegistry(tables={"I-130": I130_MAPPING})


@pytest.fixture
def filler(template_store, registry):
    return FormFiller(template_store, registry)
