import logging

from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

import os  # noqa: E402
from typing import Any, Dict  # noqa: E402

from fastapi import FastAPI, HTTPException, Response  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from pydantic import BaseModel  # noqa: E402

from uscis_pdf import FormPdfService, TemplateUnavailable  # noqa: E402
from uscis_pdf.errors import (  # noqa: E402
    DocumentMissing,
    DocumentNotGenerated,
    PaymentIncomplete,
    SubmissionNotFound,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

app = FastAPI(title="USCIS form filing PDF API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in os.getenv("CORS_ORIGINS", DEFAULT_ORIGINS).split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pdf_service = FormPdfService()


def get_pdf_service() -> FormPdfService:
    return pdf_service


class PDFFillRequest(BaseModel):
    form_type: str
    form_data: Dict[str, Any] = {}


@app.get("/health")
def health():
    return {"ok": True}


# --- PDF template endpoints ---------------------------------------------------


@app.get("/pdf/templates")
def pdf_list_templates():
    return {"templates": get_pdf_service().list_templates()}


@app.get("/pdf/templates/{form_type}/fields")
def pdf_scan_template(form_type: str):
    try:
        scan = get_pdf_service().scan_template(form_type)
    except TemplateUnavailable as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"form_type": form_type, "scan": scan}


@app.get("/pdf/mappings/{form_type}")
def pdf_get_mapping(form_type: str):
    mapping = get_pdf_service().get_mapping(form_type)
    if mapping is None:
        raise HTTPException(status_code=404, detail=f"No field mapping for form type '{form_type}'")
    return {"form_type": form_type, "field_mapping": mapping}


@app.post("/pdf/fill")
def pdf_fill(req: PDFFillRequest):
    """Fill a form from the request body without storing anything."""
    try:
        result = get_pdf_service().fill_preview(req.form_type, req.form_data)
    except TemplateUnavailable as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    headers = {
        "Content-Disposition": f'inline; filename="{req.form_type}_preview.pdf"',
        "X-Fields-Filled": str(result.summary.fields_filled),
        "X-Fields-Not-Found": str(result.summary.fields_not_found),
    }
    return Response(content=result.content, media_type="application/pdf", headers=headers)


# --- Submission PDF endpoints -------------------------------------------------


@app.post("/forms/{submission_id}/generate-pdf")
def generate_pdf(submission_id: str, user_id: str):
    try:
        result = get_pdf_service().generate_pdf(submission_id, user_id)
    except SubmissionNotFound as exc:
        raise HTTPException(status_code=404, detail="Form submission not found") from exc
    except PaymentIncomplete as exc:
        raise HTTPException(status_code=402, detail="Payment not completed") from exc
    except TemplateUnavailable as exc:
        logger.error("Error generating PDF for submission %s: %s", submission_id, exc)
        raise HTTPException(status_code=500, detail="Could not generate document") from exc

    response = {
        "success": True,
        "message": "PDF already generated" if result.already_generated else "PDF generated successfully",
        "pdf_path": result.pdf_path,
    }
    if result.summary is not None:
        response["summary"] = result.summary.as_dict()
    return response


@app.get("/forms/{submission_id}/download")
def download_pdf(submission_id: str, user_id: str):
    try:
        document = get_pdf_service().get_pdf(submission_id, user_id)
    except SubmissionNotFound as exc:
        raise HTTPException(status_code=404, detail="Form submission not found") from exc
    except DocumentNotGenerated as exc:
        raise HTTPException(status_code=400, detail="PDF not generated yet") from exc
    except DocumentMissing as exc:
        raise HTTPException(status_code=404, detail="PDF file not found") from exc

    headers = {"Content-Disposition": f'attachment; filename="{document.filename}"'}
    return Response(content=document.content, media_type="application/pdf", headers=headers)
