"""
Report generation endpoints.

POST /generate - stateless: base64 template + parameters + report date in,
                 base64 document out.
POST /session  - generate from the session's template and parameters and
                 return the .docx as an attachment.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.database import DatabaseUnavailableError
from app.dependencies.session import get_report_generator, get_report_session
from app.models.schemas import (
    GenerateReportRequest,
    GenerateReportResponse,
    SessionReportRequest,
)
from app.services.parameter_store import GeneratedFile, ReportSession
from app.services.report_generator import GeneratedReport, ReportGenerator
from app.services.report_patcher import TemplateError
from app.utils.helpers import (
    DOCX_MEDIA_TYPE,
    attachment_header,
    decode_document,
    encode_document,
    report_file_name,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def run_generation(
    generator: ReportGenerator,
    template_bytes: bytes,
    parameters,
    report_date: str,
) -> GeneratedReport:
    """Run the generator, mapping run-level failures to HTTP errors."""
    try:
        return await generator.generate(template_bytes, parameters, report_date)
    except TemplateError as exc:
        logger.error("Report generation failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    except DatabaseUnavailableError as exc:
        logger.error("Report generation failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )


@router.post("/generate", response_model=GenerateReportResponse)
async def generate_report(
    payload: GenerateReportRequest,
    generator: ReportGenerator = Depends(get_report_generator),
) -> GenerateReportResponse:
    """
    Fill a template for one report month.

    Per-parameter query failures do not fail the request; they appear as an
    inline error marker in the returned document.
    """
    try:
        template_bytes = decode_document(payload.file_content)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="file_content is not valid base64.",
        )

    report = await run_generation(
        generator, template_bytes, payload.parameters, payload.report_date
    )
    return GenerateReportResponse(file_content=encode_document(report.content))


@router.post(
    "/session",
    response_class=Response,
    responses={200: {"content": {DOCX_MEDIA_TYPE: {}}}},
)
async def generate_session_report(
    payload: SessionReportRequest,
    session: ReportSession = Depends(get_report_session),
    generator: ReportGenerator = Depends(get_report_generator),
) -> Response:
    """Generate from the session template and parameters; returns the .docx."""
    if session.template is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No template uploaded. Please upload a Word template first.",
        )

    session.report_date = payload.report_date
    report = await run_generation(
        generator,
        session.template.content,
        session.parameters.list(),
        payload.report_date,
    )

    filename = report_file_name(session.template.filename, payload.report_date)
    session.generated = GeneratedFile(
        filename=filename,
        content=report.content,
        report_date=payload.report_date,
        failed_parameters=report.failed_parameters,
    )
    session.generation_failed = False

    return Response(
        content=report.content,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": attachment_header(filename)},
    )
