"""
Template upload endpoints (scoped to the caller's session).

POST   /upload   - store a .docx template in the session and list its placeholders.
GET    /current  - metadata of the session template.
DELETE /current  - drop the session template.
"""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from app.config import settings
from app.dependencies.session import get_report_session
from app.models.schemas import TemplateUploadResponse
from app.services.parameter_store import ReportSession, TemplateFile
from app.services.report_patcher import TemplateError, extract_placeholders

logger = logging.getLogger(__name__)

router = APIRouter()


async def read_template_upload(file: UploadFile) -> TemplateFile:
    """
    Read and validate an uploaded template.

    - Only SUPPORTED_FILE_TYPES extensions are accepted (400)
    - Size is capped at MAX_FILE_SIZE (413)
    - The file must open as a DOCX document (422)
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in settings.SUPPORTED_FILE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported file type '{file_ext}'. "
                f"Accepted: {', '.join(settings.SUPPORTED_FILE_TYPES)}"
            ),
        )

    # Read in slices while enforcing the size limit
    parts = []
    file_size = 0
    while True:
        chunk = await file.read(1024 * 1024)   # 1 MB slices
        if not chunk:
            break
        file_size += len(chunk)
        if file_size > settings.MAX_FILE_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=(
                    f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB "
                    "size limit."
                ),
            )
        parts.append(chunk)
    content = b"".join(parts)

    try:
        placeholders = extract_placeholders(content)
    except TemplateError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )

    logger.info(
        f"Template {file.filename!r} read ({file_size:,} bytes, "
        f"{len(placeholders)} placeholder(s))"
    )
    return TemplateFile(filename=file.filename, content=content, placeholders=placeholders)


@router.post(
    "/upload",
    response_model=TemplateUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_template(
    file: UploadFile = File(...),
    session: ReportSession = Depends(get_report_session),
) -> TemplateUploadResponse:
    """Upload a .docx template into the session, replacing any previous one."""
    template = await read_template_upload(file)
    session.set_template(template)
    return TemplateUploadResponse(
        filename=template.filename,
        size=template.size,
        placeholders=template.placeholders,
        message=f"{template.filename} is ready.",
    )


@router.get("/current", response_model=TemplateUploadResponse)
async def get_current_template(
    session: ReportSession = Depends(get_report_session),
) -> TemplateUploadResponse:
    if session.template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No template uploaded.",
        )
    return TemplateUploadResponse(
        filename=session.template.filename,
        size=session.template.size,
        placeholders=session.template.placeholders,
        message="Current template",
    )


@router.delete("/current", status_code=status.HTTP_204_NO_CONTENT)
async def remove_current_template(
    session: ReportSession = Depends(get_report_session),
) -> Response:
    session.set_template(None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
