"""
Server-rendered browser UI.

Three cards on one page (upload template, configure report, generate and
download) plus an add/edit parameter form with AI suggest / verify buttons.
All state lives in the caller's ReportSession; flash messages stand in for
toast notifications. Every POST redirects back (303) except form re-renders.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from app.database import DatabaseUnavailableError
from app.dependencies.session import (
    get_report_generator,
    get_report_session,
    get_sql_assistant,
)
from app.models.schemas import ParameterCreate
from app.routers.templates import read_template_upload
from app.services.parameter_store import (
    DuplicateParameterError,
    GeneratedFile,
    ParameterNotFoundError,
    ReportSession,
)
from app.services.report_generator import ReportGenerator
from app.services.report_patcher import TemplateError
from app.services.sql_assistant import AIServiceError, SqlAssistantService
from app.utils.helpers import (
    DOCX_MEDIA_TYPE,
    attachment_header,
    is_valid_report_date,
    report_file_name,
)

logger = logging.getLogger(__name__)

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def _back_home() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


def _form_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error.get("loc") else "form"
        if field == "name" and error.get("type") == "string_pattern_mismatch":
            errors[field] = "Name can only contain letters, numbers, and underscores."
        else:
            errors.setdefault(field, error["msg"])
    return errors


def _render_form(
    request: Request,
    session: ReportSession,
    *,
    mode: str,
    values: Dict[str, str],
    parameter_id: Optional[str] = None,
    errors: Optional[Dict[str, str]] = None,
    verify_result=None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "parameter_form.html",
        {
            "mode": mode,
            "parameter_id": parameter_id,
            "values": values,
            "errors": errors or {},
            "verify_result": verify_result,
            "messages": session.pop_messages(),
        },
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# Main page
# ---------------------------------------------------------------------------

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(
    request: Request,
    session: ReportSession = Depends(get_report_session),
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "template": session.template,
            "parameters": session.parameters.list(),
            "report_date": session.report_date,
            "generated": session.generated,
            "generation_failed": session.generation_failed,
            "messages": session.pop_messages(),
        },
    )


# ---------------------------------------------------------------------------
# 1. Template
# ---------------------------------------------------------------------------

@router.post("/ui/template", include_in_schema=False)
async def ui_upload_template(
    file: UploadFile = File(...),
    session: ReportSession = Depends(get_report_session),
) -> RedirectResponse:
    try:
        template = await read_template_upload(file)
    except HTTPException as exc:
        title = "Invalid file type" if exc.status_code == 400 else "Upload failed"
        session.flash(title, str(exc.detail), "error")
        return _back_home()

    session.set_template(template)
    session.flash("File uploaded", f"{template.filename} is ready.", "success")
    return _back_home()


@router.post("/ui/template/remove", include_in_schema=False)
async def ui_remove_template(
    session: ReportSession = Depends(get_report_session),
) -> RedirectResponse:
    session.set_template(None)
    return _back_home()


# ---------------------------------------------------------------------------
# 2. Parameters
# ---------------------------------------------------------------------------

@router.get("/ui/parameters/new", response_class=HTMLResponse, include_in_schema=False)
async def ui_new_parameter(
    request: Request,
    session: ReportSession = Depends(get_report_session),
) -> HTMLResponse:
    return _render_form(
        request, session, mode="add", values={"name": "", "description": "", "sql": ""}
    )


@router.get(
    "/ui/parameters/{parameter_id}/edit",
    response_class=HTMLResponse,
    include_in_schema=False,
)
async def ui_edit_parameter(
    parameter_id: str,
    request: Request,
    session: ReportSession = Depends(get_report_session),
) -> Response:
    try:
        parameter = session.parameters.get(parameter_id)
    except ParameterNotFoundError as exc:
        session.flash("Parameter not found", str(exc), "error")
        return _back_home()
    return _render_form(
        request,
        session,
        mode="edit",
        parameter_id=parameter.id,
        values={"name": parameter.name, "description": parameter.description, "sql": parameter.sql},
    )


@router.post("/ui/parameters", include_in_schema=False)
async def ui_create_parameter(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    sql: str = Form(""),
    session: ReportSession = Depends(get_report_session),
) -> Response:
    values = {"name": name, "description": description, "sql": sql}
    try:
        payload = ParameterCreate(**values)
        session.parameters.add(payload.name, payload.description, payload.sql)
    except ValidationError as exc:
        return _render_form(
            request, session, mode="add", values=values,
            errors=_form_errors(exc), status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    except DuplicateParameterError as exc:
        return _render_form(
            request, session, mode="add", values=values,
            errors={"name": str(exc)}, status_code=status.HTTP_409_CONFLICT,
        )

    session.flash("Parameter added", f'"{payload.name}" has been created.', "success")
    return _back_home()


@router.post("/ui/parameters/assist", response_class=HTMLResponse, include_in_schema=False)
async def ui_assist_parameter(
    request: Request,
    action: str = Form(...),
    parameter_id: str = Form(""),
    name: str = Form(""),
    description: str = Form(""),
    sql: str = Form(""),
    session: ReportSession = Depends(get_report_session),
    assistant: SqlAssistantService = Depends(get_sql_assistant),
) -> HTMLResponse:
    """Handle the form's "Suggest with AI" and "Verify with AI" buttons."""
    mode = "edit" if parameter_id else "add"
    values = {"name": name.strip(), "description": description.strip(), "sql": sql.strip()}
    verify_result = None

    if action == "suggest":
        if not values["name"] or not values["description"]:
            session.flash(
                "Missing information",
                "Please provide a parameter name and description first.",
                "error",
            )
        else:
            try:
                values["sql"] = await assistant.suggest(values["name"], values["description"])
                session.flash("SQL Query Suggested", "AI has generated a query for you.", "success")
            except AIServiceError as exc:
                logger.error("UI suggest failed: %s", exc)
                session.flash(
                    "AI Suggestion Failed",
                    "Could not generate a query. Please try again.",
                    "error",
                )
    elif action == "verify":
        if not values["sql"] or not values["description"]:
            session.flash(
                "Missing information",
                "Please provide a SQL query and description to verify.",
                "error",
            )
        else:
            try:
                verify_result = await assistant.verify(values["sql"], values["description"])
            except AIServiceError as exc:
                logger.error("UI verify failed: %s", exc)
                session.flash(
                    "AI Verification Failed",
                    "Could not verify query. Please try again.",
                    "error",
                )
    else:
        session.flash("Unknown action", f"Unsupported action {action!r}.", "error")

    return _render_form(
        request,
        session,
        mode=mode,
        parameter_id=parameter_id or None,
        values=values,
        verify_result=verify_result,
    )


@router.post("/ui/parameters/{parameter_id}", include_in_schema=False)
async def ui_update_parameter(
    parameter_id: str,
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    sql: str = Form(""),
    session: ReportSession = Depends(get_report_session),
) -> Response:
    values = {"name": name, "description": description, "sql": sql}
    try:
        payload = ParameterCreate(**values)
        session.parameters.update(parameter_id, payload.name, payload.description, payload.sql)
    except ValidationError as exc:
        return _render_form(
            request, session, mode="edit", parameter_id=parameter_id, values=values,
            errors=_form_errors(exc), status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    except DuplicateParameterError as exc:
        return _render_form(
            request, session, mode="edit", parameter_id=parameter_id, values=values,
            errors={"name": str(exc)}, status_code=status.HTTP_409_CONFLICT,
        )
    except ParameterNotFoundError as exc:
        session.flash("Parameter not found", str(exc), "error")
        return _back_home()

    session.flash("Parameter updated", f'"{payload.name}" has been saved.', "success")
    return _back_home()


@router.post("/ui/parameters/{parameter_id}/delete", include_in_schema=False)
async def ui_delete_parameter(
    parameter_id: str,
    session: ReportSession = Depends(get_report_session),
) -> RedirectResponse:
    try:
        parameter = session.parameters.delete(parameter_id)
    except ParameterNotFoundError as exc:
        session.flash("Parameter not found", str(exc), "error")
        return _back_home()
    session.flash("Parameter deleted", f'"{parameter.name}" has been removed.', "success")
    return _back_home()


# ---------------------------------------------------------------------------
# 3. Generate & download
# ---------------------------------------------------------------------------

@router.post("/ui/generate", include_in_schema=False)
async def ui_generate(
    report_date: str = Form(""),
    session: ReportSession = Depends(get_report_session),
    generator: ReportGenerator = Depends(get_report_generator),
) -> RedirectResponse:
    if session.template is None:
        session.flash("No template uploaded", "Please upload a Word template first.", "error")
        return _back_home()

    report_date = report_date.strip() or session.report_date
    if not is_valid_report_date(report_date):
        session.flash("Invalid report date", "Use the yyyy-mm format.", "error")
        return _back_home()
    session.report_date = report_date

    session.generated = None
    try:
        report = await generator.generate(
            session.template.content, session.parameters.list(), report_date
        )
    except (TemplateError, DatabaseUnavailableError, ValueError) as exc:
        logger.error("UI generation failed: %s", exc)
        session.generation_failed = True
        session.flash("Generation Failed", str(exc), "error")
        return _back_home()

    session.generation_failed = False
    session.generated = GeneratedFile(
        filename=report_file_name(session.template.filename, report_date),
        content=report.content,
        report_date=report_date,
        failed_parameters=report.failed_parameters,
    )
    session.flash(
        "Report Generated Successfully",
        "Your report is ready for download.",
        "success",
    )
    return _back_home()


@router.get("/ui/download", include_in_schema=False)
async def ui_download(
    session: ReportSession = Depends(get_report_session),
) -> Response:
    generated = session.generated
    if generated is None:
        session.flash("Nothing to download", "Generate a report first.", "error")
        return _back_home()
    return Response(
        content=generated.content,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": attachment_header(generated.filename)},
    )
