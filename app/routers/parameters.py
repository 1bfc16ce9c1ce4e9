"""
Parameter management endpoints (scoped to the caller's session).

GET    /          - list parameters in order.
POST   /          - add a parameter.
POST   /reset     - restore the default parameter set.
GET    /{id}      - fetch one parameter.
PUT    /{id}      - edit a parameter.
DELETE /{id}      - delete a parameter.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.dependencies.session import get_report_session
from app.models.schemas import ParameterCreate, ParameterResponse, ParameterUpdate
from app.services.parameter_store import (
    DuplicateParameterError,
    ParameterNotFoundError,
    ReportSession,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[ParameterResponse])
async def list_parameters(
    session: ReportSession = Depends(get_report_session),
) -> List[ParameterResponse]:
    return [ParameterResponse.model_validate(p) for p in session.parameters.list()]


@router.post(
    "/",
    response_model=ParameterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_parameter(
    payload: ParameterCreate,
    session: ReportSession = Depends(get_report_session),
) -> ParameterResponse:
    """Add a parameter. Names must be unique within the session (409 otherwise)."""
    try:
        parameter = session.parameters.add(payload.name, payload.description, payload.sql)
    except DuplicateParameterError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logger.info("Parameter %r created", parameter.name)
    return ParameterResponse.model_validate(parameter)


@router.post("/reset", response_model=List[ParameterResponse])
async def reset_parameters(
    session: ReportSession = Depends(get_report_session),
) -> List[ParameterResponse]:
    session.parameters.reset()
    return [ParameterResponse.model_validate(p) for p in session.parameters.list()]


@router.get("/{parameter_id}", response_model=ParameterResponse)
async def get_parameter(
    parameter_id: str,
    session: ReportSession = Depends(get_report_session),
) -> ParameterResponse:
    try:
        return ParameterResponse.model_validate(session.parameters.get(parameter_id))
    except ParameterNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.put("/{parameter_id}", response_model=ParameterResponse)
async def update_parameter(
    parameter_id: str,
    payload: ParameterUpdate,
    session: ReportSession = Depends(get_report_session),
) -> ParameterResponse:
    try:
        parameter = session.parameters.update(
            parameter_id, payload.name, payload.description, payload.sql
        )
    except ParameterNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except DuplicateParameterError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logger.info("Parameter %r updated", parameter.name)
    return ParameterResponse.model_validate(parameter)


@router.delete("/{parameter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_parameter(
    parameter_id: str,
    session: ReportSession = Depends(get_report_session),
) -> Response:
    try:
        parameter = session.parameters.delete(parameter_id)
    except ParameterNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    logger.info("Parameter %r deleted", parameter.name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
