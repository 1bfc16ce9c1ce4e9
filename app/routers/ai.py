"""
AI assistance endpoints for parameter queries.

POST /suggest-sql - candidate SQL from a parameter name and description.
POST /verify-sql  - suitability verdict for a query against a description.

Failures of the AI service are reported as 502; nothing is retried.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.session import get_sql_assistant
from app.models.schemas import (
    SuggestSqlRequest,
    SuggestSqlResponse,
    VerifySqlRequest,
    VerifySqlResponse,
)
from app.services.sql_assistant import AIServiceError, SqlAssistantService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/suggest-sql", response_model=SuggestSqlResponse)
async def suggest_sql(
    payload: SuggestSqlRequest,
    assistant: SqlAssistantService = Depends(get_sql_assistant),
) -> SuggestSqlResponse:
    try:
        sql = await assistant.suggest(payload.parameter_name, payload.description)
    except AIServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI suggestion failed: {exc}",
        )
    return SuggestSqlResponse(sql_query=sql)


@router.post("/verify-sql", response_model=VerifySqlResponse)
async def verify_sql(
    payload: VerifySqlRequest,
    assistant: SqlAssistantService = Depends(get_sql_assistant),
) -> VerifySqlResponse:
    try:
        result = await assistant.verify(payload.sql_query, payload.expected_data_description)
    except AIServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI verification failed: {exc}",
        )
    return VerifySqlResponse(is_suitable=result.is_suitable, reason=result.reason)
