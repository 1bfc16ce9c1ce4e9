"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends, Request
from datetime import datetime
import logging

from app.dependencies.session import get_sql_assistant
from app.models.schemas import HealthCheckResponse
from app.services.sql_assistant import SqlAssistantService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    request: Request,
    assistant: SqlAssistantService = Depends(get_sql_assistant),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of database and Ollama
    """
    # Check database connection
    db_status = "ok"
    database = getattr(request.app.state, "database", None)
    if database is None or not database.is_open or not await database.ping():
        db_status = "error"

    # Check Ollama connection; the report pipeline works without it
    ollama_status = "ok" if await assistant.check_health() else "error"

    # Overall status
    overall_status = "healthy" if db_status == "ok" and ollama_status == "ok" else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        ollama=ollama_status,
        timestamp=datetime.utcnow()
    )
