"""
Session dependencies for FastAPI routes.

The browser session id travels in the SESSION_COOKIE_NAME cookie. The
``attach_session`` middleware in app.main guarantees ``request.state.session_id``
is set (issuing a new cookie when needed); these dependencies resolve it to the
in-memory ReportSession and build the per-request services.
"""
from __future__ import annotations

import logging
import re
import uuid
from typing import Optional

from fastapi import Depends, Request

from app.config import settings
from app.database import ReportDatabase, get_database
from app.services.parameter_store import ReportSession, session_registry
from app.services.query_executor import QueryExecutor
from app.services.report_generator import ReportGenerator
from app.services.sql_assistant import SqlAssistantService

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def new_session_id() -> str:
    return uuid.uuid4().hex


def is_valid_session_id(value: Optional[str]) -> bool:
    return bool(value) and bool(_SESSION_ID_RE.match(value))


def get_report_session(request: Request) -> ReportSession:
    """Return the caller's session, creating it on first use."""
    session_id = getattr(request.state, "session_id", None)
    if not is_valid_session_id(session_id):
        session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not is_valid_session_id(session_id):
        session_id = new_session_id()
    return session_registry.get_or_create(session_id)


def get_report_generator(
    database: ReportDatabase = Depends(get_database),
) -> ReportGenerator:
    """Build a generator bound to the application's database handle."""
    return ReportGenerator(QueryExecutor(database))


def get_sql_assistant() -> SqlAssistantService:
    """Return a new ``SqlAssistantService`` for the request lifecycle."""
    return SqlAssistantService()
