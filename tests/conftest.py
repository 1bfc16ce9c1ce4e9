"""
Shared fixtures for Report Forge tests.

Each test gets its own SQLite database in ``tmp_path``, created and seeded
with the demo sales data, and attached to ``app.state.database`` the way the
lifespan does it. Ollama is replaced by an ``httpx.MockTransport`` so AI
routes never leave the process. Requests carry a fixed session cookie, so a
test can look the session up in the registry directly.
"""
from __future__ import annotations

import io
from typing import AsyncGenerator, Iterable, List, Optional, Sequence, Union

import httpx
import pytest_asyncio
from docx import Document
from httpx import ASGITransport, AsyncClient

from app.config import settings
from app.database import ReportDatabase
from app.dependencies.session import get_sql_assistant
from app.main import app
from app.services.parameter_store import ReportSession, session_registry
from app.services.report_patcher import iter_paragraphs
from app.services.seeding import seed_database
from app.services.sql_assistant import SqlAssistantService

SESSION_ID = "0123456789abcdef0123456789abcdef"
SESSION_HEADERS = {"Cookie": f"{settings.SESSION_COOKIE_NAME}={SESSION_ID}"}


# ---------------------------------------------------------------------------
# Fake Ollama
# ---------------------------------------------------------------------------

class FakeOllama:
    """Scriptable stand-in for the Ollama HTTP API."""

    def __init__(self) -> None:
        self.generate_status = 200
        self.generate_text = ""
        self.tags_status = 200
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/tags":
            return httpx.Response(
                self.tags_status, json={"models": [{"name": settings.OLLAMA_LLM_MODEL}]}
            )
        if request.url.path == "/api/generate":
            return httpx.Response(
                self.generate_status,
                json={"model": settings.OLLAMA_LLM_MODEL, "response": self.generate_text},
            )
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def service(self) -> SqlAssistantService:
        return SqlAssistantService(base_url="http://ollama.test", transport=self.transport)


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[ReportDatabase, None]:
    """Open a seeded SQLite database for one test."""
    db = ReportDatabase(f"sqlite+aiosqlite:///{tmp_path / 'reports.db'}")
    await db.open()
    await seed_database(db)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def ollama() -> FakeOllama:
    return FakeOllama()


@pytest_asyncio.fixture
async def client(
    database: ReportDatabase,
    ollama: FakeOllama,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the seeded test database
    and the fake Ollama service.
    """
    session_registry.clear()
    app.state.database = database
    app.dependency_overrides[get_sql_assistant] = ollama.service

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=SESSION_HEADERS
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.database = None
    session_registry.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

Paragraph = Union[str, Sequence[str]]


def make_docx(
    paragraphs: Iterable[Paragraph] = (),
    table_rows: Sequence[Sequence[str]] = (),
    header_text: Optional[str] = None,
    footer_text: Optional[str] = None,
) -> bytes:
    """
    Build a .docx in memory.

    A paragraph given as a list of strings becomes one run per string, which
    is how Word stores text typed with intermittent edits.
    """
    document = Document()
    for paragraph in paragraphs:
        p = document.add_paragraph()
        for text in [paragraph] if isinstance(paragraph, str) else paragraph:
            p.add_run(text)

    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, text in enumerate(row):
                table.cell(r, c).text = text

    section = document.sections[0]
    if header_text is not None:
        section.header.paragraphs[0].text = header_text
    if footer_text is not None:
        section.footer.paragraphs[0].text = footer_text

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def docx_text(content: bytes) -> str:
    """All paragraph text of a .docx (body, tables, headers, footers), one per line."""
    document = Document(io.BytesIO(content))
    return "\n".join(p.text for p in iter_paragraphs(document))


def current_session() -> ReportSession:
    return session_registry.get_or_create(SESSION_ID)
