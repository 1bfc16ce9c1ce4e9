"""Tests for template upload under /api/templates."""
import pytest
from httpx import AsyncClient

from app.config import settings
from tests.conftest import current_session, make_docx

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@pytest.mark.asyncio
async def test_upload_docx_lists_placeholders(client: AsyncClient):
    content = make_docx(["Sales [$total_sales]", "Top [$top_product]"])
    resp = await client.post(
        "/api/templates/upload",
        files={"file": ("monthly.docx", content, DOCX_TYPE)},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["filename"] == "monthly.docx"
    assert data["size"] == len(content)
    assert data["placeholders"] == ["total_sales", "top_product"]
    assert data["message"] == "monthly.docx is ready."

    assert current_session().template.content == content


@pytest.mark.asyncio
async def test_upload_unsupported_type(client: AsyncClient):
    """Uploading a .txt file should fail with 400."""
    resp = await client.post(
        "/api/templates/upload",
        files={"file": ("notes.txt", b"hello world", "text/plain")},
    )
    assert resp.status_code == 400
    assert "Unsupported file type" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_upload_corrupt_docx(client: AsyncClient):
    """A .docx that is not a Word document should return 422."""
    resp = await client.post(
        "/api/templates/upload",
        files={"file": ("broken.docx", b"definitely not a zip", DOCX_TYPE)},
    )
    assert resp.status_code == 422
    assert current_session().template is None


@pytest.mark.asyncio
async def test_upload_too_large(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE", 10)
    resp = await client.post(
        "/api/templates/upload",
        files={"file": ("big.docx", make_docx(["x"]), DOCX_TYPE)},
    )
    assert resp.status_code == 413


@pytest.mark.asyncio
async def test_current_template_lifecycle(client: AsyncClient):
    assert (await client.get("/api/templates/current")).status_code == 404

    await client.post(
        "/api/templates/upload",
        files={"file": ("a.docx", make_docx(["[$x]"]), DOCX_TYPE)},
    )
    resp = await client.get("/api/templates/current")
    assert resp.status_code == 200
    assert resp.json()["filename"] == "a.docx"
    assert resp.json()["placeholders"] == ["x"]

    assert (await client.delete("/api/templates/current")).status_code == 204
    assert (await client.get("/api/templates/current")).status_code == 404
