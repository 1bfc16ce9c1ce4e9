"""Tests for SqlAssistantService against a mocked Ollama."""
import json

import httpx
import pytest

from app.services.sql_assistant import AIServiceError, SqlAssistantService
from tests.conftest import FakeOllama


# ---------------------------------------------------------------------------
# suggest
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_suggest_parses_json_answer(ollama: FakeOllama):
    ollama.generate_text = json.dumps({"sql_query": "SELECT COUNT(*) FROM customers"})
    sql = await ollama.service().suggest("customer_count", "Number of customers")
    assert sql == "SELECT COUNT(*) FROM customers"


@pytest.mark.asyncio
async def test_suggest_sends_schema_and_token_in_prompt(ollama: FakeOllama):
    ollama.generate_text = '{"sql_query": "SELECT 1"}'
    await ollama.service().suggest("total_sales", "Total sales for the month")

    body = json.loads(ollama.requests[-1].content)
    assert body["stream"] is False
    assert body["format"] == "json"
    assert "total_sales" in body["prompt"]
    assert "[REPORT_DATE]" in body["prompt"]
    assert "sales_items(" in body["prompt"]


@pytest.mark.asyncio
async def test_suggest_accepts_fenced_json(ollama: FakeOllama):
    ollama.generate_text = '```json\n{"sql_query": "SELECT name FROM products",}\n```'
    assert await ollama.service().suggest("p", "d") == "SELECT name FROM products"


@pytest.mark.asyncio
async def test_suggest_accepts_bare_sql(ollama: FakeOllama):
    ollama.generate_text = "```sql\nSELECT MAX(price) FROM products\n```"
    assert await ollama.service().suggest("p", "d") == "SELECT MAX(price) FROM products"


@pytest.mark.asyncio
async def test_suggest_without_sql_raises(ollama: FakeOllama):
    ollama.generate_text = "I am not sure what you mean."
    with pytest.raises(AIServiceError):
        await ollama.service().suggest("p", "d")


@pytest.mark.asyncio
async def test_suggest_http_error_raises(ollama: FakeOllama):
    ollama.generate_status = 500
    with pytest.raises(AIServiceError, match="HTTP 500"):
        await ollama.service().suggest("p", "d")


@pytest.mark.asyncio
async def test_suggest_empty_response_raises(ollama: FakeOllama):
    ollama.generate_text = "   "
    with pytest.raises(AIServiceError):
        await ollama.service().suggest("p", "d")


@pytest.mark.asyncio
async def test_unreachable_service_raises():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = SqlAssistantService(transport=httpx.MockTransport(refuse))
    with pytest.raises(AIServiceError, match="unreachable"):
        await service.suggest("p", "d")


@pytest.mark.asyncio
async def test_timeout_raises():
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    service = SqlAssistantService(transport=httpx.MockTransport(slow))
    with pytest.raises(AIServiceError, match="timed out"):
        await service.verify("SELECT 1", "d")


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_verify_parses_verdict(ollama: FakeOllama):
    ollama.generate_text = json.dumps({"is_suitable": False, "reason": "Wrong table."})
    result = await ollama.service().verify("SELECT * FROM products", "Total sales")
    assert result.is_suitable is False
    assert result.reason == "Wrong table."


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ('"yes"', True), ("1", True), ('"no"', False), ("0", False)],
)
async def test_verify_coerces_suitability(ollama: FakeOllama, raw, expected):
    ollama.generate_text = '{"is_suitable": %s, "reason": "ok"}' % raw
    assert (await ollama.service().verify("SELECT 1", "d")).is_suitable is expected


@pytest.mark.asyncio
async def test_verify_without_reason_gets_placeholder(ollama: FakeOllama):
    ollama.generate_text = '{"is_suitable": True}'
    result = await ollama.service().verify("SELECT 1", "d")
    assert result.is_suitable is True
    assert result.reason == "No reason given."


@pytest.mark.asyncio
async def test_verify_without_verdict_raises(ollama: FakeOllama):
    ollama.generate_text = '{"reason": "looks fine"}'
    with pytest.raises(AIServiceError):
        await ollama.service().verify("SELECT 1", "d")


# ---------------------------------------------------------------------------
# check_health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_check_health(ollama: FakeOllama):
    assert await ollama.service().check_health() is True
    ollama.tags_status = 503
    assert await ollama.service().check_health() is False
