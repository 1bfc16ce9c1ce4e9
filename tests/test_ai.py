"""Tests for AI suggest / verify under /api/ai."""
import json

import pytest
from httpx import AsyncClient

from tests.conftest import FakeOllama


@pytest.mark.asyncio
async def test_suggest_sql(client: AsyncClient, ollama: FakeOllama):
    ollama.generate_text = json.dumps({"sql_query": "SELECT COUNT(*) FROM products"})
    resp = await client.post(
        "/api/ai/suggest-sql",
        json={"parameter_name": "product_count", "description": "How many products"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"sql_query": "SELECT COUNT(*) FROM products"}


@pytest.mark.asyncio
async def test_suggest_sql_failure_is_502(client: AsyncClient, ollama: FakeOllama):
    ollama.generate_status = 500
    resp = await client.post(
        "/api/ai/suggest-sql",
        json={"parameter_name": "p", "description": "d"},
    )
    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("AI suggestion failed")


@pytest.mark.asyncio
async def test_verify_sql(client: AsyncClient, ollama: FakeOllama):
    ollama.generate_text = json.dumps({"is_suitable": True, "reason": "Counts customers."})
    resp = await client.post(
        "/api/ai/verify-sql",
        json={
            "sql_query": "SELECT COUNT(id) FROM customers",
            "expected_data_description": "Number of customers",
        },
    )
    assert resp.status_code == 200
    assert resp.json() == {"is_suitable": True, "reason": "Counts customers."}


@pytest.mark.asyncio
async def test_verify_sql_failure_is_502(client: AsyncClient, ollama: FakeOllama):
    ollama.generate_text = "no idea"
    resp = await client.post(
        "/api/ai/verify-sql",
        json={"sql_query": "SELECT 1", "expected_data_description": "d"},
    )
    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("AI verification failed")


@pytest.mark.asyncio
async def test_ai_requests_are_validated(client: AsyncClient):
    resp = await client.post("/api/ai/suggest-sql", json={"parameter_name": "p"})
    assert resp.status_code == 422
