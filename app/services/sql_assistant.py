"""
AI helpers for writing parameter queries.

Uses Ollama's /api/generate endpoint with the model configured in
OLLAMA_LLM_MODEL. Both operations are single request/response calls with no
retry: any failure is raised as AIServiceError for the caller to report.

Public API
----------
SqlAssistantService.suggest(parameter_name, description) -> str
SqlAssistantService.verify(sql_query, description)       -> VerificationResult
SqlAssistantService.check_health()                        -> bool
"""
from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import Any, Optional, Tuple

import httpx

from app.config import settings
from app.services.seeding import describe_schema

logger = logging.getLogger(__name__)


class AIServiceError(RuntimeError):
    """The AI service could not produce a usable answer."""


@dataclasses.dataclass
class VerificationResult:
    is_suitable: bool
    reason: str


# ---------------------------------------------------------------------------
# Prompt templates - edit these to tune LLM output without touching logic
# ---------------------------------------------------------------------------

_SUGGEST_PROMPT = """\
You are an expert SQL query generator. Based on the parameter name and a \
description of the data needed, you will generate an SQL query to retrieve \
the data from a SQLite database.

Database schema:
{schema}

Rules:
- Return a single SELECT statement whose first column of the first row is the value.
- The report month is written as the literal token {token} (format YYYY-MM).
  Compare dates with strftime('%Y-%m', <date column>) = '{token}'.
- Use only the tables and columns listed above.

Parameter Name: {parameter_name}
Description: {description}

Respond ONLY with a JSON object. No explanation, no markdown:
{{"sql_query": "SELECT ..."}}\
"""

_VERIFY_PROMPT = """\
You are an expert SQL query verifier.

You will receive a SQL query and a description of the expected data for a \
report parameter. Your task is to determine if the SQL query is suitable for \
retrieving the expected data from this SQLite database:

{schema}

The literal token {token} is replaced with the report month (YYYY-MM) before \
the query runs, and only the first column of the first row is used.

SQL Query: {sql_query}
Expected Data Description: {description}

Consider the following:
- Does the query retrieve the type of data described in the data description?
- Does the query return the data in a format that is usable for the report parameter?
- Are there any potential issues with the query that could cause it to fail or return incorrect data?

Respond ONLY with a JSON object. No explanation, no markdown:
{{"is_suitable": true, "reason": "..."}}\
"""


# ---------------------------------------------------------------------------
# Main service class
# ---------------------------------------------------------------------------

class SqlAssistantService:
    """Suggests and verifies parameter SQL through Ollama."""

    SUGGEST_PROMPT = _SUGGEST_PROMPT
    VERIFY_PROMPT = _VERIFY_PROMPT

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.OLLAMA_LLM_MODEL
        self.llm_timeout = float(timeout if timeout is not None else settings.OLLAMA_TIMEOUT)
        self.timeout = httpx.Timeout(self.llm_timeout, connect=10.0)
        self._transport = transport

    # ------------------------------------------------------------------
    # Public methods
    # ------------------------------------------------------------------

    async def suggest(self, parameter_name: str, description: str) -> str:
        """
        Produce a candidate SQL query for a parameter.

        Raises:
            AIServiceError: service unreachable, error response, or no SQL in the answer.
        """
        prompt = self.SUGGEST_PROMPT.format(
            schema=describe_schema(),
            token=settings.REPORT_DATE_TOKEN,
            parameter_name=parameter_name,
            description=description,
        )
        response = await self._call_llm(prompt, max_tokens=600)

        ok, parsed = self._parse_json_robust(response)
        if ok and isinstance(parsed, dict):
            sql = str(parsed.get("sql_query") or parsed.get("sql") or "").strip()
        else:
            # Some models ignore the JSON instruction and answer with bare SQL
            sql = self._strip_code_fences(response.strip())
            if not re.match(r"^\s*(SELECT|WITH)\b", sql, flags=re.IGNORECASE):
                sql = ""

        if not sql:
            logger.error("suggest: no SQL in LLM response. Preview: %s", response[:300])
            raise AIServiceError("The AI service did not return a SQL query.")

        logger.info("suggest: SQL generated for parameter %s", parameter_name)
        return sql

    async def verify(self, sql_query: str, description: str) -> VerificationResult:
        """
        Judge whether *sql_query* fits *description*.

        Raises:
            AIServiceError: service unreachable, error response, or unusable verdict.
        """
        prompt = self.VERIFY_PROMPT.format(
            schema=describe_schema(),
            token=settings.REPORT_DATE_TOKEN,
            sql_query=sql_query,
            description=description,
        )
        response = await self._call_llm(prompt, max_tokens=400)

        ok, parsed = self._parse_json_robust(response)
        if not ok or not isinstance(parsed, dict) or "is_suitable" not in parsed:
            logger.error("verify: unusable LLM response. Preview: %s", response[:300])
            raise AIServiceError("The AI service did not return a verification result.")

        result = VerificationResult(
            is_suitable=self._to_bool(parsed.get("is_suitable")),
            reason=str(parsed.get("reason") or "").strip() or "No reason given.",
        )
        logger.info("verify: suitable=%s", result.is_suitable)
        return result

    async def check_health(self) -> bool:
        """Return ``True`` if Ollama is reachable and returns HTTP 200."""
        try:
            async with self._client(timeout=5.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                return resp.status_code == 200
        except Exception as exc:
            logger.error("Ollama health check failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Core LLM caller
    # ------------------------------------------------------------------

    def _client(self, timeout: Any = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    async def _call_llm(self, prompt: str, max_tokens: int = 600) -> str:
        """
        POST to Ollama /api/generate and return the response text.

        Raises AIServiceError on timeout, connection failure, non-200
        response, or an empty answer.
        """
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/api/generate",
                    json={
                        "model": self.model,
                        "prompt": prompt,
                        "stream": False,
                        "format": "json",
                        "options": {
                            "num_predict": max_tokens,
                            "temperature": 0.1,  # low temp for deterministic JSON
                        },
                    },
                )
        except httpx.TimeoutException as exc:
            logger.error("_call_llm: request timed out after %.0f s", self.llm_timeout)
            raise AIServiceError("The AI service timed out.") from exc
        except httpx.HTTPError as exc:
            logger.error("_call_llm: connection error - %s", exc)
            raise AIServiceError(f"The AI service is unreachable: {exc}") from exc

        if resp.status_code != 200:
            logger.error(
                "_call_llm: Ollama returned HTTP %d: %s",
                resp.status_code,
                resp.text[:300],
            )
            raise AIServiceError(f"The AI service returned HTTP {resp.status_code}.")

        try:
            text = resp.json().get("response", "")
        except ValueError as exc:
            raise AIServiceError("The AI service returned a malformed response.") from exc

        if not text or not text.strip():
            raise AIServiceError("The AI service returned an empty response.")
        return text

    # ------------------------------------------------------------------
    # Robust JSON parsing
    # ------------------------------------------------------------------

    def _parse_json_robust(self, response: str) -> Tuple[bool, Any]:
        """
        Try multiple strategies to parse JSON from potentially messy LLM output.

        Handles:
        - Markdown code fences (```json … ```, ``` … ```)
        - Trailing commas before ] or }
        - Python-style True / False / None
        - Surrounding prose - finds the first balanced {...} block

        Returns ``(success, parsed_value)``.
        """
        if not response:
            return False, None

        text = response.strip()

        ok, val = self._try_json(text)
        if ok:
            return True, val

        stripped = self._strip_code_fences(text)
        if stripped != text:
            ok, val = self._try_json(stripped)
            if ok:
                return True, val
            text = stripped

        fixed = self._fix_json_issues(text)
        ok, val = self._try_json(fixed)
        if ok:
            return True, val

        fragment = self._extract_json_structure(text, "{", "}")
        if fragment:
            ok, val = self._try_json(fragment)
            if ok:
                return True, val
            ok, val = self._try_json(self._fix_json_issues(fragment))
            if ok:
                return True, val

        logger.warning(
            "_parse_json_robust: all strategies failed. Preview: %s",
            response[:400],
        )
        return False, None

    @staticmethod
    def _try_json(text: str) -> Tuple[bool, Any]:
        try:
            return True, json.loads(text)
        except (json.JSONDecodeError, ValueError):
            return False, None

    @staticmethod
    def _strip_code_fences(text: str) -> str:
        """Remove ```json / ```sql / ``` delimiters that LLMs often wrap output in."""
        text = re.sub(r"^```(?:json|sql|sqlite|text)?\s*\n?", "", text, flags=re.IGNORECASE)
        text = re.sub(r"\n?```\s*$", "", text)
        return text.strip()

    @staticmethod
    def _fix_json_issues(text: str) -> str:
        """Repair the most common JSON mangling patterns from LLMs."""
        text = re.sub(r",(\s*[}\]])", r"\1", text)
        text = re.sub(r"\bTrue\b", "true", text)
        text = re.sub(r"\bFalse\b", "false", text)
        text = re.sub(r"\bNone\b", "null", text)
        return text.strip()

    @staticmethod
    def _extract_json_structure(text: str, open_b: str, close_b: str) -> str:
        """
        Find the first complete balanced open_b … close_b structure in *text*.
        Returns the matched fragment, or empty string if not found.
        """
        start = text.find(open_b)
        if start == -1:
            return ""

        depth = 0
        in_string = False
        escape_next = False

        for i, ch in enumerate(text[start:], start=start):
            if escape_next:
                escape_next = False
                continue
            if ch == "\\" and in_string:
                escape_next = True
                continue
            if ch == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if ch == open_b:
                depth += 1
            elif ch == close_b:
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        return ""

    @staticmethod
    def _to_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        return str(value).strip().lower() in {"true", "yes", "1", "suitable"}
