"""
In-memory parameter store and per-browser session registry.

Parameters live only as long as the UI session that owns them; nothing is
persisted. Each session also carries the uploaded template, the selected
report month, the last generated report, and one-shot flash messages.

Usage
-----
    from app.services.parameter_store import session_registry

    session = session_registry.get_or_create(session_id)
    param = session.parameters.add("total_sales", "Monthly sales", "SELECT ...")
"""
from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from typing import Dict, Iterator, List, Optional

from app.utils.helpers import current_report_date

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class DuplicateParameterError(ValueError):
    """Another parameter in the session already uses this name."""


class ParameterNotFoundError(KeyError):
    """No parameter with the given id exists in the session."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Parameter not found"


# ---------------------------------------------------------------------------
# Parameter
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class Parameter:
    """A named SQL query bound to the ``[$name]`` placeholder."""

    id: str
    name: str
    description: str
    sql: str


DEFAULT_PARAMETERS: List[Dict[str, str]] = [
    {
        "name": "total_sales",
        "description": "Calculates the total sales amount for the specified month.",
        "sql": "SELECT SUM(amount) FROM sales WHERE strftime('%Y-%m', sale_date) = '[REPORT_DATE]';",
    },
    {
        "name": "new_customers",
        "description": "Counts the number of new customers who signed up in the specified month.",
        "sql": "SELECT COUNT(id) FROM customers WHERE strftime('%Y-%m', signup_date) = '[REPORT_DATE]';",
    },
    {
        "name": "top_product",
        "description": "Finds the name of the product with the highest sales in the month.",
        "sql": (
            "SELECT p.name FROM products p "
            "JOIN sales_items si ON p.id = si.product_id "
            "JOIN sales s ON si.sale_id = s.id "
            "WHERE strftime('%Y-%m', s.sale_date) = '[REPORT_DATE]' "
            "GROUP BY p.name ORDER BY SUM(si.quantity) DESC LIMIT 1;"
        ),
    },
]


class ParameterStore:
    """Ordered, name-unique list of parameters owned by one session."""

    def __init__(self, parameters: Optional[List[Dict[str, str]]] = None) -> None:
        self._parameters: List[Parameter] = []
        for item in DEFAULT_PARAMETERS if parameters is None else parameters:
            self.add(item["name"], item["description"], item["sql"])

    def __len__(self) -> int:
        return len(self._parameters)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(list(self._parameters))

    def list(self) -> List[Parameter]:
        return list(self._parameters)

    def get(self, parameter_id: str) -> Parameter:
        for parameter in self._parameters:
            if parameter.id == parameter_id:
                return parameter
        raise ParameterNotFoundError(f"Parameter {parameter_id} not found.")

    def add(self, name: str, description: str, sql: str) -> Parameter:
        self._check_name(name)
        parameter = Parameter(
            id=uuid.uuid4().hex,
            name=name,
            description=description,
            sql=sql,
        )
        self._parameters.append(parameter)
        logger.debug("Parameter added: %s (%s)", name, parameter.id)
        return parameter

    def update(self, parameter_id: str, name: str, description: str, sql: str) -> Parameter:
        parameter = self.get(parameter_id)
        self._check_name(name, exclude_id=parameter_id)
        parameter.name = name
        parameter.description = description
        parameter.sql = sql
        logger.debug("Parameter updated: %s (%s)", name, parameter_id)
        return parameter

    def delete(self, parameter_id: str) -> Parameter:
        parameter = self.get(parameter_id)
        self._parameters.remove(parameter)
        logger.debug("Parameter deleted: %s (%s)", parameter.name, parameter_id)
        return parameter

    def reset(self) -> None:
        """Restore the default parameter set."""
        self._parameters = []
        for item in DEFAULT_PARAMETERS:
            self.add(item["name"], item["description"], item["sql"])

    def _check_name(self, name: str, exclude_id: Optional[str] = None) -> None:
        for parameter in self._parameters:
            if parameter.name == name and parameter.id != exclude_id:
                raise DuplicateParameterError(f"A parameter named '{name}' already exists.")


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class TemplateFile:
    filename: str
    content: bytes
    placeholders: List[str] = dataclasses.field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclasses.dataclass
class GeneratedFile:
    filename: str
    content: bytes
    report_date: str
    failed_parameters: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FlashMessage:
    title: str
    description: str = ""
    category: str = "info"   # info | success | error


@dataclasses.dataclass
class ReportSession:
    session_id: str
    parameters: ParameterStore = dataclasses.field(default_factory=ParameterStore)
    template: Optional[TemplateFile] = None
    report_date: str = dataclasses.field(default_factory=current_report_date)
    generated: Optional[GeneratedFile] = None
    generation_failed: bool = False
    messages: List[FlashMessage] = dataclasses.field(default_factory=list)
    last_seen: float = dataclasses.field(default_factory=time.monotonic)

    def flash(self, title: str, description: str = "", category: str = "info") -> None:
        self.messages.append(FlashMessage(title=title, description=description, category=category))

    def pop_messages(self) -> List[FlashMessage]:
        messages, self.messages = self.messages, []
        return messages

    def set_template(self, template: Optional[TemplateFile]) -> None:
        """Replace the template; any previous result belongs to the old one."""
        self.template = template
        self.generated = None
        self.generation_failed = False


# ---------------------------------------------------------------------------
# Session registry (class-level state - acts as a singleton)
# ---------------------------------------------------------------------------

class SessionRegistry:
    """Maps session ids to ReportSession objects, evicting idle sessions."""

    MAX_IDLE_SECONDS: float = 12 * 60 * 60

    _sessions: Dict[str, ReportSession] = {}

    @classmethod
    def get(cls, session_id: str) -> Optional[ReportSession]:
        return cls._sessions.get(session_id)

    @classmethod
    def get_or_create(cls, session_id: Optional[str] = None) -> ReportSession:
        cls._evict_idle()
        if session_id and session_id in cls._sessions:
            session = cls._sessions[session_id]
            session.last_seen = time.monotonic()
            return session

        session = ReportSession(session_id=session_id or uuid.uuid4().hex)
        cls._sessions[session.session_id] = session
        logger.info("Session created: %s", session.session_id[:8])
        return session

    @classmethod
    def discard(cls, session_id: str) -> None:
        cls._sessions.pop(session_id, None)

    @classmethod
    def clear(cls) -> None:
        """Drop every session, intended for tests."""
        cls._sessions.clear()

    @classmethod
    def _evict_idle(cls) -> None:
        cutoff = time.monotonic() - cls.MAX_IDLE_SECONDS
        stale = [sid for sid, s in cls._sessions.items() if s.last_seen < cutoff]
        for sid in stale:
            cls._sessions.pop(sid, None)
        if stale:
            logger.info("Evicted %d idle session(s)", len(stale))


# Module-level singleton instance
session_registry = SessionRegistry
