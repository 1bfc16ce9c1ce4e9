"""
Single-value query execution for report parameters.

Each parameter's SQL has the report-date token replaced and is run against
the report database. The first column of the first row becomes the
placeholder text. Statement failures are folded into an error value so a
broken parameter never aborts a generation run; only a database that cannot
be connected to raises.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import ReportDatabase
from app.utils.helpers import is_valid_report_date, truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tagged result
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class ParameterValue:
    """Outcome of one parameter query: display text, or an error marker."""

    text: str
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> "ParameterValue":
        return cls(text=text, is_error=False)

    @classmethod
    def error(cls, marker: str) -> "ParameterValue":
        return cls(text=marker, is_error=True)


# ---------------------------------------------------------------------------
# Date token substitution
# ---------------------------------------------------------------------------

def substitute_report_date(
    sql: str,
    report_date: str,
    token: Optional[str] = None,
) -> str:
    """
    Replace every literal occurrence of the report-date token in *sql*.

    Args:
        sql: Parameter query, e.g. ``... strftime('%Y-%m', sale_date) = '[REPORT_DATE]'``
        report_date: Report month as ``YYYY-MM``
        token: Marker to replace; defaults to ``settings.REPORT_DATE_TOKEN``

    Raises:
        ValueError: report_date is not a ``YYYY-MM`` month
    """
    if not is_valid_report_date(report_date):
        raise ValueError(f"Invalid report date {report_date!r}; expected YYYY-MM.")
    return sql.replace(token or settings.REPORT_DATE_TOKEN, report_date)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class QueryExecutor:
    """Runs parameter queries against a ReportDatabase handle."""

    def __init__(
        self,
        database: ReportDatabase,
        report_date_token: Optional[str] = None,
        no_data_value: Optional[str] = None,
        error_value: Optional[str] = None,
    ) -> None:
        self.database = database
        self.report_date_token = report_date_token or settings.REPORT_DATE_TOKEN
        self.no_data_value = no_data_value if no_data_value is not None else settings.NO_DATA_VALUE
        self.error_value = error_value if error_value is not None else settings.QUERY_ERROR_VALUE

    async def run(
        self,
        sql: str,
        report_date: str,
        parameter_name: str = "",
    ) -> ParameterValue:
        """
        Execute one parameter query for *report_date*.

        Returns:
            ``ParameterValue.ok(text)`` with the first value of the first row,
            ``ParameterValue.ok(no_data_value)`` for no rows or a NULL value,
            ``ParameterValue.error(error_value)`` if the statement fails.

        Raises:
            ValueError: malformed report date
            DatabaseUnavailableError: the database cannot be connected to
        """
        query = substitute_report_date(sql, report_date, self.report_date_token)
        label = parameter_name or "<unnamed>"

        async with self.database.connect() as conn:
            # The sqlite3 driver runs DDL outside any transaction, so rollback
            # cannot undo it; writes are refused outright instead.
            read_only = conn.dialect.name == "sqlite"
            if read_only:
                await conn.exec_driver_sql("PRAGMA query_only = ON")
            try:
                # exec_driver_sql: user SQL may contain ':' inside literals,
                # which text() would treat as bind parameters.
                result = await conn.exec_driver_sql(query)
                row = result.first()
            except SQLAlchemyError as exc:
                logger.error(
                    "Query for parameter %s failed: %s. SQL: %s",
                    label,
                    exc,
                    truncate_text(query),
                )
                return ParameterValue.error(self.error_value)
            finally:
                # Parameter queries are never committed.
                await conn.rollback()
                if read_only:
                    # Pooled connections are shared with seeding and schema checks.
                    await conn.exec_driver_sql("PRAGMA query_only = OFF")
                    await conn.rollback()

        if row is None or len(row) == 0:
            logger.info("Parameter %s returned no rows", label)
            return ParameterValue.ok(self.no_data_value)

        return ParameterValue.ok(self._format_value(row[0]))

    def _format_value(self, value: Any) -> str:
        if value is None:
            return self.no_data_value
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return str(value)
