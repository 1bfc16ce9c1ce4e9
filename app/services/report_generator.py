"""
Report generation: one sequential run from (template, parameters, report
date) to a patched document.

For each parameter the executor substitutes the report date into its SQL and
produces a tagged value; the patcher then writes all values into the template
in a single pass. A failing parameter becomes an inline error marker and the
run continues. An unreadable template fails the whole run.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import Dict, List, Protocol, Sequence

from app.services.query_executor import ParameterValue, QueryExecutor
from app.services.report_patcher import load_template, patch_template
from app.utils.helpers import is_valid_report_date

logger = logging.getLogger(__name__)


class ReportParameterLike(Protocol):
    name: str
    sql: str


@dataclasses.dataclass
class GeneratedReport:
    """Result of a generation run."""

    content: bytes
    report_date: str
    values: Dict[str, ParameterValue]
    replaced: int = 0
    unresolved: List[str] = dataclasses.field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def failed_parameters(self) -> List[str]:
        return [name for name, value in self.values.items() if value.is_error]


class ReportGenerator:
    """Runs every parameter query and patches the results into a template."""

    def __init__(self, executor: QueryExecutor) -> None:
        self.executor = executor

    async def generate(
        self,
        template_bytes: bytes,
        parameters: Sequence[ReportParameterLike],
        report_date: str,
    ) -> GeneratedReport:
        """
        Generate a filled report.

        Args:
            template_bytes: Raw .docx template.
            parameters: Objects exposing ``name`` and ``sql``; names must be unique.
            report_date: Report month, ``YYYY-MM``.

        Raises:
            ValueError: malformed report date or duplicate parameter names.
            TemplateError: the template cannot be opened or the result written.
            DatabaseUnavailableError: the database cannot be connected to.
        """
        if not is_valid_report_date(report_date):
            raise ValueError(f"Invalid report date {report_date!r}; expected YYYY-MM.")
        _check_unique_names(parameters)

        t0 = time.monotonic()

        # Fail on an unreadable template before running any query
        load_template(template_bytes)

        logger.info(
            "Generating report for %s with %d parameter(s)", report_date, len(parameters)
        )

        values: Dict[str, ParameterValue] = {}
        for parameter in parameters:
            values[parameter.name] = await self.executor.run(
                parameter.sql, report_date, parameter_name=parameter.name
            )

        patched = patch_template(template_bytes, values)

        report = GeneratedReport(
            content=patched.content,
            report_date=report_date,
            values=values,
            replaced=patched.replaced,
            unresolved=patched.unresolved,
            elapsed_seconds=round(time.monotonic() - t0, 3),
        )
        logger.info(
            "Report for %s generated: %d placeholder(s) replaced, %d failed parameter(s), %.3f s",
            report_date,
            report.replaced,
            len(report.failed_parameters),
            report.elapsed_seconds,
        )
        return report


def _check_unique_names(parameters: Sequence[ReportParameterLike]) -> None:
    seen = set()
    duplicates = set()
    for parameter in parameters:
        if parameter.name in seen:
            duplicates.add(parameter.name)
        seen.add(parameter.name)
    if duplicates:
        raise ValueError(f"Duplicate parameter names: {', '.join(sorted(duplicates))}")
