"""
In-place placeholder patching for DOCX report templates.

Walks every paragraph of a template (body, table cells, and the headers and
footers the document defines) and replaces ``[$name]`` placeholders with the
values computed for a report run. Word frequently splits a typed placeholder
across several runs, so matching happens on the joined text of a paragraph
and the replacement is written back into the run where the placeholder
starts. Error values are written as their own bold red run.

Public API
----------
patch_template(template_bytes, values)   -> PatchResult
extract_placeholders(template_bytes)     -> List[str]
"""
from __future__ import annotations

import copy
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Mapping, Tuple

from docx import Document as DocxDocument
from docx.shared import RGBColor
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from app.services.query_executor import ParameterValue

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\[\$([A-Za-z0-9_]+)\]")
ERROR_COLOR = RGBColor(0xC0, 0x00, 0x00)


class TemplateError(RuntimeError):
    """The template could not be decoded, or the patched document could not be written."""


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class PatchResult:
    """
    Output of patch_template.

    Attributes:
        content:    Bytes of the patched document (the input bytes when
                    nothing was replaced).
        replaced:   Number of placeholder occurrences replaced.
        unresolved: Placeholder names found in the template with no value,
                    in order of first appearance. These are left untouched.
    """

    content: bytes
    replaced: int = 0
    unresolved: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def patch_template(
    template_bytes: bytes,
    values: Mapping[str, ParameterValue],
) -> PatchResult:
    """
    Replace every ``[$name]`` placeholder that has an entry in *values*.

    Args:
        template_bytes: Raw .docx bytes.
        values: Placeholder name (without brackets) to tagged value.

    Returns:
        PatchResult with the new document bytes.

    Raises:
        TemplateError: unreadable template or failure writing the result.
    """
    document = load_template(template_bytes)

    replaced = 0
    unresolved: List[str] = []
    for paragraph in iter_paragraphs(document):
        count, missing = _patch_paragraph(paragraph, values)
        replaced += count
        unresolved.extend(missing)

    unresolved = _unique(unresolved)
    if unresolved:
        logger.info("Placeholders without a parameter left as-is: %s", unresolved)

    if replaced == 0:
        return PatchResult(content=template_bytes, replaced=0, unresolved=unresolved)

    return PatchResult(
        content=save_document(document),
        replaced=replaced,
        unresolved=unresolved,
    )


def extract_placeholders(template_bytes: bytes) -> List[str]:
    """Return the placeholder names of a template, in order of first appearance."""
    document = load_template(template_bytes)
    names: List[str] = []
    for paragraph in iter_paragraphs(document):
        text = "".join(run.text for run in paragraph.runs)
        names.extend(m.group(1) for m in PLACEHOLDER_RE.finditer(text))
    return _unique(names)


def load_template(template_bytes: bytes):
    """Open DOCX bytes with python-docx, raising TemplateError on failure."""
    if not template_bytes:
        raise TemplateError("Template is empty.")
    try:
        return DocxDocument(io.BytesIO(template_bytes))
    except Exception as exc:
        raise TemplateError(f"Cannot open DOCX template: {exc}") from exc


def save_document(document) -> bytes:
    """Serialise a python-docx Document to bytes."""
    buffer = io.BytesIO()
    try:
        document.save(buffer)
    except Exception as exc:
        raise TemplateError(f"Cannot write DOCX document: {exc}") from exc
    return buffer.getvalue()


def iter_paragraphs(document) -> Iterator[Paragraph]:
    """
    Yield every paragraph that can hold a placeholder: the body, table cells
    (nested tables included), then each defined header and footer.
    """
    yield from _iter_container(document, set())

    for section in document.sections:
        for part in (
            section.header,
            section.footer,
            section.first_page_header,
            section.first_page_footer,
            section.even_page_header,
            section.even_page_footer,
        ):
            # Linked parts have no definition of their own; touching their
            # paragraphs would add one to the document.
            if part.is_linked_to_previous:
                continue
            yield from _iter_container(part, set())


# ---------------------------------------------------------------------------
# Paragraph patching
# ---------------------------------------------------------------------------

def _iter_container(container, seen_cells: set) -> Iterator[Paragraph]:
    yield from container.paragraphs
    for table in container.tables:
        for row in table.rows:
            for cell in row.cells:
                # Merged cells are reported once per grid column they span
                if cell._tc in seen_cells:
                    continue
                seen_cells.add(cell._tc)
                yield from _iter_container(cell, seen_cells)


def _patch_paragraph(
    paragraph: Paragraph,
    values: Mapping[str, ParameterValue],
) -> Tuple[int, List[str]]:
    """Patch one paragraph. Returns (replacements made, unresolved names)."""
    text = "".join(run.text for run in paragraph.runs)
    if "[$" not in text:
        return 0, []

    matches = list(PLACEHOLDER_RE.finditer(text))
    replaced = 0
    missing: List[str] = []

    # Right to left so earlier offsets stay valid while runs change
    for match in reversed(matches):
        name = match.group(1)
        value = values.get(name)
        if value is None:
            missing.append(name)
            continue
        _replace_span(paragraph, match.start(), match.end(), value)
        replaced += 1

    missing.reverse()
    return replaced, missing


def _replace_span(paragraph: Paragraph, start: int, end: int, value: ParameterValue) -> None:
    """Replace paragraph text [start, end) with *value*, editing runs in place."""
    runs = paragraph.runs
    first_idx, first_offset = _locate(runs, start)
    last_idx, last_offset = _locate(runs, end - 1)

    first = runs[first_idx]
    before = first.text[:first_offset]
    after = runs[last_idx].text[last_offset + 1:]

    for run in runs[first_idx + 1:last_idx]:
        _remove_run(run)

    if last_idx != first_idx:
        last = runs[last_idx]
        if after:
            # Trailing text keeps the formatting of the run it came from
            last.text = after
        else:
            _remove_run(last)
        after = ""

    if not value.is_error:
        first.text = before + value.text + after
        return

    first.text = before
    marker = _insert_run_after(first, template=first, text=value.text)
    marker.font.bold = True
    marker.font.color.rgb = ERROR_COLOR
    if after:
        _insert_run_after(marker, template=first, text=after)
    if not before:
        _remove_run(first)


def _locate(runs: List[Run], offset: int) -> Tuple[int, int]:
    """Map a paragraph text offset to (run index, offset inside that run)."""
    position = 0
    for index, run in enumerate(runs):
        length = len(run.text)
        if offset < position + length:
            return index, offset - position
        position += length
    raise IndexError(f"Offset {offset} is outside the paragraph text")


def _insert_run_after(anchor: Run, template: Run, text: str) -> Run:
    """Insert a copy of *template*'s formatting after *anchor*, holding *text*."""
    new_r = copy.deepcopy(template._r)
    anchor._r.addnext(new_r)
    run = Run(new_r, anchor._parent)
    run.text = text
    return run


def _remove_run(run: Run) -> None:
    element = run._r
    parent = element.getparent()
    if parent is not None:
        parent.remove(element)


def _unique(names: List[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered
