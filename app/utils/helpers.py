"""
Common utility functions and helpers.
"""
from datetime import date
from pathlib import Path
from typing import Optional
from urllib.parse import quote
import base64
import re


DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PARAMETER_NAME_PATTERN = r"^[A-Za-z0-9_]+$"
REPORT_DATE_PATTERN = r"^[0-9]{4}-(0[1-9]|1[0-2])$"

_REPORT_DATE_RE = re.compile(REPORT_DATE_PATTERN)
_DATA_URL_PREFIX_RE = re.compile(r"^data:[^;,]*;base64,", re.IGNORECASE)


def is_valid_report_date(value: str) -> bool:
    """Return True for a ``YYYY-MM`` string with a month between 01 and 12."""
    return bool(value) and bool(_REPORT_DATE_RE.fullmatch(value))


def current_report_date(today: Optional[date] = None) -> str:
    """
    Return the report month for *today* (defaults to the current date).

    Args:
        today: Date to format; ``date.today()`` when omitted

    Returns:
        Year-month string, e.g. ``2025-09``
    """
    return (today or date.today()).strftime("%Y-%m")


def encode_document(content: bytes) -> str:
    """
    Encode document bytes for transport across the UI/generation boundary.

    Args:
        content: Raw .docx bytes

    Returns:
        Base64 text
    """
    return base64.b64encode(content).decode("ascii")


def decode_document(payload: str) -> bytes:
    """
    Decode a base64 document payload. A leading ``data:...;base64,`` prefix,
    as produced by browser FileReader APIs, is tolerated.

    Args:
        payload: Base64 text

    Returns:
        Raw document bytes

    Raises:
        ValueError: payload is not valid base64
    """
    cleaned = _DATA_URL_PREFIX_RE.sub("", payload.strip())
    cleaned = re.sub(r"\s+", "", cleaned)
    return base64.b64decode(cleaned, validate=True)


def report_file_name(template_name: str, report_date: str) -> str:
    """
    Build the download name of a generated report.

    Args:
        template_name: Original template file name, e.g. ``monthly.docx``
        report_date: Report month

    Returns:
        ``<stem>-<report_date>.docx``, e.g. ``monthly-2025-09.docx``
    """
    stem = Path(template_name or "report").stem or "report"
    return f"{stem}-{report_date}.docx"


def attachment_header(filename: str) -> str:
    """
    Build a ``Content-Disposition`` value for downloading *filename*.

    Header values travel as latin-1, so the plain ``filename`` parameter
    carries an ASCII rendering and ``filename*`` (RFC 5987) the exact
    UTF-8 name.

    Args:
        filename: Download name, any characters

    Returns:
        e.g. ``attachment; filename="__-2025-09.docx"; filename*=UTF-8''%E6%9C%88%E6%8A%A5-2025-09.docx``
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = re.sub(r'[?"\\\x00-\x1f\x7f]', "_", fallback)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
