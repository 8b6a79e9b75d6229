import re
from datetime import date
from typing import Optional

from .config import setup_logger
from .errors import APIError

logger = setup_logger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_date(raw: Optional[str]) -> str:
    """Return a YYYY-MM-DD string or raise a 400 APIError."""
    if not raw or not _DATE_RE.match(raw):
        logger.info("date_invalid_format: %s", raw)
        raise APIError(
            "cssport",
            "INVALID_DATE",
            "Invalid date format. Use YYYY-MM-DD",
            details=str(raw),
            status=400,
        )
    try:
        date.fromisoformat(raw)
    except ValueError:
        logger.info("date_invalid_value: %s", raw)
        raise APIError(
            "cssport", "INVALID_DATE", "Invalid date value", details=raw, status=400
        ) from None
    return raw


def parse_bool(raw: Optional[str], default: bool = False) -> bool:
    """Query-string flag parsing; anything but a truthy token is False."""
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def validate_int_id(raw: Optional[str], name: str = "id") -> int:
    try:
        value = int(str(raw))
    except (TypeError, ValueError):
        raise APIError(
            "cssport", "INVALID_ID", f"Invalid {name}", details=str(raw), status=400
        ) from None
    if value <= 0:
        raise APIError("cssport", "INVALID_ID", f"Invalid {name}", details=str(raw), status=400)
    return value
