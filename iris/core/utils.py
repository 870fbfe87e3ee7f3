"""Small helpers shared by the service modules."""

import re
from datetime import datetime, timezone
from typing import Optional

from postgrest.exceptions import APIError

UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a Postgres/ISO timestamp into an aware datetime (naive values are treated as UTC)."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim dashes at the edges."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ilike() can be used as a case-insensitive equality."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def pg_error_code(exc: Exception) -> Optional[str]:
    if isinstance(exc, APIError):
        return exc.code
    return None


def clamp_page_size(limit: int, default: int, maximum: int) -> int:
    if limit is None or limit < 1:
        return default
    return min(limit, maximum)


def sanitize_search(term: str) -> str:
    """Drop characters that would break a PostgREST or() filter."""
    return re.sub(r"[,()*\\]", " ", term or "").strip()
