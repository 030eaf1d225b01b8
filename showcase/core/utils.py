"""Small helpers shared by the managers."""

import re
import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from .exceptions import NotFoundError


def parse_uuid(value, what: str = "Resource") -> UUID:
    """Parse an id from a URL or body; malformed ids are treated as missing."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        raise NotFoundError(f"{what} not found")


def utcnow() -> datetime:
    """Naive UTC now, matching the TIMESTAMP columns."""
    return datetime.utcnow()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def slugify(title: str, max_length: int = 100) -> str:
    """Lower-case slug: runs of non-alphanumerics become '-'."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "prototype"


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def safe_compare(a: Optional[str], b: Optional[str]) -> bool:
    """Timing-safe string comparison; empty values never match."""
    if not a or not b:
        return False
    return secrets.compare_digest(str(a).encode("utf-8"), str(b).encode("utf-8"))


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None
