"""Declarative field mapping shared by the readers.

Each reader describes the fixed fields of a category as a tuple of
FieldMapping rows and hands them to apply_field_map(). Free-form fields
(sections, custom fields) go through store_field(), and anything carrying
a TOTP secret goes through apply_totp() so the first TOTP on an entry
always wins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from kdbximport.models import Entry
from kdbximport.models.totp import ensure_uri, parse_settings

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """One row of a field map.

    Attributes:
        source: Key in the foreign record
        target: Attribute key on the entry (may be a standard key)
        protected: Whether the attribute is sensitive
    """

    source: str
    target: str
    protected: bool = False


def as_text(value: Any) -> str:
    """Render a JSON scalar the way it appears in the export UI.

    None becomes an empty string, booleans become "true"/"false" and
    integral floats lose their fraction. Strings are returned verbatim.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def apply_field_map(
    entry: Entry,
    record: Mapping[str, Any],
    mappings: Iterable[FieldMapping],
) -> None:
    """Copy the non-empty mapped values of ``record`` onto ``entry``."""
    for mapping in mappings:
        value = as_text(record.get(mapping.source))
        if value:
            entry.set_attribute(mapping.target, value, protected=mapping.protected)


def section_attribute_name(section: str, name: str) -> str:
    """Namespace a field name with its section title."""
    return f"{section}_{name}" if section else name


def apply_totp(entry: Entry, value: str) -> bool:
    """Offer a TOTP value (URI, KeeOtp string or bare secret) to the entry.

    The first TOTP wins; later ones are kept as ``otp_<n>`` attributes.

    Returns:
        True if the value became the entry's TOTP
    """
    value = value.strip()
    if not value:
        return False
    uri = ensure_uri(value, entry.title, entry.username)
    return entry.set_totp_first_wins(parse_settings(uri), value)


def store_field(entry: Entry, name: str, value: str, protected: bool = False) -> str:
    """Store a free-form field without overwriting an existing attribute.

    A value that is an otpauth:// URI is also offered as the entry's TOTP;
    if the entry already has one, the URI is kept as an ``otp_<n>`` attribute.

    Returns:
        The attribute key the value was stored under
    """
    key = entry.unique_attribute_key(name)
    entry.set_attribute(key, value, protected=protected)
    if value.lower().startswith("otpauth://"):
        settings = parse_settings(value)
        if settings.key:
            entry.set_totp_first_wins(settings, value)
    return key


def epoch_to_datetime(value: Any) -> datetime | None:
    """Convert Unix seconds to an aware datetime, or None if unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        seconds = int(value)
        if seconds <= 0:
            return None
        return datetime.fromtimestamp(seconds, UTC)
    except (ValueError, OverflowError, OSError):
        return None


def parse_iso_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp such as "2024-01-02T03:04:05.678Z"."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_datetime(value: datetime) -> str:
    """Format a timestamp for storage in a text attribute."""
    return value.astimezone(UTC).strftime(TIME_FORMAT)
