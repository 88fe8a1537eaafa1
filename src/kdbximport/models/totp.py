"""TOTP settings and their textual encodings.

Four encodings are recognised when reading exports:
- ``otpauth://totp/Label?secret=...&digits=...&period=...`` URIs
- KeeOtp style query strings: ``key=...&size=...&step=...``
- ``steam://<secret>`` values for Steam Guard codes
- Legacy ``step;digits`` strings, with the secret supplied separately
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, quote, urlsplit

DEFAULT_DIGITS = 6
DEFAULT_STEP = 30
DEFAULT_ALGORITHM = "SHA1"
STEAM_DIGITS = 5
STEAM_ENCODER = "steam"
STEAM_SHORTNAME = "S"
STEAM_PREFIX = "steam://"

_ALGORITHMS = {"SHA1", "SHA256", "SHA512"}


@dataclass
class TotpSettings:
    """Time-based one-time password settings.

    Attributes:
        key: Shared secret, usually base32
        digits: Number of code digits
        step: Time step in seconds
        algorithm: HMAC hash name
        encoder: Code alphabet ("" for decimal, "steam" for Steam Guard)
    """

    key: str = ""
    digits: int = DEFAULT_DIGITS
    step: int = DEFAULT_STEP
    algorithm: str = DEFAULT_ALGORITHM
    encoder: str = ""

    def __post_init__(self) -> None:
        self.digits = min(max(self.digits, 1), 10)
        self.step = min(max(self.step, 1), 86400)

    def to_uri(self, title: str | None = None, username: str | None = None) -> str:
        """Encode these settings as an otpauth:// URI."""
        label = quote(title or "", safe="")
        if username:
            label = f"{label}:{quote(username, safe='')}"
        uri = (
            f"otpauth://totp/{label}?secret={quote(self.key, safe='')}"
            f"&period={self.step}&digits={self.digits}"
        )
        if title:
            uri += f"&issuer={quote(title, safe='')}"
        if self.algorithm != DEFAULT_ALGORITHM:
            uri += f"&algorithm={self.algorithm}"
        if self.encoder:
            uri += f"&encoder={self.encoder}"
        return uri


def _first(query: dict[str, list[str]], name: str) -> str | None:
    values = query.get(name)
    return values[0] if values else None


def _to_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _normalize_key(key: str) -> str:
    return "".join(key.split())


def parse_settings(raw: str, key: str = "") -> TotpSettings:
    """Parse any supported TOTP encoding.

    Args:
        raw: otpauth URI, KeeOtp query string, ``steam://`` secret, or
            legacy ``step;digits``
        key: Secret to use when ``raw`` doesn't carry one

    Returns:
        Parsed settings; ``key`` is empty if no secret could be found
    """
    raw = raw.strip()
    settings = TotpSettings(key=_normalize_key(key))

    if raw.lower().startswith("otpauth://"):
        query = parse_qs(urlsplit(raw).query)
        settings.key = _normalize_key(_first(query, "secret") or settings.key)
        settings.digits = _to_int(_first(query, "digits"), DEFAULT_DIGITS)
        settings.step = _to_int(_first(query, "period"), DEFAULT_STEP)
        algorithm = (_first(query, "algorithm") or DEFAULT_ALGORITHM).upper()
        settings.algorithm = algorithm if algorithm in _ALGORITHMS else DEFAULT_ALGORITHM
        if (_first(query, "encoder") or "").lower() == STEAM_ENCODER:
            settings.encoder = STEAM_ENCODER
            settings.digits = STEAM_DIGITS
    elif raw.lower().startswith(STEAM_PREFIX):
        settings.key = _normalize_key(raw[len(STEAM_PREFIX):])
        settings.digits = STEAM_DIGITS
        settings.encoder = STEAM_ENCODER
    elif "key=" in raw:
        query = parse_qs(raw)
        settings.key = _normalize_key(_first(query, "key") or settings.key)
        settings.digits = _to_int(_first(query, "size"), DEFAULT_DIGITS)
        settings.step = _to_int(_first(query, "step"), DEFAULT_STEP)
        algorithm = (_first(query, "otpHashMode") or DEFAULT_ALGORITHM).upper()
        settings.algorithm = algorithm if algorithm in _ALGORITHMS else DEFAULT_ALGORITHM
    elif raw:
        parts = raw.split(";")
        if len(parts) >= 2:
            if parts[1] == STEAM_SHORTNAME:
                settings.digits = STEAM_DIGITS
                settings.encoder = STEAM_ENCODER
            else:
                settings.digits = _to_int(parts[1], DEFAULT_DIGITS)
        settings.step = _to_int(parts[0], DEFAULT_STEP)

    # Re-apply bounds after field assignment
    settings.__post_init__()
    return settings


def build_uri(title: str | None, username: str | None, secret: str) -> str:
    """Wrap a bare secret in an otpauth:// URI.

    Exports that store only the base32 secret are normalised through this
    so every TOTP value can be parsed the same way.
    """
    return (
        f"otpauth://totp/{quote(title or '', safe='')}:{quote(username or '', safe='')}"
        f"?secret={quote(secret, safe='')}"
    )


def ensure_uri(value: str, title: str | None, username: str | None) -> str:
    """Return ``value`` unchanged if it's a URI, otherwise convert it.

    KeeOtp query strings and ``steam://`` values keep their parameters;
    anything else is taken to be a bare secret.
    """
    lowered = value.lower()
    if lowered.startswith("otpauth://"):
        return value
    if "key=" in value or lowered.startswith(STEAM_PREFIX):
        return parse_settings(value).to_uri(title, username)
    return build_uri(title, username, value)
