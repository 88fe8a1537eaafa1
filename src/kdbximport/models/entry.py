"""Entry model for imported password entries."""

from __future__ import annotations

import uuid as uuid_module
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Optional

from .times import Times
from .totp import TotpSettings

if TYPE_CHECKING:
    from .group import Group


TITLE_KEY = "Title"
USERNAME_KEY = "UserName"
PASSWORD_KEY = "Password"
URL_KEY = "URL"
NOTES_KEY = "Notes"

# Fields that have special handling and shouldn't be treated as custom properties
RESERVED_KEYS = frozenset({
    TITLE_KEY,
    USERNAME_KEY,
    PASSWORD_KEY,
    URL_KEY,
    NOTES_KEY,
})

# Prefix for additional URLs; the primary URL lives in the URL field
ADDITIONAL_URL_PREFIX = "KP2A_URL"
# Prefix for TOTP values that lost to an earlier one on the same entry
EXTRA_OTP_PREFIX = "otp"

KPEX_PASSKEY_USERNAME = "KPEX_PASSKEY_USERNAME"
KPEX_PASSKEY_CREDENTIAL_ID = "KPEX_PASSKEY_CREDENTIAL_ID"
KPEX_PASSKEY_PRIVATE_KEY_PEM = "KPEX_PASSKEY_PRIVATE_KEY_PEM"
KPEX_PASSKEY_RELYING_PARTY = "KPEX_PASSKEY_RELYING_PARTY"
KPEX_PASSKEY_USER_HANDLE = "KPEX_PASSKEY_USER_HANDLE"


@dataclass
class StringField:
    """A string field in an entry.

    Attributes:
        key: Field name (e.g., "Title", "UserName", "Password")
        value: Field value
        protected: Whether the field should be protected in memory
    """

    key: str
    value: Optional[str] = None
    protected: bool = False


@dataclass
class Entry:
    """A password entry produced by an import.

    Entries store credentials and associated metadata. Each entry has
    standard fields (title, username, password, url, notes) plus free-form
    attributes, binary attachments and optional TOTP settings.

    Attributes:
        uuid: Unique identifier for the entry
        times: Timestamps (creation, modification, access, expiry)
        icon_id: Icon ID for display
        tags: List of tags for categorization
        strings: Dictionary of string fields (key -> StringField)
        attachments: Attachment contents keyed by filename
        totp: TOTP settings, or None
    """

    uuid: uuid_module.UUID = field(default_factory=uuid_module.uuid4)
    times: Times = field(default_factory=Times.create_new)
    icon_id: str = "0"
    tags: list[str] = field(default_factory=list)
    strings: dict[str, StringField] = field(default_factory=dict)
    attachments: dict[str, bytes] = field(default_factory=dict)
    totp: Optional[TotpSettings] = None

    # Runtime reference to parent group
    _parent: Optional[Group] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Initialize default string fields if not present."""
        for key in (TITLE_KEY, USERNAME_KEY, PASSWORD_KEY, URL_KEY, NOTES_KEY):
            if key not in self.strings:
                protected = key == PASSWORD_KEY
                self.strings[key] = StringField(key=key, protected=protected)

    # --- Standard field properties ---

    def _get(self, key: str) -> str:
        field = self.strings.get(key)
        if field is None:
            return ""
        return field.value or ""

    def _set(self, key: str, value: Optional[str]) -> None:
        if key not in self.strings:
            self.strings[key] = StringField(key, protected=key == PASSWORD_KEY)
        self.strings[key].value = value

    @property
    def title(self) -> str:
        """Get or set entry title."""
        return self._get(TITLE_KEY)

    @title.setter
    def title(self, value: Optional[str]) -> None:
        self._set(TITLE_KEY, value)

    @property
    def username(self) -> str:
        """Get or set entry username."""
        return self._get(USERNAME_KEY)

    @username.setter
    def username(self, value: Optional[str]) -> None:
        self._set(USERNAME_KEY, value)

    @property
    def password(self) -> str:
        """Get or set entry password."""
        return self._get(PASSWORD_KEY)

    @password.setter
    def password(self, value: Optional[str]) -> None:
        self._set(PASSWORD_KEY, value)

    @property
    def url(self) -> str:
        """Get or set the primary URL."""
        return self._get(URL_KEY)

    @url.setter
    def url(self, value: Optional[str]) -> None:
        self._set(URL_KEY, value)

    @property
    def notes(self) -> str:
        """Get or set entry notes."""
        return self._get(NOTES_KEY)

    @notes.setter
    def notes(self, value: Optional[str]) -> None:
        self._set(NOTES_KEY, value)

    # --- Attributes ---

    def attribute(self, key: str) -> str:
        """Get an attribute value, or an empty string if it isn't set."""
        return self._get(key)

    def has_attribute(self, key: str) -> bool:
        """Check whether an attribute key exists."""
        return key in self.strings

    def is_protected(self, key: str) -> bool:
        """Check whether an attribute is flagged as protected."""
        field = self.strings.get(key)
        return field.protected if field else False

    def set_attribute(self, key: str, value: str, protected: bool = False) -> None:
        """Set an attribute, replacing any previous value and flag.

        Standard keys keep their default protection unless ``protected``
        is True.
        """
        if key in RESERVED_KEYS:
            self._set(key, value)
            if protected:
                self.strings[key].protected = True
            return
        self.strings[key] = StringField(key=key, value=value, protected=protected)

    def unique_attribute_key(self, key: str) -> str:
        """Return ``key`` or the first free ``key_<n>`` variant (n >= 1)."""
        if key not in self.strings:
            return key
        i = 1
        while f"{key}_{i}" in self.strings:
            i += 1
        return f"{key}_{i}"

    @property
    def custom_properties(self) -> dict[str, Optional[str]]:
        """Get all non-standard attributes as a dictionary."""
        return {
            k: v.value
            for k, v in self.strings.items()
            if k not in RESERVED_KEYS
        }

    def add_url(self, url: str) -> None:
        """Add a URL in source order.

        The first URL becomes the primary URL; later ones are stored as
        ``KP2A_URL_<n>``. Repeats of an existing URL are ignored.
        """
        if not url:
            return
        if not self.url:
            self.url = url
            return
        existing = {self.url}
        i = 1
        while f"{ADDITIONAL_URL_PREFIX}_{i}" in self.strings:
            existing.add(self.attribute(f"{ADDITIONAL_URL_PREFIX}_{i}"))
            i += 1
        if url not in existing:
            self.set_attribute(f"{ADDITIONAL_URL_PREFIX}_{i}", url)

    @property
    def additional_urls(self) -> list[str]:
        """Get the ``KP2A_URL_<n>`` values in index order."""
        urls = []
        i = 1
        while f"{ADDITIONAL_URL_PREFIX}_{i}" in self.strings:
            urls.append(self.attribute(f"{ADDITIONAL_URL_PREFIX}_{i}"))
            i += 1
        return urls

    # --- TOTP ---

    def has_totp(self) -> bool:
        """Check if TOTP settings are present."""
        return self.totp is not None

    def set_totp_first_wins(self, settings: Optional[TotpSettings], raw: str) -> bool:
        """Set TOTP unless the entry already has it.

        A value that can't become the entry's TOTP (because TOTP is already
        set, or because it carries no secret) is kept as a protected
        ``otp_<n>`` attribute so it is never lost.

        Args:
            settings: Parsed settings for ``raw``
            raw: The value as found in the export

        Returns:
            True if ``settings`` became the entry's TOTP
        """
        if self.totp is None and settings is not None and settings.key:
            self.totp = settings
            return True
        i = 1
        while f"{EXTRA_OTP_PREFIX}_{i}" in self.strings:
            i += 1
        self.set_attribute(f"{EXTRA_OTP_PREFIX}_{i}", raw, protected=True)
        return False

    # --- Tags, attachments and expiry ---

    def add_tag(self, tag: str) -> None:
        """Add a tag if it isn't already present."""
        tag = tag.strip()
        if tag and tag not in self.tags:
            self.tags.append(tag)

    def add_attachment(self, name: str, data: bytes) -> str:
        """Attach a file, renaming it if the name is taken.

        Returns:
            The filename the attachment was stored under
        """
        stored = name
        i = 1
        while stored in self.attachments:
            stem, dot, ext = name.rpartition(".")
            stored = f"{stem}_{i}.{ext}" if dot and stem else f"{name}_{i}"
            i += 1
        self.attachments[stored] = data
        return stored

    def set_expiry(self, expiry_time: datetime) -> None:
        """Make the entry expire at ``expiry_time``."""
        self.times.expires = True
        self.times.expiry_time = expiry_time

    def expire_now(self) -> None:
        """Mark the entry as already expired."""
        self.set_expiry(datetime.now(UTC).replace(microsecond=0) - timedelta(seconds=1))

    def is_expired(self) -> bool:
        """Check if entry has expired."""
        return self.times.expired

    # --- Convenience methods ---

    @property
    def parent(self) -> Optional[Group]:
        """Get parent group."""
        return self._parent

    def __str__(self) -> str:
        return f'Entry: "{self.title}" ({self.username})'

    def __hash__(self) -> int:
        return hash(self.uuid)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Entry):
            return self.uuid == other.uuid
        return NotImplemented

    @classmethod
    def create(
        cls,
        title: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        url: Optional[str] = None,
        notes: Optional[str] = None,
        tags: Optional[list[str]] = None,
        icon_id: str = "0",
    ) -> Entry:
        """Create a new entry with common fields.

        Args:
            title: Entry title
            username: Username
            password: Password
            url: URL
            notes: Notes
            tags: List of tags
            icon_id: Icon ID

        Returns:
            New Entry instance
        """
        entry = cls(icon_id=icon_id, tags=list(tags or []))
        entry.title = title
        entry.username = username
        entry.password = password
        entry.url = url
        entry.notes = notes
        return entry
