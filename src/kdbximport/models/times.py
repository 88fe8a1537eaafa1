"""Timestamps shared by entries and groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


@dataclass
class Times:
    """Creation, modification, access and expiry times.

    Attributes:
        creation_time: When the item was created
        last_modification_time: When the item was last changed
        last_access_time: When the item was last read
        expiry_time: When the item expires (only meaningful if expires)
        expires: Whether the item expires at all
        location_changed: When the item last moved between groups
    """

    creation_time: datetime = field(default_factory=_now)
    last_modification_time: datetime = field(default_factory=_now)
    last_access_time: datetime = field(default_factory=_now)
    expiry_time: datetime | None = None
    expires: bool = False
    location_changed: datetime | None = None

    @property
    def expired(self) -> bool:
        """Check if the expiry time has passed."""
        if not self.expires or self.expiry_time is None:
            return False
        return self.expiry_time <= datetime.now(UTC)

    def update_location(self) -> None:
        """Record that the item moved to another group."""
        self.location_changed = _now()

    def set_imported(
        self, created: datetime | None, modified: datetime | None
    ) -> None:
        """Apply timestamps read from a foreign export.

        Missing values keep their current defaults. The access time follows
        the modification time.
        """
        if created is not None:
            self.creation_time = created
        if modified is not None:
            self.last_modification_time = modified
            self.last_access_time = modified

    @classmethod
    def create_new(
        cls,
        expires: bool = False,
        expiry_time: datetime | None = None,
    ) -> Times:
        """Create timestamps for a new item."""
        now = _now()
        return cls(
            creation_time=now,
            last_modification_time=now,
            last_access_time=now,
            expiry_time=expiry_time,
            expires=expires,
            location_changed=now,
        )
