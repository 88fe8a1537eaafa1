"""In-memory database produced by an import.

This module provides the canonical tree every reader fills:
- A root group with nested groups and entries
- Metadata with the recycle bin reference and custom icon registry
- Path-based lookup used by callers to inspect results
"""

from __future__ import annotations

import hashlib
import uuid as uuid_module
from collections.abc import Iterator
from dataclasses import dataclass, field

from .models import Entry, Group
from .models.group import RECYCLE_BIN_ICON

RECYCLE_BIN_NAME = "Recycle Bin"


@dataclass
class Metadata:
    """Database-level settings.

    Attributes:
        name: Name of the database
        recycle_bin_enabled: Whether deleted entries go to a recycle bin
        recycle_bin: The recycle bin group, once created
        custom_icons: Custom icon image data keyed by icon UUID
    """

    name: str = "Database"
    recycle_bin_enabled: bool = True
    recycle_bin: Group | None = field(default=None, repr=False)
    custom_icons: dict[uuid_module.UUID, bytes] = field(default_factory=dict)

    def add_custom_icon(self, data: bytes) -> uuid_module.UUID:
        """Register icon image data and return its UUID.

        Identical images share one UUID, derived from the image hash.
        """
        icon_uuid = uuid_module.UUID(bytes=hashlib.sha256(data).digest()[:16])
        self.custom_icons.setdefault(icon_uuid, data)
        return icon_uuid


class Database:
    """Result of converting a foreign export.

    Example usage:
        reader = BitwardenReader()
        db = reader.convert("bitwarden_export.json")
        if db is None:
            print(reader.error_string())
        else:
            entry = db.find_entry_by_path("/My Folder/Login Name")
    """

    def __init__(
        self,
        root_group: Group | None = None,
        metadata: Metadata | None = None,
    ) -> None:
        """Initialize database.

        Args:
            root_group: Root group containing all entries/groups
            metadata: Database metadata
        """
        self._root_group = root_group or Group.create_root()
        self._metadata = metadata or Metadata()

    @property
    def root_group(self) -> Group:
        """Get the root group of the database."""
        return self._root_group

    @property
    def metadata(self) -> Metadata:
        """Get database metadata."""
        return self._metadata

    def recycle_bin(self, create: bool = True) -> Group | None:
        """Get the recycle bin group.

        Args:
            create: Create the recycle bin if it doesn't exist yet

        Returns:
            The recycle bin, or None if it doesn't exist and create is False
        """
        if self._metadata.recycle_bin is None and create:
            recycle_bin = Group(name=RECYCLE_BIN_NAME, icon_id=RECYCLE_BIN_ICON)
            self._root_group.add_subgroup(recycle_bin)
            self._metadata.recycle_bin = recycle_bin
        return self._metadata.recycle_bin

    def recycle_entry(self, entry: Entry) -> bool:
        """Mark a deleted entry expired and move it into the recycle bin.

        Returns:
            False if the recycle bin is disabled; the caller then places
            the entry where it would otherwise go
        """
        entry.expire_now()
        if not self._metadata.recycle_bin_enabled:
            return False
        self.recycle_bin().add_entry(entry)
        return True

    def prune_empty_groups(self) -> None:
        """Remove empty groups, keeping the recycle bin."""
        self._root_group.prune_empty(keep=self._metadata.recycle_bin)

    # --- Search ---

    def find_entry_by_path(self, path: str) -> Entry | None:
        """Find an entry by its '/'-delimited path from the root."""
        return self._root_group.find_entry_by_path(path)

    def find_group_by_path(self, path: str) -> Group | None:
        """Find a group by its '/'-delimited path from the root."""
        return self._root_group.find_group_by_path(path)

    def iter_entries(self, recursive: bool = True) -> Iterator[Entry]:
        """Iterate over entries in the database.

        Args:
            recursive: If True, include entries from all subgroups

        Yields:
            Entry objects
        """
        yield from self._root_group.iter_entries(recursive=recursive)

    def iter_groups(self, recursive: bool = True) -> Iterator[Group]:
        """Iterate over groups in the database.

        Args:
            recursive: If True, include nested subgroups

        Yields:
            Group objects
        """
        yield from self._root_group.iter_groups(recursive=recursive)

    def __str__(self) -> str:
        entries = sum(1 for _ in self.iter_entries())
        groups = sum(1 for _ in self.iter_groups())
        return f'Database: "{self._metadata.name}" ({entries} entries, {groups} groups)'
