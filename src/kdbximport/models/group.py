"""Group model for imported folders, vaults and categories."""

from __future__ import annotations

import uuid as uuid_module
from collections.abc import Iterator
from dataclasses import dataclass, field

from .entry import Entry
from .times import Times

DEFAULT_GROUP_ICON = "48"
RECYCLE_BIN_ICON = "43"


@dataclass
class Group:
    """A group (folder) in an imported database.

    Groups organize entries into a hierarchical structure. Each group can
    contain entries and subgroups.

    Attributes:
        uuid: Unique identifier for the group
        name: Display name of the group
        notes: Optional notes/description
        times: Timestamps (creation, modification, access, expiry)
        icon_id: Standard icon ID for display
        icon_uuid: Custom icon registered in the database metadata
        entries: List of entries in this group
        subgroups: List of subgroups
    """

    uuid: uuid_module.UUID = field(default_factory=uuid_module.uuid4)
    name: str | None = None
    notes: str | None = None
    times: Times = field(default_factory=Times.create_new)
    icon_id: str = DEFAULT_GROUP_ICON
    icon_uuid: uuid_module.UUID | None = None
    entries: list[Entry] = field(default_factory=list)
    subgroups: list[Group] = field(default_factory=list)

    # Runtime reference to parent group
    _parent: Group | None = field(default=None, repr=False, compare=False)
    # Flag for root group
    _is_root: bool = field(default=False, repr=False)

    @property
    def parent(self) -> Group | None:
        """Get parent group, or None if this is the root."""
        return self._parent

    @property
    def is_root_group(self) -> bool:
        """Check if this is the database root group."""
        return self._is_root

    @property
    def path(self) -> list[str]:
        """Get path from root to this group.

        Returns:
            List of group names from root (exclusive) to this group (inclusive).
            Empty list for the root group.
        """
        if self.is_root_group or self._parent is None:
            return []
        parts: list[str] = []
        current: Group | None = self
        while current is not None and not current.is_root_group:
            if current.name is not None:
                parts.insert(0, current.name)
            current = current._parent
        return parts

    def is_empty(self) -> bool:
        """Check if this group holds no entries, directly or below."""
        if self.entries:
            return False
        return all(subgroup.is_empty() for subgroup in self.subgroups)

    # --- Entry management ---

    def add_entry(self, entry: Entry) -> Entry:
        """Add an entry to this group.

        Args:
            entry: Entry to add

        Returns:
            The added entry
        """
        if entry._parent is not None and entry._parent is not self:
            entry._parent.remove_entry(entry)
            entry.times.update_location()
        entry._parent = self
        self.entries.append(entry)
        return entry

    def remove_entry(self, entry: Entry) -> None:
        """Remove an entry from this group.

        Args:
            entry: Entry to remove

        Raises:
            ValueError: If entry is not in this group
        """
        if entry not in self.entries:
            raise ValueError("Entry not in this group")
        self.entries.remove(entry)
        entry._parent = None

    # --- Subgroup management ---

    def add_subgroup(self, group: Group) -> Group:
        """Add a subgroup to this group.

        Args:
            group: Group to add

        Returns:
            The added group
        """
        group._parent = self
        self.subgroups.append(group)
        return group

    def remove_subgroup(self, group: Group) -> None:
        """Remove a subgroup from this group.

        Args:
            group: Group to remove

        Raises:
            ValueError: If group is not a subgroup of this group
        """
        if group not in self.subgroups:
            raise ValueError("Group is not a subgroup")
        self.subgroups.remove(group)
        group._parent = None

    def create_subgroup(
        self,
        name: str,
        notes: str | None = None,
        icon_id: str = DEFAULT_GROUP_ICON,
    ) -> Group:
        """Create and add a new subgroup.

        Args:
            name: Group name
            notes: Optional notes
            icon_id: Icon ID

        Returns:
            Newly created group
        """
        group = Group(name=name, notes=notes, icon_id=icon_id)
        return self.add_subgroup(group)

    def child(self, name: str) -> Group | None:
        """Get the first direct subgroup with this name."""
        for subgroup in self.subgroups:
            if subgroup.name == name:
                return subgroup
        return None

    def prune_empty(self, keep: Group | None = None) -> None:
        """Remove empty subgroups at any depth.

        Args:
            keep: A group that survives even when empty (the recycle bin)
        """
        for subgroup in list(self.subgroups):
            if subgroup is keep:
                continue
            subgroup.prune_empty(keep)
            if not subgroup.entries and not subgroup.subgroups:
                self.remove_subgroup(subgroup)

    # --- Iteration and search ---

    def iter_entries(self, recursive: bool = True) -> Iterator[Entry]:
        """Iterate over entries in this group.

        Args:
            recursive: If True, include entries from all subgroups

        Yields:
            Entry objects
        """
        yield from self.entries
        if recursive:
            for subgroup in self.subgroups:
                yield from subgroup.iter_entries(recursive=True)

    def iter_groups(self, recursive: bool = True) -> Iterator[Group]:
        """Iterate over subgroups.

        Args:
            recursive: If True, include nested subgroups

        Yields:
            Group objects
        """
        for subgroup in self.subgroups:
            yield subgroup
            if recursive:
                yield from subgroup.iter_groups(recursive=True)

    def find_group_by_path(self, path: str) -> Group | None:
        """Resolve a '/'-delimited group path relative to this group.

        A leading slash is optional. When names repeat, the first match at
        each level wins.
        """
        current: Group | None = self
        for name in (part for part in path.split("/") if part):
            current = current.child(name)
            if current is None:
                return None
        return current

    def find_entry_by_path(self, path: str) -> Entry | None:
        """Resolve a '/'-delimited entry path such as "/Personal/Login".

        The last path component is the entry title; the rest name groups.
        A leading slash is optional and the first match wins.
        """
        parts = [part for part in path.split("/") if part]
        if not parts:
            return None
        group = self.find_group_by_path("/".join(parts[:-1]))
        if group is None:
            return None
        for entry in group.entries:
            if entry.title == parts[-1]:
                return entry
        return None

    def __str__(self) -> str:
        path_str = "/".join(self.path) if self.path else "(root)"
        return f'Group: "{path_str}"'

    def __hash__(self) -> int:
        return hash(self.uuid)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Group):
            return self.uuid == other.uuid
        return NotImplemented

    @classmethod
    def create_root(cls, name: str = "Root") -> Group:
        """Create a root group for a new database.

        Args:
            name: Name for the root group

        Returns:
            New root Group instance
        """
        group = cls(name=name)
        group._is_root = True
        return group
