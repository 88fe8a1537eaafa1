"""Reader configuration."""

from __future__ import annotations

from dataclasses import dataclass

# Maximum size for a single attachment (512 MiB)
# Prevents memory exhaustion from malicious exports
MAX_ATTACHMENT_SIZE = 512 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class ImportSettings:
    """Options shared by all readers.

    Attributes:
        favorite_tag: Tag added to entries marked as favorites
        archived_tag: Tag added to entries 1Password marks as archived
        max_attachment_size: Attachments larger than this are skipped
        enforce_kdf_limits: Reject KDF parameters that would exhaust
            memory or CPU
        use_recycle_bin: Move deleted items into a recycle bin group;
            when False they stay in place, marked expired
    """

    favorite_tag: str = "Favorite"
    archived_tag: str = "Archived"
    max_attachment_size: int = MAX_ATTACHMENT_SIZE
    enforce_kdf_limits: bool = True
    use_recycle_bin: bool = True

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.max_attachment_size < 0:
            raise ValueError("max_attachment_size must not be negative")

    @classmethod
    def default(cls) -> ImportSettings:
        """Create settings with the standard tag names and limits."""
        return cls()
