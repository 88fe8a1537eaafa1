"""Reader protocol and helpers shared by every format.

Each reader converts one export format into a Database. Readers don't
share a base class; they all satisfy the ImportReader protocol, which is
everything callers rely on.
"""

from __future__ import annotations

import errno
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from kdbximport.exceptions import FormatError, SourceError

if TYPE_CHECKING:
    from kdbximport.database import Database


@runtime_checkable
class ImportReader(Protocol):
    """Protocol for export readers.

    ``convert`` never raises for malformed input. On failure it returns
    None and ``has_error()`` / ``error_string()`` describe the cause.
    Only the last call's error is kept.

    Example:
        >>> reader = ProtonPassReader()
        >>> db = reader.convert("protonpass_export.json")
        >>> if db is None:
        ...     print(reader.error_string())
    """

    def convert(self, path: str | Path, password: str | None = None) -> Database | None:
        """Convert the export at ``path`` into a new Database.

        Args:
            path: Export file or directory
            password: Password for encrypted exports

        Returns:
            The converted database, or None on failure
        """
        ...

    def has_error(self) -> bool:
        """Check whether the last conversion failed."""
        ...

    def error_string(self) -> str:
        """Describe why the last conversion failed."""
        ...


def describe_os_error(error: OSError, path: str | Path) -> str:
    """Turn an OSError into a message for the user."""
    if isinstance(error, FileNotFoundError) or error.errno == errno.ENOENT:
        return f"File does not exist: {path}"
    if isinstance(error, PermissionError) or error.errno == errno.EACCES:
        return f"Permission denied: {path}"
    reason = error.strerror or str(error)
    return f"Unable to read {path}: {reason}"


def require_file(path: Path) -> None:
    """Raise SourceError unless ``path`` is an existing regular file."""
    if not path.exists():
        raise SourceError(f"File does not exist: {path}")
    if not path.is_file():
        raise SourceError(f"Not a file: {path}")


def parse_json_object(data: bytes | str, what: str) -> dict[str, Any]:
    """Parse a JSON document that must be an object.

    Args:
        data: JSON text
        what: Name used in error messages (e.g. "Bitwarden export")

    Raises:
        FormatError: If the text isn't JSON or the top level isn't an object
    """
    try:
        document = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise FormatError(f"Invalid {what}: not valid JSON ({e})") from None
    except RecursionError:
        raise FormatError(f"Invalid {what}: JSON nesting too deep") from None
    if not isinstance(document, dict):
        raise FormatError(f"Invalid {what}: expected a JSON object")
    return document


def read_json_file(path: Path, what: str) -> dict[str, Any]:
    """Read and parse a JSON file whose top level is an object."""
    require_file(path)
    return parse_json_object(path.read_bytes(), what)
