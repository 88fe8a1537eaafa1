"""1Password 1PUX export reader.

A 1PUX file is a ZIP archive holding:
- ``export.attributes``: JSON with the export format version
- ``export.data``: JSON with accounts → vaults → items
- ``files/``: attachments named ``<documentId>__<fileName>`` and vault
  avatars

The archive itself is not encrypted. Each vault becomes a group below the
root; archived items stay in their vault and get an "Archived" tag.
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from pathlib import Path
from typing import Any

from kdbximport.database import Database, Metadata
from kdbximport.exceptions import (
    CorruptedDataError,
    FormatError,
    KdbxImportError,
    UnsupportedFeatureError,
    UnsupportedVersionError,
)
from kdbximport.models import Entry, Group
from kdbximport.models.entry import PASSWORD_KEY, USERNAME_KEY

from .categories import category_name
from .mapping import (
    apply_totp,
    as_text,
    epoch_to_datetime,
    format_datetime,
    section_attribute_name,
    store_field,
)
from .reader import describe_os_error, parse_json_object, require_file
from .settings import ImportSettings

logger = logging.getLogger(__name__)

ROOT_GROUP_NAME = "1Password Import"
EXPORT_DATA = "export.data"
EXPORT_ATTRIBUTES = "export.attributes"
FILES_PREFIX = "files/"
MAX_SUPPORTED_VERSION = 3

# Section field kinds whose values are sensitive
PROTECTED_KINDS = frozenset({"concealed", "sshKey"})

# Login field designations mapped onto standard entry fields
LOGIN_DESIGNATIONS = {
    "username": USERNAME_KEY,
    "password": PASSWORD_KEY,
}


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


class OnePuxReader:
    """Reader for 1Password 1PUX exports.

    Example:
        >>> reader = OnePuxReader()
        >>> db = reader.convert("1PasswordExport.1pux")
        >>> db.find_entry_by_path("/Personal/Login").username
        'team@keepassxc.org'
    """

    def __init__(self, settings: ImportSettings | None = None) -> None:
        self._settings = settings or ImportSettings()
        self._error = ""

    def convert(self, path: str | Path, password: str | None = None) -> Database | None:
        """Convert a 1PUX file into a new Database.

        Args:
            path: Path to the .1pux file
            password: Ignored; 1PUX exports are not encrypted

        Returns:
            The converted database, or None on failure
        """
        self._error = ""
        path = Path(path)
        try:
            return self._convert(path)
        except KdbxImportError as e:
            self._error = str(e)
        except OSError as e:
            self._error = describe_os_error(e, path)
        logger.warning("1PUX import failed: %s", self._error)
        return None

    def has_error(self) -> bool:
        """Check whether the last conversion failed."""
        return bool(self._error)

    def error_string(self) -> str:
        """Describe why the last conversion failed."""
        return self._error

    # --- Container ---

    def _convert(self, path: Path) -> Database:
        require_file(path)
        try:
            archive = zipfile.ZipFile(path)
        except zipfile.BadZipFile:
            raise FormatError("Invalid 1PUX file format: Not a valid ZIP file") from None

        with archive:
            names = set(archive.namelist())
            if EXPORT_DATA not in names:
                raise FormatError("Invalid 1PUX file format: Missing export.data")
            if EXPORT_ATTRIBUTES in names:
                self._check_version(self._read_member(archive, EXPORT_ATTRIBUTES))

            document = parse_json_object(
                self._read_member(archive, EXPORT_DATA), "1PUX export.data"
            )
            accounts = document.get("accounts")
            if not isinstance(accounts, list):
                raise FormatError("Invalid 1PUX file format: 'accounts' must be a list")

            db = Database(
                root_group=Group.create_root(ROOT_GROUP_NAME),
                metadata=Metadata(name=path.stem),
            )
            for account in accounts:
                vaults = _as_dict(account).get("vaults")
                if not isinstance(vaults, list):
                    raise FormatError("Invalid 1PUX file format: 'vaults' must be a list")
                for vault in vaults:
                    self._write_vault(db, vault, archive, names)

        db.prune_empty_groups()
        logger.debug("Imported %d entries from 1PUX", sum(1 for _ in db.iter_entries()))
        return db

    def _check_version(self, data: bytes) -> None:
        attributes = parse_json_object(data, "1PUX export.attributes")
        version = attributes.get("version")
        if version is None:
            return
        if isinstance(version, bool) or not isinstance(version, int):
            raise FormatError("Invalid 1PUX file format: export version must be an integer")
        if version > MAX_SUPPORTED_VERSION:
            raise UnsupportedVersionError("1PUX", version)

    def _read_member(self, archive: zipfile.ZipFile, name: str) -> bytes:
        try:
            return archive.read(name)
        except (zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise CorruptedDataError(f"Corrupted 1PUX archive member {name}: {e}") from None
        except (RuntimeError, NotImplementedError) as e:
            # Encrypted members or compression methods zipfile can't read
            raise UnsupportedFeatureError(f"Password-protected or unsupported 1PUX archive: {e}") from None

    # --- Vaults and items ---

    def _write_vault(
        self,
        db: Database,
        vault: Any,
        archive: zipfile.ZipFile,
        names: set[str],
    ) -> None:
        if not isinstance(vault, dict) or "attrs" not in vault or "items" not in vault:
            logger.warning("Skipping 1PUX vault without attrs or items")
            return

        attrs = _as_dict(vault["attrs"])
        group = db.root_group.create_subgroup(
            as_text(attrs.get("name")),
            notes=as_text(attrs.get("desc")) or None,
        )

        for raw_item in _as_list(vault["items"]):
            item = _as_dict(raw_item)
            # Older exports wrap each item in {"item": {...}}
            if isinstance(item.get("item"), dict):
                item = item["item"]
            if not item:
                logger.warning("Skipping malformed 1PUX item in vault %r", group.name)
                continue
            group.add_entry(self._read_item(item, archive, names))

        avatar = as_text(attrs.get("avatar"))
        if avatar and f"{FILES_PREFIX}{avatar}" in names:
            try:
                icon = self._read_member(archive, f"{FILES_PREFIX}{avatar}")
            except CorruptedDataError as e:
                logger.warning("Skipping vault icon: %s", e)
            else:
                group.icon_uuid = db.metadata.add_custom_icon(icon)

    def _read_item(
        self,
        item: dict[str, Any],
        archive: zipfile.ZipFile,
        names: set[str],
    ) -> Entry:
        overview = _as_dict(item.get("overview"))
        details = _as_dict(item.get("details"))

        entry = Entry()
        entry.title = as_text(overview.get("title"))
        entry.add_url(as_text(overview.get("url")))
        for url in _as_list(overview.get("urls")):
            entry.add_url(as_text(_as_dict(url).get("url")))

        for tag in _as_list(overview.get("tags")):
            if isinstance(tag, str):
                entry.add_tag(tag)
        fav_index = item.get("favIndex")
        if fav_index and not isinstance(fav_index, bool):
            entry.add_tag(self._settings.favorite_tag)
        if item.get("state") == "archived":
            entry.add_tag(self._settings.archived_tag)

        # Username and password first so TOTP labels can use them
        for field in _as_list(details.get("loginFields")):
            field = _as_dict(field)
            target = LOGIN_DESIGNATIONS.get(as_text(field.get("designation")).lower())
            if target is not None:
                entry.set_attribute(target, as_text(field.get("value")))
        if not entry.password:
            # Password items (category 005) keep the secret at the top level
            entry.password = as_text(details.get("password"))
        entry.notes = as_text(details.get("notesPlain"))

        category = category_name(as_text(item.get("categoryUuid")))
        for section in _as_list(details.get("sections")):
            self._read_section(entry, _as_dict(section), category, archive, names)

        document = _as_dict(details.get("documentAttributes"))
        if document:
            self._attach(
                entry,
                archive,
                names,
                as_text(document.get("documentId")),
                as_text(document.get("fileName")),
            )

        entry.times.set_imported(
            epoch_to_datetime(item.get("createdAt")),
            epoch_to_datetime(item.get("updatedAt")),
        )
        return entry

    def _read_section(
        self,
        entry: Entry,
        section: dict[str, Any],
        category: str | None,
        archive: zipfile.ZipFile,
        names: set[str],
    ) -> None:
        prefix = as_text(section.get("title"))
        if not prefix:
            prefix = f"{category} Fields" if category else as_text(section.get("name"))

        for field in _as_list(section.get("fields")):
            field = _as_dict(field)
            value = _as_dict(field.get("value"))
            if not value:
                continue
            name = as_text(field.get("title")) or as_text(field.get("id"))
            attr_name = section_attribute_name(prefix, name)
            kind, raw = next(iter(value.items()))

            if kind == "totp":
                apply_totp(entry, as_text(raw))
            elif kind == "file":
                file_info = _as_dict(raw)
                self._attach(
                    entry,
                    archive,
                    names,
                    as_text(file_info.get("documentId")),
                    as_text(file_info.get("fileName")),
                )
            else:
                text = self._field_text(kind, raw)
                if text:
                    store_field(entry, attr_name, text, kind in PROTECTED_KINDS)

    @staticmethod
    def _field_text(kind: str, raw: Any) -> str:
        if kind == "date":
            date = epoch_to_datetime(raw)
            return format_datetime(date) if date else ""
        if kind == "email":
            return as_text(_as_dict(raw).get("email_address")) if isinstance(raw, dict) else as_text(raw)
        if kind == "address":
            address = _as_dict(raw)
            if not address:
                return as_text(raw)
            return (
                f"{as_text(address.get('street'))}\n"
                f"{as_text(address.get('city'))}, {as_text(address.get('state'))} "
                f"{as_text(address.get('zip'))}\n"
                f"{as_text(address.get('country'))}"
            )
        if kind == "sshKey":
            return as_text(_as_dict(raw).get("privateKey")) if isinstance(raw, dict) else as_text(raw)
        return as_text(raw)

    def _attach(
        self,
        entry: Entry,
        archive: zipfile.ZipFile,
        names: set[str],
        document_id: str,
        file_name: str,
    ) -> None:
        member = f"{FILES_PREFIX}{document_id}__{file_name}"
        if not document_id or not file_name or member not in names:
            logger.warning("Attachment %r of %r is missing from the archive", file_name, entry.title)
            return
        size = archive.getinfo(member).file_size
        if size > self._settings.max_attachment_size:
            logger.warning("Skipping attachment %r of %r: %d bytes is too large", file_name, entry.title, size)
            return
        try:
            entry.add_attachment(file_name, self._read_member(archive, member))
        except CorruptedDataError as e:
            logger.warning("Skipping attachment %r of %r: %s", file_name, entry.title, e)
