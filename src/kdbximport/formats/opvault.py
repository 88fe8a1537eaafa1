"""1Password OPVault directory reader.

OPVault layout (one profile, ``default``):
    <name>.opvault/default/profile.js     var profile={...};
    <name>.opvault/default/folders.js     loadFolders({...});
    <name>.opvault/default/band_[0-F].js  ld({...});
    <name>.opvault/default/<item>_<id>.attachment

Key hierarchy:
1. PBKDF2-HMAC-SHA512(password, salt, iterations) → 64 bytes,
   split into an encryption key and an HMAC key
2. profile ``masterKey`` / ``overviewKey`` are opdata01 envelopes under
   those keys; SHA-512 of each plaintext gives an (enc, mac) key pair
3. each band item's ``k`` holds its own item keys, wrapped by the
   master keys; ``o`` is the overview (overview keys) and ``d`` the
   details (item keys)

Every category with items becomes a top-level group. Trashed items go to
the recycle bin (unless disabled in the settings) and are marked expired.
"""

from __future__ import annotations

import base64
import binascii
import logging
import struct
import uuid as uuid_module
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from kdbximport.database import Database, Metadata
from kdbximport.exceptions import (
    CorruptedDataError,
    CryptoError,
    DecryptionError,
    FormatError,
    KdbxImportError,
    MissingCredentialsError,
    SourceError,
    UnsupportedVersionError,
)
from kdbximport.models import Entry, Group
from kdbximport.models.entry import PASSWORD_KEY, URL_KEY, USERNAME_KEY
from kdbximport.security import (
    KdfType,
    Pbkdf2Config,
    SecureBytes,
    decrypt_opdata01,
    derive_key_pbkdf2,
    split_key_pair,
    unwrap_item_key,
)

from .categories import Category
from .mapping import (
    apply_totp,
    as_text,
    epoch_to_datetime,
    format_datetime,
    store_field,
)
from .reader import describe_os_error, parse_json_object
from .settings import ImportSettings

logger = logging.getLogger(__name__)

ROOT_GROUP_NAME = "OPVault Root Group"
PROFILE_DIR = "default"
BAND_CHARS = "0123456789ABCDEF"
ATTACHMENT_MAGIC = b"OPCLDAT"
ATTACHMENT_VERSION = 1
ATTACHMENT_HEADER_SIZE = 16

# Band entry keys without which an item can't be decrypted
REQUIRED_ITEM_KEYS = ("d", "k", "hmac")

# Section field kinds whose values are sensitive
PROTECTED_KINDS = frozenset({"concealed", "pin"})


@dataclass(frozen=True, slots=True)
class CoreFieldAlias:
    """Field names that map an unsectioned field onto a standard key."""

    target: str
    names: frozenset[str]
    texts: frozenset[str]


CORE_FIELD_ALIASES = (
    CoreFieldAlias(PASSWORD_KEY, frozenset({"password"}), frozenset({"password"})),
    CoreFieldAlias(USERNAME_KEY, frozenset({"username"}), frozenset({"username"})),
    CoreFieldAlias(URL_KEY, frozenset({"url", "hostname", "website"}), frozenset({"url", "server"})),
)


@dataclass
class _VaultKeys:
    """Decrypted profile keys, zeroized when the conversion ends."""

    master_enc: SecureBytes
    master_mac: SecureBytes
    overview_enc: SecureBytes
    overview_mac: SecureBytes

    def zeroize(self) -> None:
        for key in (self.master_enc, self.master_mac, self.overview_enc, self.overview_mac):
            key.zeroize()


def _b64decode(value: Any, what: str) -> bytes:
    if not isinstance(value, str) or not value:
        raise FormatError(f"Invalid OPVault: {what} must be a base64 string")
    try:
        return base64.b64decode(value)
    except (binascii.Error, ValueError):
        raise FormatError(f"Invalid OPVault: {what} is not valid base64") from None


def _read_js_object(path: Path, prefix: str, suffix: str, what: str) -> dict[str, Any]:
    """Read a JSON object wrapped in JavaScript, e.g. ``ld({...});``."""
    if not path.is_file():
        raise FormatError(f"Invalid OPVault: missing {path.name}")
    try:
        text = path.read_text(encoding="utf-8").strip()
    except UnicodeDecodeError:
        raise FormatError(f"Invalid OPVault: {path.name} is not UTF-8 text") from None
    if not text.startswith(prefix) or not text.endswith(suffix):
        raise FormatError(f"Invalid OPVault: {path.name} doesn't have the expected {prefix!r} wrapper")
    return parse_json_object(text[len(prefix):len(text) - len(suffix)], what)


def resolve_attribute_name(section: str, name: str, text: str) -> str:
    """Name the attribute a section field is stored under.

    Fields outside a titled section (and address fields) may be one of the
    standard fields; everything else is namespaced by its section title.
    """
    if name.startswith("TOTP_"):
        return name
    if not section or name.startswith("address"):
        low_name = name.lower()
        low_text = text.lower()
        for alias in CORE_FIELD_ALIASES:
            if low_name in alias.names or low_text in alias.texts:
                return alias.target
        return text
    return f"{section}_{text}"


def _parse_expiry(kind: str, raw: Any) -> datetime | None:
    if kind == "date":
        return epoch_to_datetime(raw)
    try:
        return datetime.strptime(as_text(raw), "%Y%m").replace(tzinfo=UTC)
    except ValueError:
        return None


class OpVaultReader:
    """Reader for 1Password OPVault directories.

    Example:
        >>> reader = OpVaultReader()
        >>> db = reader.convert("keepassxc.opvault", "a")
        >>> db.find_entry_by_path("/Login/KeePassXC").password
        'opvault'
    """

    def __init__(self, settings: ImportSettings | None = None) -> None:
        self._settings = settings or ImportSettings()
        self._error = ""

    def convert(self, path: str | Path, password: str | None = None) -> Database | None:
        """Convert an OPVault directory into a new Database.

        Args:
            path: Path to the .opvault directory
            password: Vault master password

        Returns:
            The converted database, or None on failure
        """
        self._error = ""
        path = Path(path)
        try:
            return self._convert(path, password)
        except KdbxImportError as e:
            self._error = str(e)
        except OSError as e:
            self._error = describe_os_error(e, path)
        logger.warning("OPVault import failed: %s", self._error)
        return None

    def has_error(self) -> bool:
        """Check whether the last conversion failed."""
        return bool(self._error)

    def error_string(self) -> str:
        """Describe why the last conversion failed."""
        return self._error

    # --- Container ---

    def _convert(self, path: Path, password: str | None) -> Database:
        if password is None:
            raise MissingCredentialsError("OPVault")
        if not path.exists():
            raise SourceError(f"Directory does not exist: {path}")
        if not path.is_dir():
            raise SourceError(f"Not an .opvault directory: {path}")
        profile_dir = path / PROFILE_DIR
        if not profile_dir.is_dir():
            raise FormatError(f"Invalid OPVault: missing '{PROFILE_DIR}' profile directory")

        profile = _read_js_object(profile_dir / "profile.js", "var profile=", ";", "OPVault profile")
        keys = self._unlock_profile(profile, password)
        try:
            root = Group.create_root(ROOT_GROUP_NAME)
            try:
                root.uuid = uuid_module.UUID(as_text(profile.get("uuid")))
            except ValueError:
                pass  # keep the random root UUID
            metadata = Metadata(name=path.name, recycle_bin_enabled=self._settings.use_recycle_bin)
            db = Database(root_group=root, metadata=metadata)

            groups = {category: root.create_subgroup(category.display_name) for category in Category}
            folders = self._read_folders(profile_dir, keys)

            has_bands = False
            for band_char in BAND_CHARS:
                band_path = profile_dir / f"band_{band_char}.js"
                if not band_path.exists():
                    continue
                has_bands = True
                band = _read_js_object(band_path, "ld(", ");", f"OPVault band {band_char}")
                for key, band_entry in band.items():
                    self._process_band_entry(db, groups, folders, profile_dir, keys, key, band_entry)
            if not has_bands:
                logger.warning("No bands were found in %s", profile_dir)
        finally:
            keys.zeroize()

        db.prune_empty_groups()
        logger.debug("Imported %d entries from OPVault", sum(1 for _ in db.iter_entries()))
        return db

    def _unlock_profile(self, profile: dict[str, Any], password: str) -> _VaultKeys:
        salt = _b64decode(profile.get("salt"), "profile salt")
        iterations = profile.get("iterations")
        if isinstance(iterations, bool) or not isinstance(iterations, int):
            raise FormatError("Invalid OPVault: profile iterations must be an integer")

        config = Pbkdf2Config(
            iterations=iterations,
            salt=salt,
            variant=KdfType.PBKDF2_SHA512,
            key_length=64,
        )
        derived = derive_key_pbkdf2(
            password.encode("utf-8"),
            config,
            enforce_limits=self._settings.enforce_kdf_limits,
        )
        with derived:
            enc_key = derived.data[:32]
            mac_key = derived.data[32:]
            master_enc, master_mac = self._decrypt_profile_key(profile, "masterKey", enc_key, mac_key)
            overview_enc, overview_mac = self._decrypt_profile_key(profile, "overviewKey", enc_key, mac_key)
        return _VaultKeys(master_enc, master_mac, overview_enc, overview_mac)

    def _decrypt_profile_key(
        self, profile: dict[str, Any], name: str, enc_key: bytes, mac_key: bytes
    ) -> tuple[SecureBytes, SecureBytes]:
        blob = _b64decode(profile.get(name), f"profile {name}")
        try:
            material = decrypt_opdata01(blob, enc_key, mac_key)
        except CryptoError:
            raise DecryptionError(
                f"Unable to decrypt the OPVault {name}: wrong password or corrupted profile"
            ) from None
        return split_key_pair(material)

    def _decrypt_json(self, value: Any, enc_key: bytes, mac_key: bytes, what: str) -> dict[str, Any]:
        plaintext = decrypt_opdata01(_b64decode(value, what), enc_key, mac_key)
        return parse_json_object(plaintext, f"OPVault {what}")

    def _read_folders(self, profile_dir: Path, keys: _VaultKeys) -> dict[str, str]:
        folders_path = profile_dir / "folders.js"
        if not folders_path.exists():
            return {}
        try:
            folders = _read_js_object(folders_path, "loadFolders(", ");", "OPVault folders")
        except FormatError as e:
            logger.warning("Ignoring folders: %s", e)
            return {}

        names: dict[str, str] = {}
        for folder_uuid, folder in folders.items():
            if not isinstance(folder, dict) or folder.get("smart"):
                continue
            try:
                overview = self._decrypt_json(
                    folder.get("overview"), keys.overview_enc.data, keys.overview_mac.data, "folder overview"
                )
            except (CryptoError, FormatError) as e:
                logger.warning("Skipping folder %s: %s", folder_uuid, e)
                continue
            title = as_text(overview.get("title"))
            if title:
                names[folder_uuid] = title
        return names

    # --- Items ---

    def _process_band_entry(
        self,
        db: Database,
        groups: dict[Category, Group],
        folders: dict[str, str],
        profile_dir: Path,
        keys: _VaultKeys,
        key: str,
        band_entry: Any,
    ) -> None:
        if not isinstance(band_entry, dict):
            logger.warning("Skipping malformed band entry %s", key)
            return
        item_uuid = as_text(band_entry.get("uuid"))
        if key != item_uuid:
            logger.warning("Mismatched entry UUID: key %s, uuid %s", key, item_uuid)
        try:
            entry_uuid = uuid_module.UUID(item_uuid)
        except ValueError:
            logger.warning("Skipping entry with invalid UUID %r", item_uuid)
            return
        missing = [name for name in REQUIRED_ITEM_KEYS if name not in band_entry]
        if missing:
            logger.warning("Skipping malformed entry %s without keys %s", item_uuid, ", ".join(missing))
            return

        entry = Entry(uuid=entry_uuid)
        if "o" in band_entry:
            try:
                overview = self._decrypt_json(
                    band_entry["o"], keys.overview_enc.data, keys.overview_mac.data, "item overview"
                )
            except (CryptoError, FormatError) as e:
                logger.warning("Skipping entry %s: %s", item_uuid, e)
                return
            self._fill_from_overview(entry, overview)

        if "fave" in band_entry:
            entry.add_tag(self._settings.favorite_tag)
        folder_name = folders.get(as_text(band_entry.get("folder")))
        if folder_name:
            entry.add_tag(folder_name)

        try:
            item_enc, item_mac = unwrap_item_key(
                _b64decode(band_entry["k"], "item key"), keys.master_enc.data, keys.master_mac.data
            )
            with item_enc, item_mac:
                details = self._decrypt_json(band_entry["d"], item_enc.data, item_mac.data, "item details")
                self._fill_from_details(entry, details)
                self._read_attachments(entry, profile_dir, item_uuid, item_enc.data, item_mac.data, keys)
        except (CryptoError, FormatError) as e:
            logger.warning("Unable to decrypt details of entry %s: %s", item_uuid, e)

        entry.times.set_imported(
            epoch_to_datetime(band_entry.get("created")),
            epoch_to_datetime(band_entry.get("updated")),
        )

        if band_entry.get("trashed") and db.recycle_entry(entry):
            return
        category = Category.from_uuid(as_text(band_entry.get("category")))
        if category is None:
            logger.warning("Unknown category %r for entry %s", band_entry.get("category"), item_uuid)
            db.root_group.add_entry(entry)
        else:
            groups[category].add_entry(entry)

    def _fill_from_overview(self, entry: Entry, overview: dict[str, Any]) -> None:
        entry.title = as_text(overview.get("title"))
        entry.add_url(as_text(overview.get("url")))
        urls = overview.get("URLs")
        for url in urls if isinstance(urls, list) else []:
            if isinstance(url, dict):
                entry.add_url(as_text(url.get("u")))
        tags = overview.get("tags")
        for tag in tags if isinstance(tags, list) else []:
            if isinstance(tag, str):
                entry.add_tag(tag)

    def _fill_from_details(self, entry: Entry, details: dict[str, Any]) -> None:
        entry.notes = as_text(details.get("notesPlain"))
        password = as_text(details.get("password"))
        if password:
            entry.password = password

        fields = details.get("fields")
        for field in fields if isinstance(fields, list) else []:
            if not isinstance(field, dict):
                continue
            designation = as_text(field.get("designation")).lower()
            value = as_text(field.get("value"))
            if designation == "username":
                entry.username = value
            elif designation == "password":
                entry.password = value
            else:
                name = as_text(field.get("name"))
                if name and value:
                    store_field(entry, name, value, as_text(field.get("type")) == "P")

        sections = details.get("sections")
        for section in sections if isinstance(sections, list) else []:
            if isinstance(section, dict):
                self.fill_from_section(entry, section)

    def fill_from_section(self, entry: Entry, section: dict[str, Any]) -> None:
        """Copy every field of an item section onto ``entry``."""
        title = as_text(section.get("title"))
        fields = section.get("fields")
        if fields is None:
            if as_text(section.get("name")):
                logger.debug("Skipping section %r without fields in %s", section.get("name"), entry.uuid)
            return
        if not isinstance(fields, list):
            logger.warning("Skipping section %r: fields is not a list", title)
            return
        for field in fields:
            if not isinstance(field, dict):
                logger.warning("Skipping malformed field in section %r", title)
                continue
            self.fill_from_section_field(entry, title, field)

    def fill_from_section_field(self, entry: Entry, section_name: str, field: dict[str, Any]) -> None:
        """Copy one section field onto ``entry``.

        ``TOTP_*`` fields set the entry's TOTP (first one wins; later ones
        become ``otp_<n>``). Fields named ``expir*`` set the expiry time.
        Address fields expand into one attribute per address part.

        Args:
            entry: Entry to update
            section_name: Title of the enclosing section ("" for none)
            field: Section field with keys "n" (name), "t" (title),
                "k" (kind) and "v" (value)
        """
        if "v" not in field:
            return
        name = as_text(field.get("n"))
        text = as_text(field.get("t")) or name
        kind = as_text(field.get("k"))
        raw = field["v"]
        attr_name = resolve_attribute_name(section_name, name, text)

        if attr_name.startswith("TOTP_"):
            apply_totp(entry, as_text(raw))
            return

        if kind == "address" and isinstance(raw, dict):
            for part, part_value in raw.items():
                part_text = as_text(part_value)
                if part_text:
                    store_field(entry, f"{attr_name}_{part}", part_text)
            return

        value = as_text(raw)
        if kind == "date":
            date = epoch_to_datetime(raw)
            if date is not None:
                value = format_datetime(date)
        if attr_name.lower().startswith("expir"):
            expiry = _parse_expiry(kind, raw)
            if expiry is not None:
                entry.set_expiry(expiry)
        if not value:
            return

        if attr_name == URL_KEY:
            entry.add_url(value)
        elif attr_name in (USERNAME_KEY, PASSWORD_KEY):
            entry.set_attribute(attr_name, value)
        else:
            store_field(entry, attr_name, value, kind in PROTECTED_KINDS)

    # --- Attachments ---

    def _read_attachments(
        self,
        entry: Entry,
        profile_dir: Path,
        item_uuid: str,
        item_enc: bytes,
        item_mac: bytes,
        keys: _VaultKeys,
    ) -> None:
        for path in sorted(profile_dir.glob(f"{item_uuid}_*.attachment")):
            try:
                if path.stat().st_size > self._settings.max_attachment_size:
                    logger.warning("Skipping attachment %s: file is too large", path.name)
                    continue
                name, contents = self._read_attachment(path.read_bytes(), path.name, item_enc, item_mac, keys)
            except (OSError, KdbxImportError) as e:
                logger.warning("Skipping attachment %s: %s", path.name, e)
                continue
            entry.add_attachment(name, contents)

    def _read_attachment(
        self,
        data: bytes,
        default_name: str,
        item_enc: bytes,
        item_mac: bytes,
        keys: _VaultKeys,
    ) -> tuple[str, bytes]:
        """Parse an ``OPCLDAT`` attachment file.

        Layout: magic(7) version(1) metadata size(u16) reserved(u16)
        icon size(u32), metadata JSON, encrypted icon, opdata01 contents.
        """
        if len(data) < ATTACHMENT_HEADER_SIZE or not data.startswith(ATTACHMENT_MAGIC):
            raise CorruptedDataError("Invalid attachment header")
        version = data[len(ATTACHMENT_MAGIC)]
        if version != ATTACHMENT_VERSION:
            raise UnsupportedVersionError("OPVault attachment", version)
        metadata_size, _reserved, icon_size = struct.unpack_from("<HHI", data, 8)
        offset = ATTACHMENT_HEADER_SIZE
        metadata = parse_json_object(data[offset:offset + metadata_size], "OPVault attachment metadata")
        offset += metadata_size + icon_size
        if offset >= len(data):
            raise CorruptedDataError("Truncated attachment")

        contents = decrypt_opdata01(data[offset:], item_enc, item_mac)
        name = default_name
        if "overview" in metadata:
            overview = self._decrypt_json(
                metadata["overview"], keys.overview_enc.data, keys.overview_mac.data, "attachment overview"
            )
            name = as_text(overview.get("filename")) or default_name
        return name, contents
