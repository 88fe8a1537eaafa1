"""Proton Pass JSON export reader.

Export layout::

    {
        "encrypted": false,
        "vaults": {
            "<share id>": {
                "name": "Personal",
                "description": "...",
                "items": [{"data": {"metadata": {...}, "type": "login",
                           "content": {...}, "extraFields": [...]},
                           "state": 1, "pinned": false, ...}]
            }
        }
    }

Each vault becomes a group. Trashed items (state 2) stay in their vault
and are marked expired. PGP-encrypted exports are not supported.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from kdbximport.database import Database, Metadata
from kdbximport.exceptions import (
    FormatError,
    KdbxImportError,
    UnsupportedFeatureError,
)
from kdbximport.models import Entry, Group
from kdbximport.models.entry import PASSWORD_KEY, USERNAME_KEY

from .mapping import (
    FieldMapping,
    apply_field_map,
    apply_totp,
    as_text,
    epoch_to_datetime,
    section_attribute_name,
    store_field,
)
from .reader import describe_os_error, read_json_file
from .settings import ImportSettings

logger = logging.getLogger(__name__)

ROOT_GROUP_NAME = "Proton Pass Import"
STATE_TRASHED = 2

LOGIN_FIELDS = (
    FieldMapping("itemUsername", USERNAME_KEY),
    FieldMapping("password", PASSWORD_KEY),
    FieldMapping("itemEmail", "login_email"),
)

CARD_FIELDS = (
    FieldMapping("number", USERNAME_KEY),
    FieldMapping("verificationNumber", PASSWORD_KEY),
    FieldMapping("cardholderName", "card_cardholderName"),
    FieldMapping("pin", "card_pin", protected=True),
    FieldMapping("expirationDate", "card_expirationDate"),
)

IDENTITY_FIELDS = tuple(
    FieldMapping(source, f"identity_{source}", protected=source in {
        "socialSecurityNumber", "passportNumber", "licenseNumber",
    })
    for source in (
        "fullName", "firstName", "middleName", "lastName", "birthdate", "gender",
        "email", "phoneNumber", "secondPhoneNumber", "website",
        "organization", "streetAddress", "floor", "zipOrPostalCode", "city",
        "stateOrProvince", "county", "countryOrRegion",
        "socialSecurityNumber", "passportNumber", "licenseNumber",
        "company", "jobTitle", "personalWebsite", "workPhoneNumber", "workEmail",
        "xHandle", "linkedin", "reddit", "facebook", "yahoo", "instagram",
    )
)

# Identity lists of free-form fields, stored under their own field names
IDENTITY_EXTRA_LISTS = (
    "extraPersonalDetails",
    "extraAddressDetails",
    "extraContactDetails",
    "extraWorkDetails",
)

SSH_KEY_FIELDS = (
    FieldMapping("privateKey", "sshkey_privateKey", protected=True),
    FieldMapping("publicKey", "sshkey_publicKey"),
)

WIFI_FIELDS = (
    FieldMapping("ssid", "wifi_ssid"),
    FieldMapping("password", PASSWORD_KEY),
    FieldMapping("security", "wifi_security"),
)

# Item types whose content is a plain field map
CONTENT_FIELD_MAPS = {
    "creditCard": CARD_FIELDS,
    "sshKey": SSH_KEY_FIELDS,
    "wifi": WIFI_FIELDS,
}


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


class ProtonPassReader:
    """Reader for Proton Pass JSON exports.

    Example:
        >>> reader = ProtonPassReader()
        >>> db = reader.convert("protonpass_export.json")
        >>> db.find_entry_by_path("/Personal/Test Login").username
        'Username'
    """

    def __init__(self, settings: ImportSettings | None = None) -> None:
        self._settings = settings or ImportSettings()
        self._error = ""

    def convert(self, path: str | Path, password: str | None = None) -> Database | None:
        """Convert a Proton Pass export into a new Database.

        Args:
            path: Path to the .json export
            password: Ignored; encrypted exports are not supported

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
        logger.warning("Proton Pass import failed: %s", self._error)
        return None

    def has_error(self) -> bool:
        """Check whether the last conversion failed."""
        return bool(self._error)

    def error_string(self) -> str:
        """Describe why the last conversion failed."""
        return self._error

    def _convert(self, path: Path) -> Database:
        document = read_json_file(path, "Proton Pass export")
        if document.get("encrypted"):
            raise UnsupportedFeatureError(
                "Encrypted Proton Pass exports are not supported; export without encryption"
            )
        vaults = document.get("vaults")
        if not isinstance(vaults, dict):
            raise FormatError("Invalid Proton Pass export: 'vaults' must be an object")

        db = Database(
            root_group=Group.create_root(ROOT_GROUP_NAME),
            metadata=Metadata(name=path.stem),
        )
        for share_id, vault in vaults.items():
            if not isinstance(vault, dict):
                logger.warning("Skipping malformed vault %s", share_id)
                continue
            group = db.root_group.create_subgroup(
                as_text(vault.get("name")) or share_id,
                notes=as_text(vault.get("description")) or None,
            )
            for item in _as_list(vault.get("items")):
                if not isinstance(item, dict) or not isinstance(item.get("data"), dict):
                    logger.warning("Skipping malformed item in vault %r", group.name)
                    continue
                group.add_entry(self._read_item(item))

        db.prune_empty_groups()
        logger.debug("Imported %d entries from Proton Pass", sum(1 for _ in db.iter_entries()))
        return db

    def _read_item(self, item: dict[str, Any]) -> Entry:
        data = item["data"]
        metadata = _as_dict(data.get("metadata"))
        content = _as_dict(data.get("content"))
        item_type = as_text(data.get("type"))

        entry = Entry()
        entry.title = as_text(metadata.get("name"))
        entry.notes = as_text(metadata.get("note"))
        if item.get("pinned"):
            entry.add_tag(self._settings.favorite_tag)

        if item_type == "login":
            self._read_login(entry, content)
        elif item_type == "identity":
            self._read_identity(entry, content)
        elif item_type == "alias":
            entry.username = as_text(item.get("aliasEmail"))
        elif item_type in CONTENT_FIELD_MAPS:
            apply_field_map(entry, content, CONTENT_FIELD_MAPS[item_type])
        elif item_type != "note":
            logger.debug("Unknown Proton Pass item type %r for %r", item_type, entry.title)

        for field in _as_list(data.get("extraFields")):
            self._read_extra_field(entry, _as_dict(field), "")
        for section in _as_list(content.get("sections")):
            self._read_section(entry, _as_dict(section))

        entry.times.set_imported(
            epoch_to_datetime(item.get("createTime")),
            epoch_to_datetime(item.get("modifyTime")),
        )
        if item.get("state") == STATE_TRASHED:
            entry.expire_now()
        return entry

    def _read_login(self, entry: Entry, content: dict[str, Any]) -> None:
        apply_field_map(entry, content, LOGIN_FIELDS)
        if not entry.username:
            # Exports before itemUsername existed used "username"
            entry.username = as_text(content.get("username"))
        apply_totp(entry, as_text(content.get("totpUri")))
        for url in _as_list(content.get("urls")):
            entry.add_url(as_text(url))

    def _read_identity(self, entry: Entry, content: dict[str, Any]) -> None:
        apply_field_map(entry, content, IDENTITY_FIELDS)
        for key in IDENTITY_EXTRA_LISTS:
            for field in _as_list(content.get(key)):
                self._read_extra_field(entry, _as_dict(field), "")
        for section in _as_list(content.get("extraSections")):
            self._read_section(entry, _as_dict(section))

    def _read_section(self, entry: Entry, section: dict[str, Any]) -> None:
        name = as_text(section.get("sectionName"))
        for field in _as_list(section.get("sectionFields")):
            self._read_extra_field(entry, _as_dict(field), name)

    def _read_extra_field(self, entry: Entry, field: dict[str, Any], section: str) -> None:
        name = section_attribute_name(section, as_text(field.get("fieldName")))
        field_type = as_text(field.get("type"))
        data = _as_dict(field.get("data"))

        if field_type == "totp":
            value = as_text(data.get("totpUri"))
            if not name or not value:
                return
            store_field(entry, name, value, protected=True)
            if not value.lower().startswith("otpauth://"):
                apply_totp(entry, value)
            return

        if field_type == "timestamp":
            value = as_text(data.get("timestamp"))
        else:
            value = as_text(data.get("content"))
        if name and value:
            store_field(entry, name, value, protected=field_type == "hidden")
