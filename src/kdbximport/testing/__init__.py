"""Test utilities for kdbximport.

WARNING: The writers in this module are for TESTING ONLY.

They produce small synthetic exports in every supported format so the
readers can be exercised without real vaults:
- write_1pux(): 1Password 1PUX archives
- write_opvault(): 1Password OPVault directories, encrypted for a password
- write_bitwarden() / encrypt_bitwarden_export(): Bitwarden JSON exports
- write_protonpass(): Proton Pass JSON exports

KDF costs default to the minimum that keeps tests fast. Exports written
this way are NOT a safe way to store real secrets.
"""

from __future__ import annotations

import base64
import hashlib
import json
import os
import struct
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from Cryptodome.Cipher import AES
from Cryptodome.Util.Padding import pad

from kdbximport.security import (
    Argon2Config,
    KdfType,
    Pbkdf2Config,
    compute_hmac_sha256,
    derive_key_argon2,
    derive_key_pbkdf2,
    hkdf_expand_sha256,
    split_key_pair,
)
from kdbximport.security.opdata import OPDATA01_MAGIC

# Fast KDF parameters for tests
TEST_PBKDF2_ITERATIONS = 1000
TEST_ARGON2_MEMORY_MIB = 16
TEST_ARGON2_ITERATIONS = 2
TEST_ARGON2_PARALLELISM = 1


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _dump(document: Any) -> str:
    return json.dumps(document, indent=2)


# --- 1PUX ---


def write_1pux(
    path: str | Path,
    data: dict[str, Any],
    *,
    attributes: dict[str, Any] | None = None,
    files: dict[str, bytes] | None = None,
) -> Path:
    """Write a 1PUX archive.

    Args:
        path: Output file
        data: Contents of export.data
        attributes: Contents of export.attributes (version 3 by default)
        files: Extra members keyed by name below ``files/``

    Returns:
        The written path
    """
    path = Path(path)
    if attributes is None:
        attributes = {"version": 3, "description": "1Password Unencrypted Export", "createdAt": 1639597574}
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("export.attributes", _dump(attributes))
        archive.writestr("export.data", _dump(data))
        for name, contents in (files or {}).items():
            archive.writestr(f"files/{name}", contents)
    return path


# --- OPVault ---


def encrypt_opdata01(plaintext: bytes, enc_key: bytes, mac_key: bytes) -> bytes:
    """Build an opdata01 envelope with random prefix padding."""
    padding_size = 16 - len(plaintext) % 16
    padded = os.urandom(padding_size) + plaintext
    iv = os.urandom(16)
    ciphertext = AES.new(enc_key, AES.MODE_CBC, iv=iv).encrypt(padded)
    body = OPDATA01_MAGIC + struct.pack("<Q", len(plaintext)) + iv + ciphertext
    return body + compute_hmac_sha256(mac_key, body)


def wrap_item_key(item_enc: bytes, item_mac: bytes, master_enc: bytes, master_mac: bytes) -> bytes:
    """Encrypt an item key pair with the master keys (band entry ``k``)."""
    iv = os.urandom(16)
    ciphertext = AES.new(master_enc, AES.MODE_CBC, iv=iv).encrypt(item_enc + item_mac)
    body = iv + ciphertext
    return body + compute_hmac_sha256(master_mac, body)


@dataclass
class OpVaultItem:
    """One item to write into an OPVault band.

    Attributes:
        uuid: 32 hex digit item UUID
        category: Three digit category UUID (e.g. "001")
        overview: Overview JSON (title, url, URLs, tags)
        details: Details JSON (fields, sections, notesPlain, password)
        attachments: (filename, contents) pairs
    """

    uuid: str
    category: str
    overview: dict[str, Any]
    details: dict[str, Any]
    trashed: bool = False
    fave: int | None = None
    folder: str | None = None
    created: int = 1_500_000_000
    updated: int = 1_500_000_100
    attachments: list[tuple[str, bytes]] = field(default_factory=list)


def _attachment_file(
    item: OpVaultItem,
    filename: str,
    contents: bytes,
    item_keys: tuple[bytes, bytes],
    overview_keys: tuple[bytes, bytes],
) -> bytes:
    overview = encrypt_opdata01(json.dumps({"filename": filename}).encode("utf-8"), *overview_keys)
    metadata = json.dumps({
        "itemUUID": item.uuid,
        "overview": _b64(overview),
        "contentsSize": len(contents),
        "external": False,
        "createdAt": item.created,
        "updatedAt": item.updated,
    }).encode("utf-8")
    header = b"OPCLDAT" + bytes([1]) + struct.pack("<HHI", len(metadata), 0, 0)
    return header + metadata + encrypt_opdata01(contents, *item_keys)


def write_opvault(
    directory: str | Path,
    password: str,
    items: Iterable[OpVaultItem],
    *,
    folders: dict[str, str] | None = None,
    iterations: int = TEST_PBKDF2_ITERATIONS,
) -> Path:
    """Write an OPVault directory encrypted for ``password``.

    Args:
        directory: The ``.opvault`` directory to create
        password: Master password
        items: Items to write; bands are chosen by UUID prefix
        folders: Folder titles keyed by folder UUID
        iterations: PBKDF2 iteration count for the profile

    Returns:
        The vault directory
    """
    directory = Path(directory)
    profile_dir = directory / "default"
    profile_dir.mkdir(parents=True, exist_ok=True)

    salt = os.urandom(16)
    config = Pbkdf2Config(iterations=iterations, salt=salt, variant=KdfType.PBKDF2_SHA512, key_length=64)
    with derive_key_pbkdf2(password.encode("utf-8"), config) as derived:
        derived_enc, derived_mac = derived.data[:32], derived.data[32:]
        master_material = os.urandom(256)
        overview_material = os.urandom(256)
        profile = {
            "lastUpdatedBy": "Dropbox",
            "profileName": "default",
            "uuid": os.urandom(16).hex().upper(),
            "salt": _b64(salt),
            "iterations": iterations,
            "masterKey": _b64(encrypt_opdata01(master_material, derived_enc, derived_mac)),
            "overviewKey": _b64(encrypt_opdata01(overview_material, derived_enc, derived_mac)),
            "createdAt": 1_500_000_000,
            "updatedAt": 1_500_000_000,
        }
    (profile_dir / "profile.js").write_text(f"var profile={json.dumps(profile)};", encoding="utf-8")

    master_enc, master_mac = (key.data for key in split_key_pair(master_material))
    overview_keys = tuple(key.data for key in split_key_pair(overview_material))

    if folders:
        folder_records = {
            folder_uuid: {
                "uuid": folder_uuid,
                "overview": _b64(encrypt_opdata01(json.dumps({"title": title}).encode("utf-8"), *overview_keys)),
                "created": 1_500_000_000,
                "updated": 1_500_000_000,
            }
            for folder_uuid, title in folders.items()
        }
        (profile_dir / "folders.js").write_text(f"loadFolders({json.dumps(folder_records)});", encoding="utf-8")

    bands: dict[str, dict[str, Any]] = {}
    for item in items:
        item_enc, item_mac = os.urandom(32), os.urandom(32)
        record: dict[str, Any] = {
            "uuid": item.uuid,
            "category": item.category,
            "created": item.created,
            "updated": item.updated,
            "tx": item.updated,
            "k": _b64(wrap_item_key(item_enc, item_mac, master_enc, master_mac)),
            "o": _b64(encrypt_opdata01(json.dumps(item.overview).encode("utf-8"), *overview_keys)),
            "d": _b64(encrypt_opdata01(json.dumps(item.details).encode("utf-8"), item_enc, item_mac)),
            "hmac": _b64(os.urandom(32)),
        }
        if item.trashed:
            record["trashed"] = True
        if item.fave is not None:
            record["fave"] = item.fave
        if item.folder is not None:
            record["folder"] = item.folder
        bands.setdefault(item.uuid[0].upper(), {})[item.uuid] = record

        for index, (filename, contents) in enumerate(item.attachments):
            attachment_uuid = f"{index:032X}"
            (profile_dir / f"{item.uuid}_{attachment_uuid}.attachment").write_bytes(
                _attachment_file(item, filename, contents, (item_enc, item_mac), overview_keys)
            )

    for band, records in bands.items():
        (profile_dir / f"band_{band}.js").write_text(f"ld({json.dumps(records)});", encoding="utf-8")
    return directory


# --- Bitwarden ---


def _bitwarden_encrypt(plaintext: bytes, enc_key: bytes, mac_key: bytes) -> str:
    iv = os.urandom(16)
    ciphertext = AES.new(enc_key, AES.MODE_CBC, iv=iv).encrypt(pad(plaintext, 16))
    mac = compute_hmac_sha256(mac_key, iv, ciphertext)
    return f"2.{_b64(iv)}|{_b64(ciphertext)}|{_b64(mac)}"


def encrypt_bitwarden_export(
    document: dict[str, Any],
    password: str,
    *,
    kdf_type: int = 0,
    salt: str = "bitwarden-test-salt",
    iterations: int | None = None,
    memory_mib: int = TEST_ARGON2_MEMORY_MIB,
    parallelism: int = TEST_ARGON2_PARALLELISM,
) -> dict[str, Any]:
    """Encrypt a plain Bitwarden export the way password-protected exports are.

    Args:
        document: Plain export (folders, items)
        password: Export password
        kdf_type: 0 for PBKDF2-SHA256, 1 for Argon2id
        salt: KDF salt string
        iterations: KDF iterations (defaults to the fast test values)
        memory_mib: Argon2 memory in MiB
        parallelism: Argon2 lanes

    Returns:
        The encrypted export document
    """
    secret = password.encode("utf-8")
    encrypted: dict[str, Any] = {
        "encrypted": True,
        "passwordProtected": True,
        "salt": salt,
        "kdfType": kdf_type,
    }
    if kdf_type == 0:
        iterations = iterations or TEST_PBKDF2_ITERATIONS
        master_key = derive_key_pbkdf2(secret, Pbkdf2Config(iterations=iterations, salt=salt.encode("utf-8")))
    else:
        iterations = iterations or TEST_ARGON2_ITERATIONS
        config = Argon2Config(
            memory_kib=memory_mib * 1024,
            iterations=iterations,
            parallelism=parallelism,
            salt=hashlib.sha256(salt.encode("utf-8")).digest(),
        )
        master_key = derive_key_argon2(secret, config)
        encrypted["kdfMemory"] = memory_mib
        encrypted["kdfParallelism"] = parallelism
    encrypted["kdfIterations"] = iterations

    with master_key:
        enc_key = hkdf_expand_sha256(master_key.data, b"enc")
        mac_key = hkdf_expand_sha256(master_key.data, b"mac")
    with enc_key, mac_key:
        validation = os.urandom(16).hex().encode("ascii")
        encrypted["encKeyValidation_DO_NOT_EDIT"] = _bitwarden_encrypt(validation, enc_key.data, mac_key.data)
        encrypted["data"] = _bitwarden_encrypt(json.dumps(document).encode("utf-8"), enc_key.data, mac_key.data)
    return encrypted


def write_bitwarden(path: str | Path, document: dict[str, Any]) -> Path:
    """Write a Bitwarden export document to ``path``."""
    path = Path(path)
    path.write_text(_dump(document), encoding="utf-8")
    return path


# --- Proton Pass ---


def write_protonpass(path: str | Path, vaults: dict[str, Any], *, encrypted: bool = False) -> Path:
    """Write a Proton Pass export with the given vaults (keyed by share id)."""
    path = Path(path)
    document = {
        "version": "1.21.2",
        "userId": "test-user",
        "encrypted": encrypted,
        "vaults": vaults,
    }
    path.write_text(_dump(document), encoding="utf-8")
    return path


__all__ = [
    "OpVaultItem",
    "TEST_ARGON2_ITERATIONS",
    "TEST_ARGON2_MEMORY_MIB",
    "TEST_ARGON2_PARALLELISM",
    "TEST_PBKDF2_ITERATIONS",
    "encrypt_bitwarden_export",
    "encrypt_opdata01",
    "write_1pux",
    "write_bitwarden",
    "write_opvault",
    "write_protonpass",
    "wrap_item_key",
]
