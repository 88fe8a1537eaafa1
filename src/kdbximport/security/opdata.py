"""1Password opdata01 envelopes and OPVault key wrapping.

opdata01 layout:
    8 bytes   "opdata01"
    8 bytes   plaintext length (little-endian)
    16 bytes  AES-CBC IV
    N bytes   AES-256-CBC ciphertext of (random padding || plaintext)
    32 bytes  HMAC-SHA256 over all preceding bytes

Item keys ("k" in a band entry) are IV(16) || CBC(enc key || mac key)(64)
|| HMAC-SHA256(32), encrypted and authenticated with the master keys.
"""

from __future__ import annotations

import hashlib
import struct

from kdbximport.exceptions import DecryptionError

from .crypto import AES_BLOCK_SIZE, decrypt_aes256_cbc, verify_hmac_sha256
from .memory import SecureBytes

OPDATA01_MAGIC = b"opdata01"
OPDATA01_HEADER_SIZE = len(OPDATA01_MAGIC) + 8
HMAC_SIZE = 32
ITEM_KEY_SIZE = AES_BLOCK_SIZE + 64 + HMAC_SIZE


def decrypt_opdata01(blob: bytes, enc_key: bytes, mac_key: bytes) -> bytes:
    """Authenticate and decrypt an opdata01 envelope.

    Args:
        blob: Raw opdata01 bytes
        enc_key: 32-byte AES key
        mac_key: 32-byte HMAC key

    Returns:
        Plaintext with the random prefix padding removed

    Raises:
        DecryptionError: If the envelope is malformed
        AuthenticationError: If the HMAC doesn't verify
    """
    if not blob.startswith(OPDATA01_MAGIC):
        raise DecryptionError("Invalid opdata01 envelope: missing header")
    if len(blob) < OPDATA01_HEADER_SIZE + AES_BLOCK_SIZE * 2 + HMAC_SIZE:
        raise DecryptionError("Invalid opdata01 envelope: insufficient length")

    verify_hmac_sha256(mac_key, blob[-HMAC_SIZE:], blob[:-HMAC_SIZE])

    (length,) = struct.unpack("<Q", blob[len(OPDATA01_MAGIC):OPDATA01_HEADER_SIZE])
    iv = blob[OPDATA01_HEADER_SIZE:OPDATA01_HEADER_SIZE + AES_BLOCK_SIZE]
    ciphertext = blob[OPDATA01_HEADER_SIZE + AES_BLOCK_SIZE:-HMAC_SIZE]
    plaintext = decrypt_aes256_cbc(enc_key, iv, ciphertext, padded=False)

    if length > len(plaintext):
        raise DecryptionError("Invalid opdata01 envelope: plaintext length exceeds payload")
    if length == 0:
        return b""
    return plaintext[-length:]


def split_key_pair(material: bytes) -> tuple[SecureBytes, SecureBytes]:
    """Turn decrypted profile key material into an (enc, mac) key pair.

    OPVault stores 256 bytes of random key material per profile key; the
    usable keys are the two halves of its SHA-512 digest.
    """
    digest = bytearray(hashlib.sha512(material).digest())
    try:
        return SecureBytes(digest[:32]), SecureBytes(digest[32:])
    finally:
        for i in range(len(digest)):
            digest[i] = 0


def unwrap_item_key(
    wrapped: bytes, master_enc: bytes, master_mac: bytes
) -> tuple[SecureBytes, SecureBytes]:
    """Decrypt a band entry's item key with the vault master keys.

    Args:
        wrapped: Decoded "k" value (112 bytes)
        master_enc: Master encryption key
        master_mac: Master HMAC key

    Returns:
        (item encryption key, item HMAC key)

    Raises:
        DecryptionError: If the wrapped key has the wrong size
        AuthenticationError: If the HMAC doesn't verify
    """
    if len(wrapped) != ITEM_KEY_SIZE:
        raise DecryptionError(
            f"Malformed item key: expected {ITEM_KEY_SIZE} bytes, got {len(wrapped)}"
        )
    verify_hmac_sha256(master_mac, wrapped[-HMAC_SIZE:], wrapped[:-HMAC_SIZE])
    iv = wrapped[:AES_BLOCK_SIZE]
    keys = bytearray(
        decrypt_aes256_cbc(master_enc, iv, wrapped[AES_BLOCK_SIZE:-HMAC_SIZE], padded=False)
    )
    try:
        return SecureBytes(keys[:32]), SecureBytes(keys[32:])
    finally:
        for i in range(len(keys)):
            keys[i] = 0
