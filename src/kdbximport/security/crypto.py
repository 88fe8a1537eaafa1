"""Symmetric primitives used by encrypted export formats.

All exports handled here use AES-256-CBC for confidentiality and
HMAC-SHA256 for integrity (encrypt-then-MAC). MACs are always verified
before any ciphertext is decrypted.
"""

from __future__ import annotations

import hmac

from Cryptodome.Cipher import AES
from Cryptodome.Hash import HMAC, SHA256
from Cryptodome.Util.Padding import unpad

from kdbximport.exceptions import AuthenticationError, DecryptionError

AES_BLOCK_SIZE = 16
AES256_KEY_SIZE = 32


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without leaking timing information."""
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(key: bytes, *parts: bytes) -> bytes:
    """Compute HMAC-SHA256 over the concatenation of ``parts``."""
    mac = HMAC.new(key, digestmod=SHA256)
    for part in parts:
        mac.update(part)
    return mac.digest()


def verify_hmac_sha256(key: bytes, expected: bytes, *parts: bytes) -> None:
    """Verify an HMAC-SHA256 tag.

    Args:
        key: MAC key
        expected: Tag stored alongside the data
        *parts: Authenticated data, concatenated in order

    Raises:
        AuthenticationError: If the tag doesn't match
    """
    computed = compute_hmac_sha256(key, *parts)
    if not constant_time_compare(computed, expected):
        raise AuthenticationError()


def decrypt_aes256_cbc(
    key: bytes,
    iv: bytes,
    ciphertext: bytes,
    *,
    padded: bool = True,
) -> bytes:
    """Decrypt AES-256-CBC ciphertext.

    Args:
        key: 32-byte key
        iv: 16-byte initialization vector
        ciphertext: Ciphertext, a multiple of the block size
        padded: Strip PKCS#7 padding after decryption

    Returns:
        Plaintext bytes

    Raises:
        DecryptionError: If the key, IV, length or padding is invalid
    """
    if len(key) != AES256_KEY_SIZE:
        raise DecryptionError(f"Invalid AES-256 key length: {len(key)}")
    if len(iv) != AES_BLOCK_SIZE:
        raise DecryptionError(f"Invalid AES IV length: {len(iv)}")
    if not ciphertext or len(ciphertext) % AES_BLOCK_SIZE != 0:
        raise DecryptionError("Decryption failed - ciphertext length is not a multiple of the block size")

    plaintext = AES.new(key, AES.MODE_CBC, iv=iv).decrypt(ciphertext)
    if not padded:
        return plaintext
    try:
        return unpad(plaintext, AES_BLOCK_SIZE, style="pkcs7")
    except ValueError:
        raise DecryptionError("Decryption failed - invalid padding") from None
