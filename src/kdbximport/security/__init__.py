"""Security-critical components for kdbximport.

This module contains all security-sensitive code including:
- Secure memory handling (SecureBytes)
- AES-CBC decryption and HMAC verification
- Key derivation functions (PBKDF2, Argon2id, HKDF-Expand)
- 1Password opdata01 envelopes

All code in this module should be audited carefully.
"""

from .crypto import (
    compute_hmac_sha256,
    constant_time_compare,
    decrypt_aes256_cbc,
    verify_hmac_sha256,
)
from .kdf import (
    ARGON2_MAX_ITERATIONS,
    ARGON2_MAX_MEMORY_KIB,
    ARGON2_MAX_PARALLELISM,
    PBKDF2_MAX_ITERATIONS,
    Argon2Config,
    KdfType,
    Pbkdf2Config,
    derive_key_argon2,
    derive_key_pbkdf2,
    hkdf_expand_sha256,
)
from .memory import SecureBytes
from .opdata import decrypt_opdata01, split_key_pair, unwrap_item_key

__all__ = [
    # Memory
    "SecureBytes",
    # Crypto
    "compute_hmac_sha256",
    "constant_time_compare",
    "decrypt_aes256_cbc",
    "verify_hmac_sha256",
    # KDF
    "ARGON2_MAX_ITERATIONS",
    "ARGON2_MAX_MEMORY_KIB",
    "ARGON2_MAX_PARALLELISM",
    "PBKDF2_MAX_ITERATIONS",
    "Argon2Config",
    "KdfType",
    "Pbkdf2Config",
    "derive_key_argon2",
    "derive_key_pbkdf2",
    "hkdf_expand_sha256",
    # opdata01
    "decrypt_opdata01",
    "split_key_pair",
    "unwrap_item_key",
]
