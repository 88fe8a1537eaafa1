"""Key Derivation Functions for encrypted exports.

This module provides the KDFs used by password-manager export formats:
- PBKDF2-HMAC-SHA512: 1Password OPVault profiles
- PBKDF2-HMAC-SHA256: Bitwarden exports (kdfType 0)
- Argon2id: Bitwarden exports (kdfType 1)
- HKDF-Expand-SHA256: Bitwarden key stretching

Security considerations:
- Parameters come from the export being read, so they are checked
  against upper limits to avoid memory or CPU exhaustion
- All derived keys are returned as SecureBytes for zeroization
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from argon2.exceptions import HashingError
from argon2.low_level import Type as Argon2Type
from argon2.low_level import hash_secret_raw
from Cryptodome.Hash import HMAC, SHA256, SHA512
from Cryptodome.Protocol.KDF import PBKDF2

from kdbximport.exceptions import KdfError

from .memory import SecureBytes


class KdfType(Enum):
    """Key derivation functions understood by the readers."""

    PBKDF2_SHA256 = "pbkdf2-sha256"
    PBKDF2_SHA512 = "pbkdf2-sha512"
    ARGON2ID = "argon2id"

    @property
    def display_name(self) -> str:
        """Human-readable KDF name."""
        names = {
            KdfType.PBKDF2_SHA256: "PBKDF2-HMAC-SHA256",
            KdfType.PBKDF2_SHA512: "PBKDF2-HMAC-SHA512",
            KdfType.ARGON2ID: "Argon2id",
        }
        return names[self]


# Upper bounds for parameters read from untrusted exports
PBKDF2_MAX_ITERATIONS = 10_000_000
ARGON2_MAX_MEMORY_KIB = 1024 * 1024  # 1 GiB
ARGON2_MAX_ITERATIONS = 100
ARGON2_MAX_PARALLELISM = 16

_PBKDF2_HASHES = {
    KdfType.PBKDF2_SHA256: SHA256,
    KdfType.PBKDF2_SHA512: SHA512,
}


@dataclass(frozen=True, slots=True)
class Pbkdf2Config:
    """Configuration for PBKDF2 key derivation.

    Attributes:
        iterations: Number of HMAC iterations
        salt: Salt bytes
        variant: PBKDF2 hash variant
        key_length: Output length in bytes
    """

    iterations: int
    salt: bytes
    variant: KdfType = KdfType.PBKDF2_SHA256
    key_length: int = 32

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.variant not in _PBKDF2_HASHES:
            raise KdfError(f"Invalid PBKDF2 variant: {self.variant}")
        if self.iterations < 1:
            raise KdfError("PBKDF2 iterations must be at least 1")
        if not self.salt:
            raise KdfError("PBKDF2 salt must not be empty")
        if self.key_length < 1:
            raise KdfError("PBKDF2 key length must be at least 1")

    def validate_limits(self) -> None:
        """Reject parameters that would stall the conversion.

        Raises:
            KdfError: If the iteration count exceeds PBKDF2_MAX_ITERATIONS
        """
        if self.iterations > PBKDF2_MAX_ITERATIONS:
            raise KdfError(
                f"PBKDF2 iterations {self.iterations} exceed maximum {PBKDF2_MAX_ITERATIONS}"
            )


@dataclass(frozen=True, slots=True)
class Argon2Config:
    """Configuration for Argon2id key derivation.

    Attributes:
        memory_kib: Memory usage in KiB
        iterations: Number of iterations (time cost)
        parallelism: Degree of parallelism
        salt: Salt bytes (at least 8 bytes, as required by Argon2)
        key_length: Output length in bytes
    """

    memory_kib: int
    iterations: int
    parallelism: int
    salt: bytes
    key_length: int = 32

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if len(self.salt) < 8:
            raise KdfError("Argon2 salt must be at least 8 bytes")
        if self.iterations < 1 or self.parallelism < 1:
            raise KdfError("Argon2 iterations and parallelism must be at least 1")
        if self.memory_kib < 8 * self.parallelism:
            raise KdfError(
                f"Argon2 memory {self.memory_kib} KiB is below 8 KiB per lane"
            )

    def validate_limits(self) -> None:
        """Reject parameters that would exhaust memory or CPU.

        Raises:
            KdfError: If any parameter exceeds its maximum
        """
        issues = []
        if self.memory_kib > ARGON2_MAX_MEMORY_KIB:
            issues.append(
                f"Memory {self.memory_kib} KiB exceeds maximum {ARGON2_MAX_MEMORY_KIB} KiB"
            )
        if self.iterations > ARGON2_MAX_ITERATIONS:
            issues.append(
                f"Iterations {self.iterations} exceed maximum {ARGON2_MAX_ITERATIONS}"
            )
        if self.parallelism > ARGON2_MAX_PARALLELISM:
            issues.append(
                f"Parallelism {self.parallelism} exceeds maximum {ARGON2_MAX_PARALLELISM}"
            )
        if issues:
            raise KdfError("Unusable Argon2 parameters: " + "; ".join(issues))


def derive_key_pbkdf2(
    password: bytes,
    config: Pbkdf2Config,
    *,
    enforce_limits: bool = True,
) -> SecureBytes:
    """Derive a key using PBKDF2.

    Args:
        password: Password bytes (UTF-8 encoded)
        config: PBKDF2 configuration parameters
        enforce_limits: If True, reject excessive parameters

    Returns:
        Derived key of config.key_length bytes wrapped in SecureBytes

    Raises:
        KdfError: If parameters exceed limits
    """
    if enforce_limits:
        config.validate_limits()

    derived = PBKDF2(
        password,
        config.salt,
        dkLen=config.key_length,
        count=config.iterations,
        hmac_hash_module=_PBKDF2_HASHES[config.variant],
    )
    return SecureBytes(derived)


def derive_key_argon2(
    password: bytes,
    config: Argon2Config,
    *,
    enforce_limits: bool = True,
) -> SecureBytes:
    """Derive a key using Argon2id.

    Args:
        password: Password bytes (UTF-8 encoded)
        config: Argon2 configuration parameters
        enforce_limits: If True, reject excessive parameters

    Returns:
        Derived key of config.key_length bytes wrapped in SecureBytes

    Raises:
        KdfError: If parameters exceed limits or Argon2 rejects them
    """
    if enforce_limits:
        config.validate_limits()

    try:
        derived = hash_secret_raw(
            secret=password,
            salt=config.salt,
            time_cost=config.iterations,
            memory_cost=config.memory_kib,
            parallelism=config.parallelism,
            hash_len=config.key_length,
            type=Argon2Type.ID,
        )
    except HashingError as e:
        raise KdfError(f"Argon2 key derivation failed: {e}") from e
    return SecureBytes(derived)


def hkdf_expand_sha256(prk: bytes, info: bytes, length: int = 32) -> SecureBytes:
    """HKDF-Expand step of RFC 5869 with SHA-256.

    Bitwarden stretches its master key with the expand step only, so the
    input key is used directly as the pseudorandom key.

    Args:
        prk: Pseudorandom key (at least 32 bytes)
        info: Context string
        length: Output length in bytes (at most 255 * 32)

    Returns:
        Expanded key material wrapped in SecureBytes
    """
    if length > 255 * SHA256.digest_size:
        raise KdfError(f"HKDF output length {length} is too large")

    output = bytearray()
    block = b""
    counter = 1
    while len(output) < length:
        block = HMAC.new(prk, block + info + bytes([counter]), digestmod=SHA256).digest()
        output.extend(block)
        counter += 1
    result = SecureBytes(output[:length])
    for i in range(len(output)):
        output[i] = 0
    return result
