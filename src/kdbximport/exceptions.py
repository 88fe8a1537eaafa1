"""Custom exception hierarchy for kdbximport.

Readers raise these internally and the reader façade converts them into
its ``has_error()`` / ``error_string()`` contract. All exceptions inherit
from KdbxImportError.

Exception Hierarchy:
    KdbxImportError (base)
    ├── SourceError
    ├── FormatError
    │   ├── UnsupportedVersionError
    │   └── CorruptedDataError
    ├── CryptoError
    │   ├── DecryptionError
    │   ├── AuthenticationError
    │   └── KdfError
    ├── CredentialError
    │   └── MissingCredentialsError
    └── UnsupportedFeatureError

Security Note:
    Exception messages never include passwords, keys or decrypted data.
"""

from __future__ import annotations


class KdbxImportError(Exception):
    """Base exception for all kdbximport errors."""


class SourceError(KdbxImportError):
    """The export file or directory is missing or unreadable."""


# --- Format Errors ---


class FormatError(KdbxImportError):
    """Error in the structure of an export.

    Raised when a required file, key or band is absent or a JSON value
    has the wrong type.
    """


class UnsupportedVersionError(FormatError):
    """The export uses a container version this library doesn't read."""

    def __init__(self, format_name: str, version: object) -> None:
        self.format_name = format_name
        self.version = version
        super().__init__(f"Unsupported {format_name} version: {version}")


class CorruptedDataError(FormatError):
    """The export is truncated or its binary framing is invalid."""


# --- Crypto Errors ---


class CryptoError(KdbxImportError):
    """Error in cryptographic operations.

    Base class for key derivation and decryption failures.
    """


class DecryptionError(CryptoError):
    """Failed to decrypt export content.

    This usually means the password is wrong, but the message stays
    generic because corruption produces the same symptom.
    """

    def __init__(self, message: str = "Decryption failed") -> None:
        super().__init__(message)


class AuthenticationError(CryptoError):
    """HMAC verification failed."""

    def __init__(
        self, message: str = "Authentication failed - wrong password or corrupted data"
    ) -> None:
        super().__init__(message)


class KdfError(CryptoError):
    """Unsupported KDF type or unusable KDF parameters."""


# --- Credential Errors ---


class CredentialError(KdbxImportError):
    """Error with the credentials supplied for an encrypted export."""


class MissingCredentialsError(CredentialError):
    """An encrypted export was opened without a password."""

    def __init__(self, format_name: str) -> None:
        super().__init__(f"A password is required to open this encrypted {format_name} export")


class UnsupportedFeatureError(KdbxImportError):
    """The export is valid but uses a feature that can't be imported."""
