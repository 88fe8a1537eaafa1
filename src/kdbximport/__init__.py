"""kdbximport - Convert password manager exports into a KeePass-style tree.

Supported sources:
- 1Password 1PUX archives
- 1Password OPVault directories (password required)
- Bitwarden JSON exports, plain or password protected
- Proton Pass JSON exports

Conversion never raises for bad input. Readers return None and keep the
reason for the caller to display.

Example:
    from kdbximport import BitwardenReader

    reader = BitwardenReader()
    db = reader.convert("bitwarden_export.json", password="secret")
    if db is None:
        print(reader.error_string())
    else:
        entry = db.find_entry_by_path("/My Folder/Login Name")
        print(entry.username)
"""

__version__ = "0.1.0"

from .database import Database, Metadata
from .exceptions import (
    AuthenticationError,
    CorruptedDataError,
    CredentialError,
    CryptoError,
    DecryptionError,
    FormatError,
    KdbxImportError,
    KdfError,
    MissingCredentialsError,
    SourceError,
    UnsupportedFeatureError,
    UnsupportedVersionError,
)
from .formats import (
    BitwardenReader,
    ImportReader,
    ImportSettings,
    OnePuxReader,
    OpVaultReader,
    ProtonPassReader,
)
from .models import Entry, Group, StringField, Times, TotpSettings

__all__ = [
    # Core classes
    "Database",
    "Entry",
    "Group",
    "Metadata",
    "StringField",
    "Times",
    "TotpSettings",
    # Readers
    "BitwardenReader",
    "ImportReader",
    "ImportSettings",
    "OnePuxReader",
    "OpVaultReader",
    "ProtonPassReader",
    # Exceptions
    "AuthenticationError",
    "CorruptedDataError",
    "CredentialError",
    "CryptoError",
    "DecryptionError",
    "FormatError",
    "KdbxImportError",
    "KdfError",
    "MissingCredentialsError",
    "SourceError",
    "UnsupportedFeatureError",
    "UnsupportedVersionError",
]
