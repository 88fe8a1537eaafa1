"""Readers for third-party password manager exports.

Each reader satisfies the ImportReader protocol:
- OnePuxReader: 1Password 1PUX archives
- OpVaultReader: 1Password OPVault directories
- BitwardenReader: Bitwarden JSON exports (plain or encrypted)
- ProtonPassReader: Proton Pass JSON exports
"""

from .bitwarden import BitwardenReader
from .categories import Category
from .opux import OnePuxReader
from .opvault import OpVaultReader
from .protonpass import ProtonPassReader
from .reader import ImportReader
from .settings import ImportSettings

__all__ = [
    "BitwardenReader",
    "Category",
    "ImportReader",
    "ImportSettings",
    "OnePuxReader",
    "OpVaultReader",
    "ProtonPassReader",
]
