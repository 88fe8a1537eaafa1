"""1Password item categories.

1PUX and OPVault identify item types by three-digit category UUIDs. OPVault
turns every category into a top-level group; 1PUX uses the display name to
label untitled sections.
"""

from __future__ import annotations

from enum import Enum


class Category(Enum):
    """1Password item categories known to both export formats."""

    LOGIN = "001"
    CREDIT_CARD = "002"
    SECURE_NOTE = "003"
    IDENTITY = "004"
    PASSWORD = "005"
    TOMBSTONE = "099"
    SOFTWARE_LICENSE = "100"
    BANK_ACCOUNT = "101"
    DATABASE = "102"
    DRIVER_LICENSE = "103"
    OUTDOOR_LICENSE = "104"
    MEMBERSHIP = "105"
    PASSPORT = "106"
    REWARDS = "107"
    SSN = "108"
    ROUTER = "109"
    SERVER = "110"
    EMAIL = "111"

    @property
    def display_name(self) -> str:
        """Human-readable category name, used as the OPVault group name."""
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_uuid(cls, category_uuid: str) -> Category | None:
        """Look up a category by its UUID, or None if it's unknown."""
        try:
            return cls(category_uuid)
        except ValueError:
            return None


_DISPLAY_NAMES = {
    Category.LOGIN: "Login",
    Category.CREDIT_CARD: "Credit Card",
    Category.SECURE_NOTE: "Secure Note",
    Category.IDENTITY: "Identity",
    Category.PASSWORD: "Password",
    Category.TOMBSTONE: "Tombstone",
    Category.SOFTWARE_LICENSE: "Software License",
    Category.BANK_ACCOUNT: "Bank Account",
    Category.DATABASE: "Database",
    Category.DRIVER_LICENSE: "Driver License",
    Category.OUTDOOR_LICENSE: "Outdoor License",
    Category.MEMBERSHIP: "Membership",
    Category.PASSPORT: "Passport",
    Category.REWARDS: "Rewards",
    Category.SSN: "SSN",
    Category.ROUTER: "Router",
    Category.SERVER: "Server",
    Category.EMAIL: "Email",
}

# Categories only found in the newer 1PUX exports
EXTRA_1PUX_CATEGORIES = {
    "006": "Document",
    "112": "API Credential",
    "113": "Medical Record",
    "114": "SSH Key",
    "115": "Crypto Wallet",
}


def category_name(category_uuid: str) -> str | None:
    """Display name for any known 1Password category UUID."""
    category = Category.from_uuid(category_uuid)
    if category is not None:
        return category.display_name
    return EXTRA_1PUX_CATEGORIES.get(category_uuid)
