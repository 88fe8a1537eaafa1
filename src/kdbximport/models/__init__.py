"""Data models for imported databases.

This module provides typed Python classes for the canonical credential
tree every reader produces: entries, groups, timestamps and TOTP settings.
"""

from .entry import Entry, StringField
from .group import Group
from .times import Times
from .totp import TotpSettings, parse_settings

__all__ = [
    "Entry",
    "Group",
    "StringField",
    "Times",
    "TotpSettings",
    "parse_settings",
]
