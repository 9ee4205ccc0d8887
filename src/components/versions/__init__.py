"""
Versions component - append-only article version ledger.
"""

from .component import (
    DEFAULT_APPEND_ATTEMPTS,
    VERSIONED_FIELDS,
    VersionLedger,
    touches_versioned_fields,
)

__all__ = [
    "DEFAULT_APPEND_ATTEMPTS",
    "VERSIONED_FIELDS",
    "VersionLedger",
    "touches_versioned_fields",
]
