"""
Database models package.
"""

from bookkeeper.models.recurring import RecurrenceRule, Frequency, EntryKind, TerminalReason
from bookkeeper.models.ledger import LedgerEntry, RECURRING_PAYMENT_SOURCE

__all__ = [
    "RecurrenceRule",
    "Frequency",
    "EntryKind",
    "TerminalReason",
    "LedgerEntry",
    "RECURRING_PAYMENT_SOURCE",
]
