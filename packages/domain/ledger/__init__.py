"""
Ledger Module - household income/expense sources and entries

Purchases post to the ledger automatically: one expense entry per line item,
filed under a source named after the store.
"""

from packages.domain.ledger.ledger_service import LedgerService, ledger_service
from packages.domain.ledger.schemas import (
    EntryType,
    LedgerEntryCreate,
    LedgerEntryOut,
    LedgerEntryUpdate,
    LedgerSourceCreate,
    MonthlySummary,
)

__all__ = [
    'LedgerService',
    'ledger_service',
    'EntryType',
    'LedgerEntryCreate',
    'LedgerEntryOut',
    'LedgerEntryUpdate',
    'LedgerSourceCreate',
    'MonthlySummary',
]
