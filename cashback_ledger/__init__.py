"""
Gnosis Pay Cashback Ledger

This module provides:
- Validation and enrichment of on-chain spend and refund logs
- At-most-once posting keyed by transaction hash
- Atomic updates of the transaction, week reward, safe and week metrics records
- Negative net volume carried over into the following week
- Weekly cashback reward estimates
"""

from .errors import (
    BlockNotFoundError,
    DuplicateEventError,
    LedgerServiceError,
    OwnersNotFoundError,
    PriceUnavailableError,
    SafeNotFoundError,
    UnknownTokenError,
    UpstreamUnavailableError,
)
from .models import (
    GnosisPayTransaction,
    ProcessOutcome,
    ProcessResult,
    RefundEvent,
    SafeAggregate,
    SpendEvent,
    TransactionType,
    WeekCashbackReward,
    WeekMetricsSnapshot,
)
from .service import LedgerService
from .storage import InMemoryStorage

__all__ = [
    "BlockNotFoundError",
    "DuplicateEventError",
    "LedgerServiceError",
    "OwnersNotFoundError",
    "PriceUnavailableError",
    "SafeNotFoundError",
    "UnknownTokenError",
    "UpstreamUnavailableError",
    "GnosisPayTransaction",
    "ProcessOutcome",
    "ProcessResult",
    "RefundEvent",
    "SafeAggregate",
    "SpendEvent",
    "TransactionType",
    "WeekCashbackReward",
    "WeekMetricsSnapshot",
    "LedgerService",
    "InMemoryStorage",
]
