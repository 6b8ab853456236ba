"""
Ledger pipeline exceptions.

Every failure carries the transaction hash and the pipeline stage it happened
in so the event can be replayed once the underlying condition clears.
"""

from typing import Any, Optional


class LedgerServiceError(Exception):
    """Base exception for all ledger pipeline errors."""

    def __init__(
        self,
        message: str,
        transaction_hash: Optional[str] = None,
        stage: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.transaction_hash = transaction_hash
        self.stage = stage
        self.original_error = original_error
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "transaction_hash": self.transaction_hash,
            "stage": self.stage,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.stage:
            parts.append(f"[stage={self.stage}]")
        if self.transaction_hash:
            parts.append(f"[tx={self.transaction_hash}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class DuplicateEventError(LedgerServiceError):
    """The transaction hash is already in the ledger. Benign under retries."""


class UnknownTokenError(LedgerServiceError):
    pass


class BlockNotFoundError(LedgerServiceError):
    pass


class OwnersNotFoundError(LedgerServiceError):
    pass


class SafeNotFoundError(OwnersNotFoundError):
    """The spending module could not be resolved to a safe."""


class PriceUnavailableError(LedgerServiceError):
    pass


class UpstreamUnavailableError(LedgerServiceError):
    """Transport failure in the RPC, the price oracle or the ledger store."""


class RecordNotFoundError(LedgerServiceError):
    pass


class DuplicateKeyError(Exception):
    """Raised by the store when an insert collides with an existing key."""

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"Duplicate key {key!r} in {collection}")
        self.collection = collection
        self.key = key
