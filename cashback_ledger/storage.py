import copy
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from .errors import DuplicateKeyError

TRANSACTIONS = "gnosis_pay_transactions"
SAFES = "gnosis_pay_safe_addresses"
WEEK_CASHBACK_REWARDS = "week_cashback_rewards"
WEEK_METRICS_SNAPSHOTS = "week_metrics_snapshots"

COLLECTIONS = (TRANSACTIONS, SAFES, WEEK_CASHBACK_REWARDS, WEEK_METRICS_SNAPSHOTS)

Predicate = Callable[[dict], bool]


class InMemoryStorage:
    """
    Document store keyed by collection and id.

    Writes only happen inside :meth:`transaction`. Transactions are serialized
    by a single re-entrant lock, so concurrent writers always observe each
    other's committed state and never lose updates. Reads outside a
    transaction see committed data only.
    """

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {name: {} for name in COLLECTIONS}
        self._lock = threading.RLock()

    def find_by_id(self, collection: str, key: str) -> Optional[dict]:
        with self._lock:
            record = self.collections[collection].get(key)
            return copy.deepcopy(record) if record is not None else None

    def exists(self, collection: str, key: str) -> bool:
        with self._lock:
            return key in self.collections[collection]

    def find(self, collection: str, predicate: Optional[Predicate] = None) -> list[dict]:
        with self._lock:
            return [
                copy.deepcopy(r) for r in self.collections[collection].values()
                if predicate is None or predicate(r)
            ]

    @contextmanager
    def transaction(self) -> Iterator["StorageTransaction"]:
        with self._lock:
            tx = StorageTransaction(self)
            try:
                yield tx
            except BaseException:
                tx.rollback()
                raise
            tx.commit()

    def _apply(self, staged: dict[tuple[str, str], dict]) -> None:
        for (collection, key), record in staged.items():
            self.collections[collection][key] = record


class StorageTransaction:
    """Staged writes over an :class:`InMemoryStorage`; applied on commit only."""

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage
        self._staged: dict[tuple[str, str], dict] = {}
        self._closed = False

    def find_by_id(self, collection: str, key: str) -> Optional[dict]:
        self._check_open()
        if (collection, key) in self._staged:
            return copy.deepcopy(self._staged[(collection, key)])
        return self.storage.find_by_id(collection, key)

    def find(self, collection: str, predicate: Optional[Predicate] = None) -> list[dict]:
        self._check_open()
        merged = {
            key: record for key, record in self.storage.collections[collection].items()
        }
        for (staged_collection, key), record in self._staged.items():
            if staged_collection == collection:
                merged[key] = record
        return [copy.deepcopy(r) for r in merged.values() if predicate is None or predicate(r)]

    def insert(self, collection: str, key: str, record: dict) -> dict:
        """Insert a new record, enforcing key uniqueness."""
        self._check_open()
        if (collection, key) in self._staged or self.storage.exists(collection, key):
            raise DuplicateKeyError(collection, key)
        self._staged[(collection, key)] = copy.deepcopy(record)
        return record

    def save(self, collection: str, key: str, record: dict) -> dict:
        self._check_open()
        self._staged[(collection, key)] = copy.deepcopy(record)
        return record

    def get_or_insert(self, collection: str, key: str, default_factory: Callable[[], dict]) -> tuple[dict, bool]:
        """Return ``(record, created)``; a missing record is staged from ``default_factory``."""
        existing = self.find_by_id(collection, key)
        if existing is not None:
            return existing, False
        record = default_factory()
        self.insert(collection, key, record)
        return record, True

    def commit(self) -> None:
        self._check_open()
        self.storage._apply(self._staged)
        self._closed = True

    def rollback(self) -> None:
        self._staged.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Storage transaction already closed")
