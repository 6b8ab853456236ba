import pytest

from cashback_ledger.errors import DuplicateKeyError
from cashback_ledger.storage import SAFES, TRANSACTIONS, InMemoryStorage


class TestStorageTransaction:
    def test_commit_applies_staged_writes(self):
        storage = InMemoryStorage()
        with storage.transaction() as tx:
            tx.insert(TRANSACTIONS, "0x1", {"id": "0x1"})
            assert storage.find_by_id(TRANSACTIONS, "0x1") is None
            assert tx.find_by_id(TRANSACTIONS, "0x1") == {"id": "0x1"}

        assert storage.find_by_id(TRANSACTIONS, "0x1") == {"id": "0x1"}

    def test_exception_rolls_back(self):
        storage = InMemoryStorage()
        with pytest.raises(ValueError):
            with storage.transaction() as tx:
                tx.insert(TRANSACTIONS, "0x1", {"id": "0x1"})
                tx.save(SAFES, "0xsafe", {"id": "0xsafe"})
                raise ValueError("boom")

        assert storage.find(TRANSACTIONS) == []
        assert storage.find(SAFES) == []

    def test_insert_enforces_unique_key(self):
        storage = InMemoryStorage()
        with storage.transaction() as tx:
            tx.insert(TRANSACTIONS, "0x1", {"id": "0x1"})
            with pytest.raises(DuplicateKeyError):
                tx.insert(TRANSACTIONS, "0x1", {"id": "0x1"})

        with pytest.raises(DuplicateKeyError) as exc_info:
            with storage.transaction() as tx:
                tx.insert(TRANSACTIONS, "0x1", {"id": "0x1", "other": True})
        assert exc_info.value.collection == TRANSACTIONS
        assert storage.find_by_id(TRANSACTIONS, "0x1") == {"id": "0x1"}

    def test_get_or_insert(self):
        storage = InMemoryStorage()
        with storage.transaction() as tx:
            record, created = tx.get_or_insert(SAFES, "0xsafe", lambda: {"id": "0xsafe", "n": 0})
            assert created is True
            record["n"] = 1
            tx.save(SAFES, "0xsafe", record)

            again, created = tx.get_or_insert(SAFES, "0xsafe", lambda: {"id": "0xsafe", "n": 0})
            assert created is False
            assert again["n"] == 1

    def test_find_merges_staged_records(self):
        storage = InMemoryStorage()
        with storage.transaction() as tx:
            tx.insert(TRANSACTIONS, "0x1", {"safe": "a"})
        with storage.transaction() as tx:
            tx.insert(TRANSACTIONS, "0x2", {"safe": "a"})
            tx.insert(TRANSACTIONS, "0x3", {"safe": "b"})
            assert len(tx.find(TRANSACTIONS, lambda r: r["safe"] == "a")) == 2

    def test_reads_are_copies(self):
        storage = InMemoryStorage()
        with storage.transaction() as tx:
            tx.insert(SAFES, "0xsafe", {"transactions": []})
        storage.find_by_id(SAFES, "0xsafe")["transactions"].append("0x1")
        assert storage.find_by_id(SAFES, "0xsafe") == {"transactions": []}

    def test_closed_transaction_rejects_use(self):
        storage = InMemoryStorage()
        with storage.transaction() as tx:
            pass
        with pytest.raises(RuntimeError):
            tx.insert(TRANSACTIONS, "0x1", {})
