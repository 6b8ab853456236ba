"""
Pytest fixtures for the ledger tests: in-memory fakes of the chain RPC and
the price oracle, and helpers to build raw spend/refund events.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from cashback_ledger.config import LedgerSettings
from cashback_ledger.models import Block, RefundEvent, SpendEvent
from cashback_ledger.service import LedgerService
from cashback_ledger.storage import InMemoryStorage
from rewards.tokens import CIRCLE_USDC_TOKEN, GNO_TOKEN, MONERIUM_EURE_TOKEN

SAFE = "0x" + "a" * 40
MODULE = "0x" + "b" * 40
OWNER = "0x" + "c" * 40
OTHER_OWNER = "0x" + "d" * 40

WEEK_1 = "2024-02-25"
WEEK_2 = "2024-03-03"
WEEK_3 = "2024-03-10"


def ts(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


# block number -> timestamp
BLOCKS = {
    100: ts(2024, 2, 26, 9),
    101: ts(2024, 2, 27, 9),
    102: ts(2024, 2, 28, 9),
    200: ts(2024, 3, 4, 9),
    201: ts(2024, 3, 5, 9),
    202: ts(2024, 3, 6, 9),
    300: ts(2024, 3, 11, 9),
}


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def usdc(amount) -> int:
    return int(Decimal(str(amount)) * 10 ** CIRCLE_USDC_TOKEN.decimals)


def gno(amount) -> int:
    return int(Decimal(str(amount)) * 10 ** GNO_TOKEN.decimals)


def spend(n: int, block: int, amount, token: str = CIRCLE_USDC_TOKEN.address, module: str = MODULE) -> SpendEvent:
    decimals = 6 if token == CIRCLE_USDC_TOKEN.address else 18
    return SpendEvent(
        transaction_hash=tx_hash(n),
        block_number=block,
        module_address=module,
        token_address=token,
        amount_raw=int(Decimal(str(amount)) * 10 ** decimals),
    )


def refund(n: int, block: int, amount, safe: str = SAFE) -> RefundEvent:
    return RefundEvent(
        transaction_hash=tx_hash(n),
        block_number=block,
        safe_address=safe,
        token_address=CIRCLE_USDC_TOKEN.address,
        amount_raw=usdc(amount),
    )


class FakeChainClient:
    def __init__(self):
        self.blocks: dict[int, int] = dict(BLOCKS)
        self.modules: dict[str, str] = {MODULE: SAFE.upper().replace("0X", "0x")}
        self.owners: dict[str, list[str]] = {SAFE: [OWNER]}
        self.nft_holders: set[str] = set()
        self.gno_balances: dict[str, int] = {SAFE: gno("0.5")}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]

    def get_block_by_number(self, block_number: int) -> Optional[Block]:
        self._record("get_block_by_number")
        timestamp = self.blocks.get(block_number)
        return Block(number=block_number, timestamp=timestamp) if timestamp is not None else None

    def resolve_safe_from_module(self, module_address: str, block_number: int) -> Optional[str]:
        self._record("resolve_safe_from_module")
        return self.modules.get(module_address)

    def get_safe_owners(self, safe_address: str, block_number: int) -> Optional[list[str]]:
        self._record("get_safe_owners")
        return self.owners.get(safe_address)

    def has_eligibility_nft(self, owners: list[str]) -> list[bool]:
        self._record("has_eligibility_nft")
        return [owner in self.nft_holders for owner in owners]

    def get_token_balance(self, token_address: str, safe_address: str, block_number: int) -> int:
        self._record("get_token_balance")
        return self.gno_balances.get(safe_address, 0)


class FakePriceOracle:
    def __init__(self):
        self.prices: dict[str, Decimal] = {
            GNO_TOKEN.address: Decimal("100"),
            MONERIUM_EURE_TOKEN.address: Decimal("1.08"),
        }
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def get_oracle_price(self, token_address: str, block_number: int) -> Optional[Decimal]:
        self.calls.append(token_address)
        if token_address in self.errors:
            raise self.errors[token_address]
        return self.prices.get(token_address)


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def oracle():
    return FakePriceOracle()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def service(chain, oracle, storage):
    return LedgerService(chain, oracle, storage=storage, settings=LedgerSettings(max_workers=8))
