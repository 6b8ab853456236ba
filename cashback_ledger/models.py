from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransactionType(str, Enum):
    SPEND = "Spend"
    REFUND = "Refund"


HASH_PATTERN = r"^0x[0-9a-f]{64}$"
ADDRESS_PATTERN = r"^0x[0-9a-f]{40}$"


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class SpendEvent(BaseModel):
    transaction_hash: str = Field(..., pattern=HASH_PATTERN, description="Hash of the transaction that emitted the log")
    block_number: int = Field(..., ge=0)
    module_address: str = Field(..., pattern=ADDRESS_PATTERN, description="Roles module that executed the spend")
    token_address: str = Field(..., pattern=ADDRESS_PATTERN)
    amount_raw: int = Field(..., ge=0, description="Amount in token-native units")

    @field_validator("transaction_hash", "module_address", "token_address", mode="before")
    @classmethod
    def normalize_hex(cls, value: str) -> str:
        return _lower(value)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "transaction_hash": "0x5f0b9a1e3a3c2b8a7a1d40d3d7e6e09e5b1c2d3f4a5b6c7d8e9f0a1b2c3d4e5f",
            "block_number": 35000000,
            "module_address": "0x1111111111111111111111111111111111111111",
            "token_address": "0xcb444e90d8198415266c6a2724b7900fb12fc56e",
            "amount_raw": 25000000000000000000,
        }
    })

    @property
    def type(self) -> TransactionType:
        return TransactionType.SPEND


class RefundEvent(BaseModel):
    transaction_hash: str = Field(..., pattern=HASH_PATTERN)
    block_number: int = Field(..., ge=0)
    safe_address: str = Field(..., pattern=ADDRESS_PATTERN, description="Safe receiving the refund transfer")
    token_address: str = Field(..., pattern=ADDRESS_PATTERN)
    amount_raw: int = Field(..., ge=0)

    @field_validator("transaction_hash", "safe_address", "token_address", mode="before")
    @classmethod
    def normalize_hex(cls, value: str) -> str:
        return _lower(value)

    @property
    def type(self) -> TransactionType:
        return TransactionType.REFUND


RawEvent = Union[SpendEvent, RefundEvent]


class Block(BaseModel):
    number: int
    timestamp: int


class GnosisPayTransaction(BaseModel):
    id: str = Field(..., description="Transaction hash, unique ledger key")
    type: TransactionType
    block_number: int
    block_timestamp: int
    transaction_hash: str
    amount_raw: str
    amount: Decimal
    amount_usd: Decimal
    amount_token: str
    gno_balance_raw: str
    gno_balance: Decimal
    gno_usd_price: Decimal
    safe_address: str
    week_id: str

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def signed_usd_amount(self) -> Decimal:
        return self.amount_usd if self.type == TransactionType.SPEND else -self.amount_usd


class TokenInfo(BaseModel):
    address: str
    symbol: str
    name: str
    decimals: int
    currency: str


class GnosisPayTransactionView(BaseModel):
    """A transaction with its token resolved, for display."""
    id: str
    type: TransactionType
    block_number: int
    block_timestamp: int
    transaction_hash: str
    amount_raw: str
    amount: Decimal
    amount_usd: Decimal
    amount_token: TokenInfo
    gno_balance_raw: str
    gno_balance: Decimal
    gno_usd_price: Decimal
    safe_address: str
    week_id: str


class SafeContext(BaseModel):
    safe_address: str
    owners: list[str]
    is_og: bool
    gno_balance: Decimal
    gno_balance_raw: int


class PendingTransaction(BaseModel):
    transaction: GnosisPayTransaction
    safe: SafeContext


class SafeAggregate(BaseModel):
    id: str
    address: str
    net_usd_volume: Decimal = Decimal("0")
    gno_balance: Decimal = Decimal("0")
    owners: list[str] = Field(default_factory=list)
    is_og: bool = False
    transactions: list[str] = Field(default_factory=list)
    gno_balance_snapshots: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


def to_week_reward_id(week_id: str, safe_address: str) -> str:
    return f"{week_id}/{_lower(safe_address)}"


class WeekCashbackReward(BaseModel):
    id: str = Field(..., description="week/safe, e.g. 2024-03-03/0x12...ab")
    safe: str
    week: str
    estimated_reward: Decimal = Decimal("0")
    earned_reward: Optional[Decimal] = None
    max_gno_balance: Decimal = Decimal("0")
    min_gno_balance: Decimal = Decimal("0")
    net_usd_volume: Decimal = Decimal("0")
    transactions: list[str] = Field(default_factory=list)
    gno_balance_snapshots: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    def is_first_transaction(self) -> bool:
        return not self.transactions


class WeekMetricsSnapshot(BaseModel):
    id: str
    week: str
    transactions: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ProcessResult(BaseModel):
    transaction: GnosisPayTransactionView
    week_cashback_reward: WeekCashbackReward
    week_metrics_snapshot: WeekMetricsSnapshot


class ProcessOutcome(BaseModel):
    transaction_hash: str
    result: Optional[ProcessResult] = None
    duplicate: bool = False
    error: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return self.result is not None
