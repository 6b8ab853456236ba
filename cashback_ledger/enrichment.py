"""
Event validation and enrichment.

Turns one raw spend or refund log into a fully populated, not yet persisted
transaction plus the safe context it was made in. Steps run sequentially
because each depends on values resolved by the previous one. Nothing here
writes to the ledger, so a failure at any step leaves no trace.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from rewards.tokens import GNO_TOKEN, Token, get_gnosis_pay_token_by_address, get_priced_token_by_address
from rewards.weeks import to_week_id

from .chain import ChainClient, PriceOracle
from .errors import (
    BlockNotFoundError,
    LedgerServiceError,
    OwnersNotFoundError,
    PriceUnavailableError,
    SafeNotFoundError,
    UnknownTokenError,
    UpstreamUnavailableError,
)
from .logger import get_logger
from .models import (
    ADDRESS_PATTERN,
    Block,
    GnosisPayTransaction,
    PendingTransaction,
    RawEvent,
    SafeContext,
    SpendEvent,
)

logger = get_logger(__name__)

USD_PEGGED_PRICE = Decimal("1")


def to_decimal_amount(amount_raw: int, decimals: int) -> Decimal:
    return Decimal(int(amount_raw)).scaleb(-decimals)


class EventEnricher:
    def __init__(self, chain: ChainClient, oracle: PriceOracle):
        self.chain = chain
        self.oracle = oracle

    def enrich(self, event: RawEvent) -> PendingTransaction:
        tx_hash = event.transaction_hash
        block_number = event.block_number

        token = self.validate_token(event.token_address, tx_hash)
        block = self.get_block(block_number, tx_hash)

        if isinstance(event, SpendEvent):
            safe_address = self.resolve_safe(event.module_address, block_number, tx_hash)
        else:
            safe_address = event.safe_address

        owners = self.get_safe_owners(safe_address, block_number, tx_hash)
        is_og = self.has_og_nft(owners, tx_hash)

        gno_balance_raw = self.get_gno_balance(safe_address, block_number, tx_hash)
        gno_balance = to_decimal_amount(gno_balance_raw, GNO_TOKEN.decimals)

        token_usd_price = self.get_token_usd_price(token.address, block_number, tx_hash)
        gno_usd_price = self.get_token_usd_price(GNO_TOKEN.address, block_number, tx_hash)

        amount = to_decimal_amount(event.amount_raw, token.decimals)

        transaction = GnosisPayTransaction(
            id=tx_hash,
            type=event.type,
            block_number=block.number,
            block_timestamp=block.timestamp,
            transaction_hash=tx_hash,
            amount_raw=str(event.amount_raw),
            amount=amount,
            amount_usd=amount * token_usd_price,
            amount_token=token.address,
            gno_balance_raw=str(gno_balance_raw),
            gno_balance=gno_balance,
            gno_usd_price=gno_usd_price,
            safe_address=safe_address,
            week_id=to_week_id(block.timestamp),
        )
        logger.debug(
            "event_enriched", transaction_hash=tx_hash, safe_address=safe_address,
            week_id=transaction.week_id, amount_usd=str(transaction.amount_usd),
        )
        return PendingTransaction(
            transaction=transaction,
            safe=SafeContext(
                safe_address=safe_address, owners=owners, is_og=is_og,
                gno_balance=gno_balance, gno_balance_raw=gno_balance_raw,
            ),
        )

    def validate_token(self, token_address: str, tx_hash: str) -> Token:
        token = get_gnosis_pay_token_by_address(token_address)
        if token is None:
            raise UnknownTokenError(
                f"Unknown token: {token_address}", transaction_hash=tx_hash, stage="token",
            )
        return token

    def get_block(self, block_number: int, tx_hash: str) -> Block:
        block = self._call("block", tx_hash, self.chain.get_block_by_number, block_number)
        if block is None:
            raise BlockNotFoundError(f"Block #{block_number} not found", transaction_hash=tx_hash, stage="block")
        return block

    def resolve_safe(self, module_address: str, block_number: int, tx_hash: str) -> str:
        safe_address = self._call("safe", tx_hash, self.chain.resolve_safe_from_module, module_address, block_number)
        if not safe_address:
            raise SafeNotFoundError(
                f"No safe found for module {module_address} at block #{block_number}",
                transaction_hash=tx_hash, stage="safe",
            )
        safe_address = str(safe_address).strip().lower()
        if not re.fullmatch(ADDRESS_PATTERN, safe_address):
            raise UpstreamUnavailableError(
                f"Module {module_address} resolved to malformed safe address {safe_address!r}",
                transaction_hash=tx_hash, stage="safe",
            )
        return safe_address

    def get_safe_owners(self, safe_address: str, block_number: int, tx_hash: str) -> list[str]:
        owners = self._call("owners", tx_hash, self.chain.get_safe_owners, safe_address, block_number)
        if not owners:
            raise OwnersNotFoundError(
                f"Owners not found for safe address {safe_address}", transaction_hash=tx_hash, stage="owners",
            )
        return [owner.lower() for owner in owners]

    def has_og_nft(self, owners: list[str], tx_hash: str) -> bool:
        flags = self._call("nft", tx_hash, self.chain.has_eligibility_nft, owners)
        if not isinstance(flags, (list, tuple)) or len(flags) != len(owners):
            raise UpstreamUnavailableError(
                f"has_eligibility_nft returned {flags!r} for {len(owners)} owners", transaction_hash=tx_hash, stage="nft",
            )
        return any(flags)

    def get_gno_balance(self, safe_address: str, block_number: int, tx_hash: str) -> int:
        balance = self._call("balance", tx_hash, self.chain.get_token_balance, GNO_TOKEN.address, safe_address, block_number)
        try:
            balance = int(balance)
        except (TypeError, ValueError) as e:
            raise UpstreamUnavailableError(
                f"Malformed GNO balance {balance!r}", transaction_hash=tx_hash, stage="balance", original_error=e,
            ) from e
        if balance < 0:
            raise UpstreamUnavailableError(f"Negative GNO balance {balance}", transaction_hash=tx_hash, stage="balance")
        return balance

    def get_token_usd_price(self, token_address: str, block_number: int, tx_hash: str) -> Decimal:
        token = get_priced_token_by_address(token_address)
        if token is None:
            raise UnknownTokenError(
                f"Token {token_address} is not registered for pricing", transaction_hash=tx_hash, stage="price",
            )
        if token.usd_pegged:
            return USD_PEGGED_PRICE

        price: Optional[Decimal] = self._call("price", tx_hash, self.oracle.get_oracle_price, token.address, block_number)
        if price is None:
            raise PriceUnavailableError(
                f"No {token.symbol} price at block #{block_number}",
                transaction_hash=tx_hash, stage="price", context={"token": token.address},
            )
        try:
            value = Decimal(str(price))
        except InvalidOperation:
            value = None
        if value is None or not value.is_finite():
            raise PriceUnavailableError(
                f"Malformed {token.symbol} price {price!r} at block #{block_number}",
                transaction_hash=tx_hash, stage="price", context={"token": token.address},
            )
        return value

    def _call(self, stage: str, tx_hash: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except LedgerServiceError:
            raise
        except Exception as e:
            raise UpstreamUnavailableError(
                f"{getattr(fn, '__name__', stage)} failed", transaction_hash=tx_hash, stage=stage, original_error=e,
            ) from e
