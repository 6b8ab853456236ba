from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from rewards.calculator import RewardCalculationError, calculate_week_reward_amount
from rewards.tokens import get_gnosis_pay_token_by_address
from rewards.weeks import current_week_id, previous_week_id, trailing_week_ids

from .chain import ChainClient, PriceOracle
from .config import LedgerSettings
from .enrichment import EventEnricher
from .errors import (
    DuplicateEventError,
    DuplicateKeyError,
    LedgerServiceError,
    RecordNotFoundError,
    UpstreamUnavailableError,
)
from .logger import get_logger
from .models import (
    GnosisPayTransaction,
    GnosisPayTransactionView,
    PendingTransaction,
    ProcessOutcome,
    ProcessResult,
    RawEvent,
    RefundEvent,
    SafeAggregate,
    SafeContext,
    SpendEvent,
    TokenInfo,
    WeekCashbackReward,
    WeekMetricsSnapshot,
    to_week_reward_id,
)
from .storage import (
    SAFES,
    TRANSACTIONS,
    WEEK_CASHBACK_REWARDS,
    WEEK_METRICS_SNAPSHOTS,
    InMemoryStorage,
    StorageTransaction,
)

logger = get_logger(__name__)

TRAILING_WEEKS = 4


def calculate_net_usd_volume(transactions: Iterable[GnosisPayTransaction]) -> Decimal:
    """Spends count positive, refunds negative."""
    return sum((t.signed_usd_amount for t in transactions), Decimal("0"))


class LedgerService:
    def __init__(
        self,
        chain: ChainClient,
        oracle: PriceOracle,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.settings = settings or LedgerSettings()
        self.enricher = EventEnricher(chain, oracle)

    def process_spend_event(self, event: SpendEvent) -> ProcessResult:
        return self._process(event)

    def process_refund_event(self, event: RefundEvent) -> ProcessResult:
        return self._process(event)

    def process_event(self, event: RawEvent) -> ProcessResult:
        if isinstance(event, SpendEvent):
            return self.process_spend_event(event)
        return self.process_refund_event(event)

    def process_events(self, events: list[RawEvent], max_workers: Optional[int] = None) -> list[ProcessOutcome]:
        """Process independent events in parallel; outcomes keep input order."""
        workers = max_workers or self.settings.max_workers
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._process_outcome, events))

    def already_processed(self, transaction_hash: str) -> bool:
        tx_hash = transaction_hash.lower()
        try:
            return self.storage.exists(TRANSACTIONS, tx_hash)
        except Exception as e:
            raise UpstreamUnavailableError(
                "Ledger store lookup failed", transaction_hash=tx_hash, stage="idempotency", original_error=e,
            ) from e

    def write(self, pending: PendingTransaction) -> ProcessResult:
        """Post one enriched transaction and its three aggregates atomically."""
        transaction = pending.transaction
        try:
            with self.storage.transaction() as tx:
                result = self._write(tx, transaction, pending.safe)
        except DuplicateKeyError as e:
            raise DuplicateEventError(
                f"Log {transaction.id} already processed", transaction_hash=transaction.id, stage="write",
            ) from e
        except (LedgerServiceError, RewardCalculationError) as e:
            e.stage = e.stage or "write"
            raise
        except Exception as e:
            raise UpstreamUnavailableError(
                "Ledger write failed", transaction_hash=transaction.id, stage="write", original_error=e,
            ) from e
        return result

    def get_transaction(self, transaction_hash: str) -> GnosisPayTransactionView:
        record = self.storage.find_by_id(TRANSACTIONS, transaction_hash.lower())
        if not record:
            raise RecordNotFoundError(f"Transaction {transaction_hash} not found")
        return self._to_view(GnosisPayTransaction(**record))

    def get_recent_transactions(self, limit: Optional[int] = None) -> list[GnosisPayTransactionView]:
        limit = limit or self.settings.recent_transactions_limit
        transactions = [GnosisPayTransaction(**r) for r in self.storage.find(TRANSACTIONS)]
        transactions.sort(key=lambda t: t.block_number, reverse=True)
        return [self._to_view(t) for t in transactions[:limit]]

    def get_safe(self, safe_address: str) -> SafeAggregate:
        record = self.storage.find_by_id(SAFES, safe_address.lower())
        if not record:
            raise RecordNotFoundError(f"Safe {safe_address} not found")
        return SafeAggregate(**record)

    def get_week_cashback_reward(self, week_id: str, safe_address: str) -> WeekCashbackReward:
        record = self.storage.find_by_id(WEEK_CASHBACK_REWARDS, to_week_reward_id(week_id, safe_address))
        if not record:
            raise RecordNotFoundError(f"No cashback reward for {safe_address} in week {week_id}")
        return WeekCashbackReward(**record)

    def get_week_metrics(self, week_id: str) -> WeekMetricsSnapshot:
        record = self.storage.find_by_id(WEEK_METRICS_SNAPSHOTS, week_id)
        if not record:
            raise RecordNotFoundError(f"No metrics for week {week_id}")
        return WeekMetricsSnapshot(**record)

    def get_current_week_metrics(self, now: Optional[datetime] = None) -> WeekMetricsSnapshot:
        week_id = current_week_id(now)
        record = self.storage.find_by_id(WEEK_METRICS_SNAPSHOTS, week_id)
        return WeekMetricsSnapshot(**record) if record else WeekMetricsSnapshot(id=week_id, week=week_id)

    def _process(self, event: RawEvent) -> ProcessResult:
        tx_hash = event.transaction_hash
        logger.info("event_received", transaction_hash=tx_hash, kind=event.type.value, block_number=event.block_number)
        try:
            # Advisory only; the unique key checked inside the write is authoritative.
            if self.already_processed(tx_hash):
                raise DuplicateEventError(
                    f"Log {tx_hash} already processed", transaction_hash=tx_hash, stage="idempotency",
                )
            pending = self.enricher.enrich(event)
            result = self.write(pending)
        except DuplicateEventError as e:
            logger.info("event_duplicate", transaction_hash=tx_hash, stage=e.stage)
            raise
        except (LedgerServiceError, RewardCalculationError) as e:
            e.transaction_hash = e.transaction_hash or tx_hash
            logger.warning("event_failed", **e.to_dict())
            raise

        reward = result.week_cashback_reward
        logger.info(
            "ledger_written", transaction_hash=tx_hash, safe_address=reward.safe, week_id=reward.week,
            net_usd_volume=str(reward.net_usd_volume), estimated_reward=str(reward.estimated_reward),
        )
        return result

    def _process_outcome(self, event: RawEvent) -> ProcessOutcome:
        try:
            return ProcessOutcome(transaction_hash=event.transaction_hash, result=self._process(event))
        except DuplicateEventError as e:
            return ProcessOutcome(transaction_hash=event.transaction_hash, duplicate=True, error=e.to_dict())
        except (LedgerServiceError, RewardCalculationError) as e:
            return ProcessOutcome(transaction_hash=event.transaction_hash, error=e.to_dict())
        except Exception as e:
            # Every event in a batch yields an outcome.
            error = UpstreamUnavailableError(
                f"Unexpected failure: {e!r}", transaction_hash=event.transaction_hash, stage="process", original_error=e,
            )
            logger.warning("event_failed", **error.to_dict())
            return ProcessOutcome(transaction_hash=event.transaction_hash, error=error.to_dict())

    def _write(self, tx: StorageTransaction, transaction: GnosisPayTransaction, safe: SafeContext) -> ProcessResult:
        if tx.find_by_id(TRANSACTIONS, transaction.id) is not None:
            raise DuplicateKeyError(TRANSACTIONS, transaction.id)
        tx.insert(TRANSACTIONS, transaction.id, transaction.model_dump())

        week_reward = self._update_week_cashback_reward(tx, transaction, safe)
        self._update_safe(tx, transaction, safe)
        week_metrics = self._update_week_metrics(tx, transaction)

        return ProcessResult(
            transaction=self._to_view(transaction),
            week_cashback_reward=week_reward,
            week_metrics_snapshot=week_metrics,
        )

    def _update_week_cashback_reward(
        self, tx: StorageTransaction, transaction: GnosisPayTransaction, safe: SafeContext
    ) -> WeekCashbackReward:
        week_id = transaction.week_id
        reward_id = to_week_reward_id(week_id, safe.safe_address)
        record, _ = tx.get_or_insert(
            WEEK_CASHBACK_REWARDS,
            reward_id,
            lambda: WeekCashbackReward(
                id=reward_id, safe=safe.safe_address, week=week_id,
                max_gno_balance=safe.gno_balance, min_gno_balance=safe.gno_balance,
            ).model_dump(),
        )
        week_reward = WeekCashbackReward(**record)

        if week_reward.is_first_transaction():
            week_reward.net_usd_volume = (
                self._negative_carry_over(tx, week_id, safe.safe_address) + transaction.signed_usd_amount
            )
        else:
            week_reward.net_usd_volume += transaction.signed_usd_amount

        week_reward.max_gno_balance = max(week_reward.max_gno_balance, safe.gno_balance)
        week_reward.min_gno_balance = min(week_reward.min_gno_balance, safe.gno_balance)

        week_reward.estimated_reward = calculate_week_reward_amount(
            gno_usd_price=transaction.gno_usd_price,
            is_og_nft_holder=safe.is_og,
            week_usd_volume=week_reward.net_usd_volume,
            gno_balance=safe.gno_balance,
            four_weeks_usd_volume=self._trailing_usd_volume(tx, week_id, safe.safe_address),
            settlement_token=self.settings.settlement_token,
        )
        week_reward.transactions.append(transaction.id)
        tx.save(WEEK_CASHBACK_REWARDS, reward_id, week_reward.model_dump())
        return week_reward

    def _negative_carry_over(self, tx: StorageTransaction, week_id: str, safe_address: str) -> Decimal:
        previous = tx.find_by_id(WEEK_CASHBACK_REWARDS, to_week_reward_id(previous_week_id(week_id), safe_address))
        if previous is None:
            return Decimal("0")
        previous_volume = Decimal(previous["net_usd_volume"])
        return previous_volume if previous_volume < 0 else Decimal("0")

    def _trailing_usd_volume(self, tx: StorageTransaction, week_id: str, safe_address: str) -> Decimal:
        weeks = set(trailing_week_ids(week_id, TRAILING_WEEKS))
        records = tx.find(TRANSACTIONS, lambda r: r["safe_address"] == safe_address and r["week_id"] in weeks)
        return calculate_net_usd_volume(GnosisPayTransaction(**r) for r in records)

    def _update_safe(self, tx: StorageTransaction, transaction: GnosisPayTransaction, safe: SafeContext) -> SafeAggregate:
        address = safe.safe_address
        record, _ = tx.get_or_insert(
            SAFES,
            address,
            lambda: SafeAggregate(id=address, address=address, owners=safe.owners, is_og=safe.is_og).model_dump(),
        )
        aggregate = SafeAggregate(**record)

        # Full recompute over every transaction of the safe, including the one staged above.
        # TODO: index transactions by safe_address; this scans the whole collection per write.
        all_transactions = tx.find(TRANSACTIONS, lambda r: r["safe_address"] == address)
        aggregate.net_usd_volume = calculate_net_usd_volume(GnosisPayTransaction(**r) for r in all_transactions)
        aggregate.gno_balance = safe.gno_balance
        aggregate.owners = safe.owners
        aggregate.is_og = safe.is_og
        aggregate.transactions.append(transaction.id)
        tx.save(SAFES, address, aggregate.model_dump())
        return aggregate

    def _update_week_metrics(self, tx: StorageTransaction, transaction: GnosisPayTransaction) -> WeekMetricsSnapshot:
        week_id = transaction.week_id
        record, _ = tx.get_or_insert(
            WEEK_METRICS_SNAPSHOTS, week_id, lambda: WeekMetricsSnapshot(id=week_id, week=week_id).model_dump(),
        )
        snapshot = WeekMetricsSnapshot(**record)
        snapshot.transactions.append(transaction.id)
        tx.save(WEEK_METRICS_SNAPSHOTS, week_id, snapshot.model_dump())
        return snapshot

    def _to_view(self, transaction: GnosisPayTransaction) -> GnosisPayTransactionView:
        token = get_gnosis_pay_token_by_address(transaction.amount_token)
        data = transaction.model_dump()
        data["amount_token"] = TokenInfo(**token.to_dict())
        return GnosisPayTransactionView(**data)
