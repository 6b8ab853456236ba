from typing import Optional

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware

from rewards.calculator import RewardCalculationError

from .config import LedgerSettings
from .errors import (
    DuplicateEventError,
    LedgerServiceError,
    RecordNotFoundError,
    UnknownTokenError,
    UpstreamUnavailableError,
)
from .logger import configure_structlog
from .models import (
    GnosisPayTransactionView,
    ProcessResult,
    RefundEvent,
    SafeAggregate,
    SpendEvent,
    WeekCashbackReward,
    WeekMetricsSnapshot,
)
from .service import LedgerService


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, DuplicateEventError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.to_dict())
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, UnknownTokenError):
        return HTTPException(status_code=422, detail=e.to_dict())
    if isinstance(e, UpstreamUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.to_dict())
    return HTTPException(status_code=status.HTTP_424_FAILED_DEPENDENCY, detail=e.to_dict())


def create_app(service: LedgerService, settings: Optional[LedgerSettings] = None) -> FastAPI:
    settings = settings or service.settings
    configure_structlog(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Gnosis Pay Cashback Ledger API",
        description="Idempotent spend/refund ledger with weekly cashback reward estimates",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "cashback-ledger"}

    @app.post("/events/spend", response_model=ProcessResult, status_code=status.HTTP_201_CREATED, tags=["Events"])
    def process_spend_event(event: SpendEvent) -> ProcessResult:
        try:
            return service.process_spend_event(event)
        except (LedgerServiceError, RewardCalculationError) as e:
            raise _to_http_error(e)

    @app.post("/events/refund", response_model=ProcessResult, status_code=status.HTTP_201_CREATED, tags=["Events"])
    def process_refund_event(event: RefundEvent) -> ProcessResult:
        try:
            return service.process_refund_event(event)
        except (LedgerServiceError, RewardCalculationError) as e:
            raise _to_http_error(e)

    @app.get("/weeks/current", response_model=WeekMetricsSnapshot, tags=["Weeks"])
    def get_current_week() -> WeekMetricsSnapshot:
        return service.get_current_week_metrics()

    @app.get("/weeks/{week_id}", response_model=WeekMetricsSnapshot, tags=["Weeks"])
    def get_week(week_id: str) -> WeekMetricsSnapshot:
        try:
            return service.get_week_metrics(week_id)
        except RecordNotFoundError as e:
            raise _to_http_error(e)

    @app.get("/weeks/{week_id}/safes/{safe_address}", response_model=WeekCashbackReward, tags=["Weeks"])
    def get_week_cashback_reward(week_id: str, safe_address: str) -> WeekCashbackReward:
        try:
            return service.get_week_cashback_reward(week_id, safe_address)
        except RecordNotFoundError as e:
            raise _to_http_error(e)

    @app.get("/safes/{safe_address}", response_model=SafeAggregate, tags=["Safes"])
    def get_safe(safe_address: str) -> SafeAggregate:
        try:
            return service.get_safe(safe_address)
        except RecordNotFoundError as e:
            raise _to_http_error(e)

    @app.get("/transactions/recent", response_model=list[GnosisPayTransactionView], tags=["Transactions"])
    def get_recent_transactions(limit: Optional[int] = Query(default=None, ge=1, le=100)) -> list[GnosisPayTransactionView]:
        return service.get_recent_transactions(limit)

    @app.get("/transactions/{transaction_hash}", response_model=GnosisPayTransactionView, tags=["Transactions"])
    def get_transaction(transaction_hash: str) -> GnosisPayTransactionView:
        try:
            return service.get_transaction(transaction_hash)
        except RecordNotFoundError as e:
            raise _to_http_error(e)

    return app
