import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from rewards.calculator import DEFAULT_SETTLEMENT_TOKEN, get_volume_threshold


class LedgerSettings(BaseModel):
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")
    max_workers: int = Field(default=4, ge=1)
    settlement_token: str = Field(default=DEFAULT_SETTLEMENT_TOKEN)
    recent_transactions_limit: int = Field(default=10, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("json", "console"):
            raise ValueError(f"Unknown log format {value}")
        return value

    @field_validator("settlement_token")
    @classmethod
    def validate_settlement_token(cls, value: str) -> str:
        value = value.strip().lower()
        get_volume_threshold(value)
        return value

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "LedgerSettings":
        env = os.environ if environ is None else environ
        values = {
            "log_level": env.get("LOG_LEVEL"),
            "log_format": env.get("LOG_FORMAT"),
            "max_workers": env.get("LEDGER_MAX_WORKERS"),
            "settlement_token": env.get("LEDGER_SETTLEMENT_TOKEN"),
            "recent_transactions_limit": env.get("LEDGER_RECENT_TRANSACTIONS_LIMIT"),
        }
        return cls(**{k: v for k, v in values.items() if v})
