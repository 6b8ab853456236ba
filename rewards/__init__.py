"""
Cashback Reward Rules

Provides the registry of spend-capable tokens, calendar week identifiers and
the tiered weekly reward calculator. Everything here is pure: no I/O, no state.
"""

from .calculator import (
    InvalidPriceError,
    RewardCalculationError,
    UnsupportedSettlementTokenError,
    calculate_reward_percentage,
    calculate_week_reward_amount,
    get_volume_threshold,
)
from .tokens import (
    GNO_TOKEN,
    GNOSIS_PAY_TOKENS,
    Token,
    get_gnosis_pay_token_by_address,
    get_priced_token_by_address,
)
from .weeks import current_week_id, previous_week_id, to_week_id, trailing_week_ids

__all__ = [
    "InvalidPriceError",
    "RewardCalculationError",
    "UnsupportedSettlementTokenError",
    "calculate_reward_percentage",
    "calculate_week_reward_amount",
    "get_volume_threshold",
    "GNO_TOKEN",
    "GNOSIS_PAY_TOKENS",
    "Token",
    "get_gnosis_pay_token_by_address",
    "get_priced_token_by_address",
    "current_week_id",
    "previous_week_id",
    "to_week_id",
    "trailing_week_ids",
]
