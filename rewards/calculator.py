from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from .tokens import (
    CIRCLE_USDC_TOKEN,
    MONERIUM_EURE_TOKEN,
    MONERIUM_GBPE_TOKEN,
    USDC_BRIDGE_TOKEN,
    get_gnosis_pay_token_by_address,
    normalize_address,
)

Number = Union[Decimal, int, str]


class RewardCalculationError(ValueError):
    def __init__(self, message: str, transaction_hash: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.transaction_hash = transaction_hash
        self.stage = stage

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "transaction_hash": self.transaction_hash,
            "stage": self.stage,
        }


class InvalidPriceError(RewardCalculationError):
    pass


class UnsupportedSettlementTokenError(RewardCalculationError):
    pass


# A maximum of USD 22,000, EUR 20,000 or GBP 18,000 per month accrues rewards.
MONTH_TO_DATE_USD_VOLUME_THRESHOLD: dict[str, Decimal] = {
    CIRCLE_USDC_TOKEN.address: Decimal("22000"),
    USDC_BRIDGE_TOKEN.address: Decimal("22000"),
    MONERIUM_EURE_TOKEN.address: Decimal("20000"),
    MONERIUM_GBPE_TOKEN.address: Decimal("18000"),
}

DEFAULT_SETTLEMENT_TOKEN = CIRCLE_USDC_TOKEN.address

OG_NFT_HOLDER_BONUS_PERCENTAGE = Decimal("1")
MAX_REWARD_PERCENTAGE = Decimal("4")


@dataclass(frozen=True)
class RewardBand:
    """Balances in [floor, ceiling) earn base_percentage plus up to 1% more, linearly."""
    floor: Decimal
    ceiling: Decimal
    base_percentage: Decimal

    def contains(self, gno_balance: Decimal) -> bool:
        return self.floor <= gno_balance < self.ceiling

    def percentage(self, gno_balance: Decimal) -> Decimal:
        return self.base_percentage + (gno_balance - self.floor) / (self.ceiling - self.floor)


REWARD_BANDS: tuple[RewardBand, ...] = (
    RewardBand(floor=Decimal("0.1"), ceiling=Decimal("1"), base_percentage=Decimal("1")),
    RewardBand(floor=Decimal("1"), ceiling=Decimal("10"), base_percentage=Decimal("2")),
    RewardBand(floor=Decimal("10"), ceiling=Decimal("100"), base_percentage=Decimal("3")),
)

MIN_ELIGIBLE_GNO_BALANCE = REWARD_BANDS[0].floor
MAX_BAND_GNO_BALANCE = REWARD_BANDS[-1].ceiling


def _validate_tables() -> None:
    for address, threshold in MONTH_TO_DATE_USD_VOLUME_THRESHOLD.items():
        if get_gnosis_pay_token_by_address(address) is None:
            raise ValueError(f"Volume threshold configured for unknown token {address}")
        if threshold <= 0:
            raise ValueError(f"Volume threshold for {address} must be positive")
    for lower, upper in zip(REWARD_BANDS, REWARD_BANDS[1:]):
        if lower.ceiling != upper.floor or lower.base_percentage + 1 != upper.base_percentage:
            raise ValueError("Reward bands must be contiguous and continuous")
    if REWARD_BANDS[-1].base_percentage + 1 != MAX_REWARD_PERCENTAGE:
        raise ValueError("Top reward band must meet the maximum percentage")


_validate_tables()


def get_volume_threshold(settlement_token: Optional[str] = None) -> Decimal:
    address = normalize_address(settlement_token or DEFAULT_SETTLEMENT_TOKEN)
    threshold = MONTH_TO_DATE_USD_VOLUME_THRESHOLD.get(address)
    if threshold is None:
        raise UnsupportedSettlementTokenError(f"Invalid settlement token address: {address}")
    return threshold


def calculate_reward_percentage(gno_balance: Number, is_og_nft_holder: bool = False) -> Decimal:
    """
    Reward percentage for a GNO balance.

    0% below 0.1 GNO, then 1-2% up to 1 GNO, 2-3% up to 10 GNO, 3-4% up to
    100 GNO and a flat 4% above. OG NFT holders get +1% once eligible.
    """
    gno_balance = Decimal(gno_balance)

    percentage = Decimal("0")
    if gno_balance >= MAX_BAND_GNO_BALANCE:
        percentage = MAX_REWARD_PERCENTAGE
    else:
        for band in REWARD_BANDS:
            if band.contains(gno_balance):
                percentage = band.percentage(gno_balance)
                break

    if is_og_nft_holder and gno_balance >= MIN_ELIGIBLE_GNO_BALANCE:
        percentage += OG_NFT_HOLDER_BONUS_PERCENTAGE

    return percentage


def calculate_week_reward_amount(
    gno_usd_price: Number,
    is_og_nft_holder: bool,
    week_usd_volume: Number,
    gno_balance: Number,
    four_weeks_usd_volume: Number,
    settlement_token: Optional[str] = None,
) -> Decimal:
    """
    Estimate the GNO reward for a week.

    The month-to-date allowance is ``threshold - four_weeks_usd_volume +
    week_usd_volume``; once it reaches the threshold nothing more accrues.
    Negative week volumes are not clamped here, the weekly carry-over has
    already absorbed them.
    """
    gno_usd_price = Decimal(gno_usd_price)
    if gno_usd_price <= 0:
        raise InvalidPriceError(f"gno_usd_price must be greater than 0, got {gno_usd_price}")

    week_usd_volume = Decimal(week_usd_volume)
    volume_threshold = get_volume_threshold(settlement_token)

    net_volume = volume_threshold - Decimal(four_weeks_usd_volume) + week_usd_volume
    if net_volume >= volume_threshold:
        return Decimal("0")

    percentage = calculate_reward_percentage(gno_balance, is_og_nft_holder)
    return (percentage / 100) * week_usd_volume / gno_usd_price
