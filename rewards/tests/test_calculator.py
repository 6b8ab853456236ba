"""
Unit Tests for the Weekly Reward Calculator

Tests cover:
1. Month-to-date volume cap
2. Price validation
3. Settlement token thresholds
4. Reward percentage bands and OG bonus
"""

import pytest
from decimal import Decimal

from rewards.calculator import (
    InvalidPriceError,
    UnsupportedSettlementTokenError,
    calculate_reward_percentage,
    calculate_week_reward_amount,
    get_volume_threshold,
)
from rewards.tokens import (
    CIRCLE_USDC_TOKEN,
    GNO_TOKEN,
    MONERIUM_EURE_TOKEN,
    MONERIUM_GBPE_TOKEN,
    USDC_BRIDGE_TOKEN,
)


class TestWeekRewardAmount:
    """Tests for calculate_week_reward_amount."""

    def test_reward_interpolates_between_first_bands(self):
        """0.5 GNO sits 4/9 of the way through the 0.1-1 GNO band."""
        reward = calculate_week_reward_amount(
            gno_usd_price=Decimal("100"),
            is_og_nft_holder=False,
            week_usd_volume=Decimal("500"),
            gno_balance=Decimal("0.5"),
            four_weeks_usd_volume=Decimal("1000"),
        )

        percentage = 1 + 0.4 / 0.9
        expected = (percentage / 100) * 500 / 100
        assert float(reward) == pytest.approx(expected)
        assert reward > 0

    def test_allowance_reached_returns_zero(self):
        """threshold - four weeks + week >= threshold means nothing accrues."""
        reward = calculate_week_reward_amount(
            gno_usd_price=Decimal("100"),
            is_og_nft_holder=True,
            week_usd_volume=Decimal("500"),
            gno_balance=Decimal("1000"),
            four_weeks_usd_volume=Decimal("0"),
        )
        assert reward == Decimal("0")

    def test_allowance_exactly_at_threshold_returns_zero(self):
        reward = calculate_week_reward_amount(
            gno_usd_price=Decimal("100"),
            is_og_nft_holder=False,
            week_usd_volume=Decimal("750"),
            gno_balance=Decimal("5"),
            four_weeks_usd_volume=Decimal("750"),
        )
        assert reward == Decimal("0")

    @pytest.mark.parametrize("balance", ["0", "0.05", "0.5", "5", "50", "500"])
    def test_cap_ignores_balance(self, balance):
        reward = calculate_week_reward_amount(
            gno_usd_price=Decimal("250"),
            is_og_nft_holder=False,
            week_usd_volume=Decimal("100"),
            gno_balance=Decimal(balance),
            four_weeks_usd_volume=Decimal("50"),
        )
        assert reward == Decimal("0")

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-1"), Decimal("-0.0001")])
    def test_non_positive_price_fails(self, price):
        with pytest.raises(InvalidPriceError):
            calculate_week_reward_amount(
                gno_usd_price=price,
                is_og_nft_holder=False,
                week_usd_volume=Decimal("500"),
                gno_balance=Decimal("1"),
                four_weeks_usd_volume=Decimal("1000"),
            )

    def test_price_checked_before_cap(self):
        with pytest.raises(InvalidPriceError):
            calculate_week_reward_amount(
                gno_usd_price=Decimal("0"),
                is_og_nft_holder=False,
                week_usd_volume=Decimal("500"),
                gno_balance=Decimal("1"),
                four_weeks_usd_volume=Decimal("0"),
            )

    def test_unsupported_settlement_token_fails(self):
        with pytest.raises(UnsupportedSettlementTokenError):
            calculate_week_reward_amount(
                gno_usd_price=Decimal("100"),
                is_og_nft_holder=False,
                week_usd_volume=Decimal("500"),
                gno_balance=Decimal("1"),
                four_weeks_usd_volume=Decimal("1000"),
                settlement_token=GNO_TOKEN.address,
            )

    def test_negative_week_volume_never_adds_reward(self):
        reward = calculate_week_reward_amount(
            gno_usd_price=Decimal("100"),
            is_og_nft_holder=True,
            week_usd_volume=Decimal("-300"),
            gno_balance=Decimal("20"),
            four_weeks_usd_volume=Decimal("200"),
        )
        assert reward <= 0

    def test_cap_compares_week_against_trailing_volume(self):
        """The threshold cancels out of the cap check; every supported token yields the same reward."""
        common = dict(
            gno_usd_price=Decimal("100"),
            is_og_nft_holder=False,
            week_usd_volume=Decimal("1000"),
            gno_balance=Decimal("10"),
            four_weeks_usd_volume=Decimal("19000"),
        )
        usd_reward = calculate_week_reward_amount(**common, settlement_token=CIRCLE_USDC_TOKEN.address)
        gbp_reward = calculate_week_reward_amount(**common, settlement_token=MONERIUM_GBPE_TOKEN.address)

        assert usd_reward == Decimal("0.3")
        assert gbp_reward == Decimal("0.3")


class TestVolumeThreshold:
    """Tests for the month-to-date threshold table."""

    def test_default_is_usd(self):
        assert get_volume_threshold() == Decimal("22000")

    def test_known_tokens(self):
        assert get_volume_threshold(USDC_BRIDGE_TOKEN.address) == Decimal("22000")
        assert get_volume_threshold(MONERIUM_EURE_TOKEN.address) == Decimal("20000")
        assert get_volume_threshold(MONERIUM_GBPE_TOKEN.address) == Decimal("18000")

    def test_lookup_is_case_insensitive(self):
        assert get_volume_threshold(MONERIUM_EURE_TOKEN.address.upper().replace("0X", "0x")) == Decimal("20000")

    def test_unknown_token(self):
        with pytest.raises(UnsupportedSettlementTokenError):
            get_volume_threshold("0x0000000000000000000000000000000000000001")


class TestRewardPercentage:
    """Tests for the GNO balance step function."""

    @pytest.mark.parametrize("balance,expected", [
        ("0", "0"),
        ("0.0999", "0"),
        ("0.1", "1"),
        ("1", "2"),
        ("5.5", "2.5"),
        ("10", "3"),
        ("55", "3.5"),
        ("100", "4"),
        ("5000", "4"),
    ])
    def test_band_values(self, balance, expected):
        assert calculate_reward_percentage(Decimal(balance)) == Decimal(expected)

    def test_monotonic_in_balance(self):
        balances = [Decimal(i) / 100 for i in range(0, 15000, 7)]
        percentages = [calculate_reward_percentage(b) for b in balances]
        assert all(a <= b for a, b in zip(percentages, percentages[1:]))

    def test_og_bonus_only_when_eligible(self):
        assert calculate_reward_percentage(Decimal("0.05"), is_og_nft_holder=True) == Decimal("0")
        assert calculate_reward_percentage(Decimal("0.1"), is_og_nft_holder=True) == Decimal("2")
        assert calculate_reward_percentage(Decimal("150"), is_og_nft_holder=True) == Decimal("5")
