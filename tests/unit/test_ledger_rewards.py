"""Tests for donor badge selection."""

import pytest

from src.cm_config.domain.models import RewardTier
from src.cm_ledger.domain.rewards import donor_badge

_TIERS = (
    RewardTier(tag="Supporter", amount_cents=2000),
    RewardTier(tag="Patron", amount_cents=50000),
    RewardTier(tag="Sponsor", amount_cents=10000),
)


class TestDonorBadge:
    @pytest.mark.parametrize(
        ("total", "expected"),
        [
            (1999, None),
            (2000, "Supporter"),
            (10000, "Sponsor"),
            (49999, "Sponsor"),
            (10**7, "Patron"),
        ],
    )
    def test_highest_tier_reached(self, total: int, expected: str | None) -> None:
        badge = donor_badge(_TIERS, total)
        assert (badge.tag if badge else None) == expected

    def test_no_donations(self) -> None:
        assert donor_badge(_TIERS, 0) is None

    def test_no_tiers_configured(self) -> None:
        assert donor_badge((), 10**6) is None
