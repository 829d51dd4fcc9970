"""Donor badges — highest configured reward tier reached by cumulative donations."""

from src.cm_config.domain.models import RewardTier


def donor_badge(rewards: tuple[RewardTier, ...], total_donated: int) -> RewardTier | None:
    """Return the tier with the largest threshold not above total_donated, or None."""
    if total_donated <= 0:
        return None
    eligible = [r for r in rewards if total_donated >= r.amount_cents]
    if not eligible:
        return None
    return max(eligible, key=lambda r: r.amount_cents)
