"""Per-user daily points activity and the rules that adjust it."""

from __future__ import annotations

from collections.abc import Iterable, MutableMapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from linx_indexer.models import PointsMultiplier, UserReferral


@dataclass
class TransactionDetail:
    """One action that earned points."""

    action_type: str
    transaction_id: str | None
    amount_usd: Decimal
    points_earned: Decimal


@dataclass
class UserDailyActivity:
    """Points and volume a user earned in one day, by kind of action."""

    address: str
    swap_points: Decimal = Decimal(0)
    swap_volume_usd: Decimal = Decimal(0)
    supply_points: Decimal = Decimal(0)
    supply_volume_usd: Decimal = Decimal(0)
    borrow_points: Decimal = Decimal(0)
    borrow_volume_usd: Decimal = Decimal(0)
    base_points_total: Decimal = Decimal(0)
    total_volume_usd: Decimal = Decimal(0)
    transactions: list[TransactionDetail] = field(default_factory=list)

    def finalize(self) -> None:
        """Set the base points and total volume from the per-action values."""
        self.base_points_total = self.swap_points + self.supply_points + self.borrow_points
        self.total_volume_usd = (
            self.swap_volume_usd + self.supply_volume_usd + self.borrow_volume_usd
        )


def _best_multiplier(
    volume: Decimal, multipliers: Sequence[PointsMultiplier]
) -> PointsMultiplier | None:
    best: PointsMultiplier | None = None
    for multiplier in multipliers:
        if volume < multiplier.threshold_value:
            continue
        if best is None or multiplier.threshold_value > best.threshold_value:
            best = multiplier
    return best


def apply_multipliers(
    activities: MutableMapping[str, UserDailyActivity],
    multipliers: Sequence[PointsMultiplier],
) -> None:
    """Boost each user's base points by the highest multiplier their volume reaches."""
    for activity in activities.values():
        best = _best_multiplier(activity.total_volume_usd, multipliers)
        if best is not None:
            activity.base_points_total += activity.base_points_total * best.multiplier


def add_referral_points(
    activities: MutableMapping[str, UserDailyActivity],
    referrals: Iterable[UserReferral],
    referral_percentage: Decimal | float | str,
) -> None:
    """Credit each referrer with a share of the base points of the users they referred."""
    if isinstance(referral_percentage, float):
        percentage = Decimal(str(referral_percentage))
    else:
        percentage = Decimal(referral_percentage)
    if not percentage.is_finite():
        raise ValueError(f"Invalid referral percentage: {referral_percentage}")

    referred_by: dict[str, list[str]] = {}
    for referral in referrals:
        referred_by.setdefault(referral.referred_by_address, []).append(referral.user_address)

    for referrer, users in referred_by.items():
        total = sum(
            (activities[user].base_points_total for user in users if user in activities),
            Decimal(0),
        )
        referrer_activity = activities.setdefault(referrer, UserDailyActivity(referrer))
        referrer_activity.base_points_total += total * percentage