"""Daily calculation of user points from swaps and lending activity."""

from __future__ import annotations

import logging
import time as _time
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from itertools import count
from typing import TYPE_CHECKING

from linx_indexer.models import NewPointsSnapshot, NewPointsTransaction, PointsConfig
from linx_indexer.points_activity import (
    TransactionDetail,
    UserDailyActivity,
    add_referral_points,
    apply_multipliers,
)

if TYPE_CHECKING:
    from linx_indexer.account_transactions_repository import AccountTransactionRepository
    from linx_indexer.lending_repository import LendingRepository
    from linx_indexer.points_repository import PointsRepository
    from linx_indexer.token_service import TokenService

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULER_INTERVAL_SECONDS = 300.0
_ONE_DAY = timedelta(days=1)

Activities = MutableMapping[str, UserDailyActivity]


@dataclass(frozen=True)
class PointsSettings:
    """Settings of the points programme."""

    referral_percentage: float
    calculation_time: str = "01:00"


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time())
    return start, datetime.combine(day + _ONE_DAY, time())


def _activity_for(activities: Activities, address: str) -> UserDailyActivity:
    return activities.setdefault(address, UserDailyActivity(address))


class PointsCalculatorService:
    """Turns a day's swaps and borrows into points snapshots and transactions."""

    def __init__(
        self,
        points_repository: PointsRepository,
        lending_repository: LendingRepository,
        account_tx_repository: AccountTransactionRepository,
        price_service: TokenService,
        config: PointsSettings,
    ) -> None:
        self._points_repository = points_repository
        self._lending_repository = lending_repository
        self._account_tx_repository = account_tx_repository
        self._price_service = price_service
        self._config = config

    def calculate_points_for_date(self, date: date) -> None:
        """Calculate and store the points of every user for one day."""
        logger.info("Starting points calculation for date: %s", date)
        points_config = self._load_points_config()
        activities: dict[str, UserDailyActivity] = {}

        self._calculate_swap_points(date, points_config, activities)
        # Supply points are not awarded at present.
        self._calculate_borrow_points(date, points_config, activities)

        for activity in activities.values():
            activity.finalize()

        multipliers = self._points_repository.get_multipliers_by_type("volume")
        apply_multipliers(activities, multipliers)

        add_referral_points(
            activities,
            self._points_repository.get_all_user_referrals(),
            self._config.referral_percentage,
        )

        self._store_snapshots(date, activities)
        self._store_transactions(date, activities)
        logger.info("Completed points calculation for date: %s", date)

    def calculate_points_for_range(self, start_date: date, end_date: date) -> None:
        """Calculate points for every day from ``start_date`` to ``end_date`` inclusive."""
        current = start_date
        while current <= end_date:
            self.calculate_points_for_date(current)
            current += _ONE_DAY

    def run_scheduler(
        self,
        interval_seconds: float = DEFAULT_SCHEDULER_INTERVAL_SECONDS,
        max_runs: int | None = None,
    ) -> None:
        """Recalculate yesterday's points at every interval, the first run at once.

        Runs forever unless ``max_runs`` is given.
        """
        for run in count():
            if max_runs is not None and run >= max_runs:
                return
            if run:
                _time.sleep(interval_seconds)
            yesterday = datetime.now(timezone.utc).date() - _ONE_DAY
            logger.info("Starting scheduled points calculation for %s...", yesterday)
            try:
                self.calculate_points_for_date(yesterday)
            except Exception as exc:
                logger.error("Error during scheduled points calculation: %s", exc)
            else:
                logger.info("Scheduled points calculation completed successfully.")

    # ----------------------------------------------------------- sources

    def _load_points_config(self) -> dict[str, PointsConfig]:
        return {c.action_type: c for c in self._points_repository.get_points_config()}

    def _usd_value(self, token_id: str, raw_amount: Decimal, source: str) -> Decimal | None:
        try:
            token_info = self._price_service.get_token_info(token_id)
        except Exception as exc:
            logger.warning("Failed to get token info for %s in %s: %s", token_id, source, exc)
            return None
        decimal_amount = token_info.convert_to_decimal(raw_amount)
        try:
            price = self._price_service.get_token_price(token_id)
        except Exception as exc:
            logger.warning("Failed to get price for token %s in %s: %s", token_id, source, exc)
            return None
        return decimal_amount * price

    def _calculate_swap_points(
        self, day: date, points_config: Mapping[str, PointsConfig], activities: Activities
    ) -> None:
        config = points_config.get("swap")
        if config is None:
            logger.warning("No points config found for 'swap' action, skipping")
            return
        if config.points_per_usd is None:
            logger.warning("No points_per_usd configured for 'swap' action, skipping")
            return

        swaps = self._account_tx_repository.get_swaps_in_period(*_day_bounds(day))
        logger.info("Processing %d swaps for date %s", len(swaps), day)

        for swap_tx in swaps:
            swap = swap_tx.swap
            amount_usd = self._usd_value(swap.token_in, swap.amount_in, f"swap {swap.tx_id}")
            if amount_usd is None:
                continue
            points = amount_usd * config.points_per_usd
            activity = _activity_for(activities, swap_tx.account_transaction.address)
            activity.swap_points += points
            activity.swap_volume_usd += amount_usd
            activity.transactions.append(
                TransactionDetail("swap", swap.tx_id, amount_usd, points)
            )

    def _calculate_supply_points(
        self, day: date, points_config: Mapping[str, PointsConfig], activities: Activities
    ) -> None:
        config = points_config.get("supply")
        if config is None:
            logger.warning("No points config found for 'supply' action, skipping")
            return
        if config.points_per_usd_per_day is None:
            logger.warning("No points_per_usd_per_day configured for 'supply' action, skipping")
            return

        snapshots = self._lending_repository.get_deposit_snapshots_in_period(*_day_bounds(day))
        logger.info("Processing %d deposit snapshots for date %s", len(snapshots), day)

        for snapshot in snapshots:
            amount_usd = snapshot.amount_usd
            points = amount_usd * config.points_per_usd_per_day
            activity = _activity_for(activities, snapshot.address)
            activity.supply_points += points
            activity.supply_volume_usd += amount_usd
            activity.transactions.append(TransactionDetail("supply", None, amount_usd, points))

    def _calculate_borrow_points(
        self, day: date, points_config: Mapping[str, PointsConfig], activities: Activities
    ) -> None:
        config = points_config.get("borrow")
        if config is None:
            logger.warning("No points config found for 'borrow' action, skipping")
            return
        if config.points_per_usd is None:
            logger.warning("No points_per_usd configured for 'borrow' action, skipping")
            return

        events = self._lending_repository.get_borrow_events_in_period(*_day_bounds(day))
        logger.info("Processing %d borrow events for date %s", len(events), day)

        for event in events:
            amount_usd = self._usd_value(
                event.token_id, event.amount, f"borrow event {event.transaction_id}"
            )
            if amount_usd is None:
                continue
            points = amount_usd * config.points_per_usd
            activity = _activity_for(activities, event.on_behalf)
            activity.borrow_points += points
            activity.borrow_volume_usd += amount_usd
            activity.transactions.append(
                TransactionDetail("borrow", event.transaction_id, amount_usd, points)
            )

    # ----------------------------------------------------------- storage

    def _store_snapshots(self, day: date, activities: Activities) -> None:
        """Store today's snapshots and carry forward those of inactive users."""
        previous_date = day - _ONE_DAY
        snapshots: list[NewPointsSnapshot] = []

        for activity in activities.values():
            previous = self._points_repository.get_snapshot(activity.address, previous_date)
            previous_total = previous.total_points if previous is not None else Decimal(0)
            snapshots.append(
                NewPointsSnapshot(
                    address=activity.address,
                    snapshot_date=day,
                    swap_points=activity.swap_points,
                    supply_points=activity.supply_points,
                    borrow_points=activity.borrow_points,
                    base_points_total=activity.base_points_total,
                    multiplier_type=None,
                    multiplier_value=Decimal(0),
                    multiplier_points=Decimal(0),
                    referral_points=Decimal(0),
                    total_points=previous_total + activity.base_points_total,
                    total_volume_usd=activity.total_volume_usd,
                )
            )

        for previous in self._points_repository.get_snapshots_by_date(previous_date):
            if previous.address in activities:
                continue
            snapshots.append(
                NewPointsSnapshot(
                    address=previous.address,
                    snapshot_date=day,
                    swap_points=Decimal(0),
                    supply_points=Decimal(0),
                    borrow_points=Decimal(0),
                    base_points_total=Decimal(0),
                    multiplier_type=previous.multiplier_type,
                    multiplier_value=previous.multiplier_value,
                    multiplier_points=Decimal(0),
                    referral_points=Decimal(0),
                    total_points=previous.total_points,
                    total_volume_usd=Decimal(0),
                )
            )

        self._points_repository.insert_snapshots(snapshots)
        logger.info(
            "Stored %d snapshots for date %s (%d with activity, %d carried forward)",
            len(snapshots),
            day,
            len(activities),
            len(snapshots) - len(activities),
        )

    def _store_transactions(self, day: date, activities: Activities) -> None:
        """Replace the day's points transactions with the ones just calculated."""
        if not activities:
            logger.info("No user activities to store transactions for date %s", day)
            return

        deleted = self._points_repository.delete_transactions_by_date(day)
        if deleted > 0:
            logger.info("Deleted %d existing transactions for date %s", deleted, day)

        transactions = [
            NewPointsTransaction(
                address=activity.address,
                action_type=detail.action_type,
                transaction_id=detail.transaction_id,
                amount_usd=detail.amount_usd,
                points_earned=detail.points_earned,
                snapshot_date=day,
            )
            for activity in activities.values()
            for detail in activity.transactions
        ]
        self._points_repository.insert_transactions(transactions)
        logger.info("Stored %d transaction details for date %s", len(transactions), day)