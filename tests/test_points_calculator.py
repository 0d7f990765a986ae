from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from linx_indexer.models import (
    AccountTransaction,
    LendingEvent,
    PointsConfig,
    PointsMultiplier,
    PointsSnapshot,
    SwapDetails,
    SwapTransaction,
    UserReferral,
)
from linx_indexer.points_calculator import PointsCalculatorService, PointsSettings

DAY = date(2025, 1, 15)
NOON = datetime.combine(DAY, time(12, 0))
CREATED = datetime(2025, 1, 1)


def bd(value: str) -> Decimal:
    return Decimal(value)


def config(action: str, ppu: str | None, config_id: int = 1) -> PointsConfig:
    return PointsConfig(config_id, action, bd(ppu) if ppu else None, None, True, CREATED, CREATED)


def borrow_event(on_behalf: str, token_id: str, amount: str, when: datetime) -> LendingEvent:
    return LendingEvent(
        id=1,
        market_id="market1",
        event_type="Borrow",
        token_id=token_id,
        on_behalf=on_behalf,
        amount=bd(amount),
        shares=Decimal(0),
        transaction_id=f"tx_{on_behalf}",
        event_index=0,
        block_time=when,
        created_at=when,
        fields={},
    )


def swap_event(address: str, token_in: str, amount_in: str, when: datetime) -> SwapTransaction:
    return SwapTransaction(
        AccountTransaction(1, address, "swap", 0, 0, 1000, f"swap_tx_{address}", when),
        SwapDetails(
            token_in=token_in,
            token_out="tokenB",
            amount_in=bd(amount_in),
            amount_out=Decimal(0),
            pool_address="pool1",
            tx_id=f"swap_tx_{address}",
            id=1,
        ),
    )


def snapshot(address: str, day: date, total: str, mtype=None, mvalue="0") -> PointsSnapshot:
    zero = Decimal(0)
    return PointsSnapshot(
        1, address, day, zero, zero, zero, zero, mtype, bd(mvalue), zero, zero, bd(total), zero,
        CREATED,
    )


@dataclass
class FakePointsRepository:
    configs: list = field(default_factory=list)
    multipliers: list = field(default_factory=list)
    referrals: list = field(default_factory=list)
    previous: list = field(default_factory=list)
    inserted_snapshots: list = field(default_factory=list)
    inserted_transactions: list = field(default_factory=list)
    deleted_dates: list = field(default_factory=list)
    multiplier_types: list = field(default_factory=list)

    def get_points_config(self):
        return self.configs

    def get_multipliers_by_type(self, multiplier_type):
        self.multiplier_types.append(multiplier_type)
        return self.multipliers

    def get_all_user_referrals(self):
        return self.referrals

    def get_snapshot(self, address, snapshot_date):
        for s in self.previous:
            if s.address == address and s.snapshot_date == snapshot_date:
                return s
        return None

    def get_snapshots_by_date(self, snapshot_date):
        return [s for s in self.previous if s.snapshot_date == snapshot_date]

    def insert_snapshots(self, snapshots):
        self.inserted_snapshots.extend(snapshots)

    def delete_transactions_by_date(self, snapshot_date):
        self.deleted_dates.append(snapshot_date)
        return 0

    def insert_transactions(self, transactions):
        self.inserted_transactions.extend(transactions)


@dataclass
class FakeLendingRepository:
    events: list = field(default_factory=list)
    calls: list = field(default_factory=list)

    def get_borrow_events_in_period(self, start_time, end_time):
        self.calls.append((start_time, end_time))
        return self.events

    def get_deposit_snapshots_in_period(self, start_time, end_time):
        return []


@dataclass
class FakeAccountRepository:
    swaps: list = field(default_factory=list)
    calls: list = field(default_factory=list)

    def get_swaps_in_period(self, start_time, end_time):
        self.calls.append((start_time, end_time))
        return self.swaps


@dataclass
class FakeTokenInfo:
    decimals: int

    def convert_to_decimal(self, raw_amount):
        return raw_amount / (Decimal(10) ** self.decimals)


@dataclass
class FakePriceService:
    tokens: dict = field(default_factory=dict)

    def get_token_info(self, token_id):
        if token_id not in self.tokens:
            raise LookupError(f"unknown token {token_id}")
        return FakeTokenInfo(self.tokens[token_id][0])

    def get_token_price(self, token_id):
        if token_id not in self.tokens:
            raise LookupError(f"unknown token {token_id}")
        return bd(self.tokens[token_id][1])


def build(points, lending=None, accounts=None, tokens=None, referral="0.05"):
    return PointsCalculatorService(
        points,
        lending or FakeLendingRepository(),
        accounts or FakeAccountRepository(),
        FakePriceService(tokens or {}),
        PointsSettings(referral_percentage=float(referral)),
    )


def by_address(snapshots):
    return {s.address: s for s in snapshots}


def test_multiple_users_multiple_events():
    points = FakePointsRepository(configs=[config("borrow", "2.0")])
    lending = FakeLendingRepository(
        events=[
            borrow_event("user1", "tokenA", "100", NOON),
            borrow_event("user2", "tokenB", "200", NOON),
            borrow_event("user1", "tokenA", "50", NOON),
        ]
    )
    service = build(points, lending, tokens={"tokenA": (0, "10"), "tokenB": (0, "5")})
    service.calculate_points_for_date(DAY)

    snaps = by_address(points.inserted_snapshots)
    assert len(points.inserted_snapshots) == 2
    assert snaps["user1"].borrow_points == bd("3000")
    assert snaps["user2"].borrow_points == bd("2000")
    assert len(points.inserted_transactions) == 3


def test_boundary_date_range():
    expected = (datetime(2025, 1, 15), datetime(2025, 1, 16))
    points = FakePointsRepository(configs=[config("borrow", "2.0")])
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "100", expected[0])])
    accounts = FakeAccountRepository()
    service = build(points, lending, accounts, tokens={"tokenA": (0, "10")})
    service.calculate_points_for_date(DAY)

    assert lending.calls == [expected]
    assert len(points.inserted_snapshots) == 1
    assert len(points.inserted_transactions) == 1
    # No swap rule configured, so swaps are not queried.
    assert accounts.calls == []


def test_swap_period_bounds_when_configured():
    points = FakePointsRepository(configs=[config("swap", "1.0")])
    accounts = FakeAccountRepository()
    build(points, accounts=accounts).calculate_points_for_date(DAY)
    assert accounts.calls == [(datetime(2025, 1, 15), datetime(2025, 1, 16))]


def test_existing_user_activity():
    points = FakePointsRepository(configs=[config("swap", "1.0", 1), config("borrow", "2.0", 2)])
    service = build(
        points,
        FakeLendingRepository(events=[borrow_event("user1", "tokenA", "100", NOON)]),
        FakeAccountRepository(swaps=[swap_event("user1", "tokenA", "500", NOON)]),
        tokens={"tokenA": (0, "10")},
    )
    service.calculate_points_for_date(DAY)

    user1 = by_address(points.inserted_snapshots)["user1"]
    assert user1.swap_points == bd("5000")
    assert user1.borrow_points == bd("2000")
    assert user1.base_points_total == bd("7000")
    assert user1.total_volume_usd == bd("6000")
    assert len(points.inserted_transactions) == 2
    assert {t.action_type for t in points.inserted_transactions} == {"swap", "borrow"}


def test_token_decimals_are_applied():
    points = FakePointsRepository(configs=[config("borrow", "1")])
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "1500000", NOON)])
    build(points, lending, tokens={"tokenA": (6, "2")}).calculate_points_for_date(DAY)
    assert points.inserted_snapshots[0].borrow_points == bd("3")


def test_highest_reached_multiplier_applies():
    points = FakePointsRepository(
        configs=[config("borrow", "2.0")],
        multipliers=[
            PointsMultiplier(1, "volume", bd("500"), bd("0.5"), True, CREATED),
            PointsMultiplier(2, "volume", bd("100"), bd("0.1"), True, CREATED),
            PointsMultiplier(3, "volume", bd("5000"), bd("1.0"), True, CREATED),
        ],
    )
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "100", NOON)])
    build(points, lending, tokens={"tokenA": (0, "10")}).calculate_points_for_date(DAY)

    assert points.multiplier_types == ["volume"]
    user1 = points.inserted_snapshots[0]
    assert user1.base_points_total == bd("3000")
    assert user1.total_points == bd("3000")


def test_referrer_earns_share_of_referred_points():
    points = FakePointsRepository(
        configs=[config("borrow", "2.0")],
        referrals=[UserReferral(1, "user1", "CODE", "referrer", CREATED)],
    )
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "100", NOON)])
    build(points, lending, tokens={"tokenA": (0, "10")}).calculate_points_for_date(DAY)

    snaps = by_address(points.inserted_snapshots)
    assert len(snaps) == 2
    assert snaps["referrer"].base_points_total == bd("100")
    assert snaps["referrer"].total_points == bd("100")
    assert snaps["user1"].total_points == bd("2000")


def test_previous_totals_accumulate_and_inactive_users_carry_forward():
    yesterday = DAY - timedelta(days=1)
    points = FakePointsRepository(
        configs=[config("borrow", "2.0")],
        previous=[
            snapshot("user1", yesterday, "100"),
            snapshot("user3", yesterday, "42", mtype="volume", mvalue="1.5"),
        ],
    )
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "100", NOON)])
    build(points, lending, tokens={"tokenA": (0, "10")}).calculate_points_for_date(DAY)

    snaps = by_address(points.inserted_snapshots)
    assert snaps["user1"].total_points == bd("2100")
    assert snaps["user3"].total_points == bd("42")
    assert snaps["user3"].base_points_total == 0
    assert snaps["user3"].multiplier_type == "volume"
    assert snaps["user3"].multiplier_value == bd("1.5")
    assert all(s.snapshot_date == DAY for s in points.inserted_snapshots)
    assert [t.address for t in points.inserted_transactions] == ["user1"]


def test_unknown_token_is_skipped():
    points = FakePointsRepository(configs=[config("borrow", "2.0")])
    lending = FakeLendingRepository(
        events=[
            borrow_event("user1", "missing", "100", NOON),
            borrow_event("user2", "tokenA", "1", NOON),
        ]
    )
    build(points, lending, tokens={"tokenA": (0, "10")}).calculate_points_for_date(DAY)
    assert [s.address for s in points.inserted_snapshots] == ["user2"]
    assert points.inserted_snapshots[0].borrow_points == bd("20")


def test_without_activity_transactions_are_left_alone():
    points = FakePointsRepository(configs=[config("borrow", None)])
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "100", NOON)])
    build(points, lending, tokens={"tokenA": (0, "10")}).calculate_points_for_date(DAY)
    assert points.inserted_snapshots == []
    assert points.deleted_dates == []
    assert points.inserted_transactions == []


def test_existing_transactions_for_date_are_replaced():
    points = FakePointsRepository(configs=[config("borrow", "1")])
    lending = FakeLendingRepository(events=[borrow_event("user1", "tokenA", "1", NOON)])
    build(points, lending, tokens={"tokenA": (0, "1")}).calculate_points_for_date(DAY)
    assert points.deleted_dates == [DAY]
    assert points.inserted_transactions[0].snapshot_date == DAY
    assert points.inserted_transactions[0].transaction_id == "tx_user1"


def test_invalid_referral_percentage_raises():
    points = FakePointsRepository()
    with pytest.raises(ValueError):
        build(points, referral="nan").calculate_points_for_date(DAY)


def test_range_calculates_every_day_inclusive():
    points = FakePointsRepository(configs=[config("borrow", "1")])
    lending = FakeLendingRepository()
    build(points, lending).calculate_points_for_range(date(2025, 1, 30), date(2025, 2, 1))
    assert [start.date() for start, _ in lending.calls] == [
        date(2025, 1, 30),
        date(2025, 1, 31),
        date(2025, 2, 1),
    ]


def test_empty_range_does_nothing():
    lending = FakeLendingRepository()
    points = FakePointsRepository(configs=[config("borrow", "1")])
    build(points, lending).calculate_points_for_range(date(2025, 2, 2), date(2025, 2, 1))
    assert lending.calls == []


def test_scheduler_calculates_yesterday():
    points = FakePointsRepository(configs=[config("borrow", "1")])
    lending = FakeLendingRepository()
    build(points, lending).run_scheduler(interval_seconds=0, max_runs=2)
    yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
    assert len(lending.calls) == 2
    assert lending.calls[0][0] == datetime.combine(yesterday, time())


def test_scheduler_survives_errors():
    points = FakePointsRepository(configs=[config("borrow", "1")])
    service = build(points, referral="nan")
    service.run_scheduler(interval_seconds=0, max_runs=2)
    assert points.inserted_snapshots == []