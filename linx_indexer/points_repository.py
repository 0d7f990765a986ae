"""Storage of points rules, referrals, daily snapshots and points transactions."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from linx_indexer.models import (
    NewPointsConfig,
    NewPointsMultiplier,
    NewPointsSnapshot,
    NewPointsTransaction,
    NewReferralCode,
    NewUserReferral,
    PointsConfig,
    PointsMultiplier,
    PointsSnapshot,
    PointsTransaction,
    ReferralCode,
    UserReferral,
)

_CONFIG_COLUMNS = (
    "id, action_type, points_per_usd, points_per_usd_per_day, is_active, created_at, updated_at"
)
_MULTIPLIER_COLUMNS = "id, multiplier_type, threshold_value, multiplier, is_active, created_at"
_REFERRAL_CODE_COLUMNS = "id, code, owner_address, created_at"
_USER_REFERRAL_COLUMNS = "id, user_address, referral_code, referred_by_address, created_at"
_SNAPSHOT_VALUE_COLUMNS = (
    "swap_points",
    "supply_points",
    "borrow_points",
    "base_points_total",
    "multiplier_type",
    "multiplier_value",
    "multiplier_points",
    "referral_points",
    "total_points",
    "total_volume_usd",
)
_SNAPSHOT_COLUMNS = (
    "id, address, snapshot_date, "
    + ", ".join(_SNAPSHOT_VALUE_COLUMNS)
    + ", created_at"
)
_TRANSACTION_COLUMNS = (
    "id, address, action_type, transaction_id, amount_usd, points_earned, created_at, snapshot_date"
)

# Decimals are stored as text, so numeric ordering needs an explicit cast.
_UPSERT_SNAPSHOT_SQL = (
    "INSERT INTO points_snapshots (address, snapshot_date, "
    + ", ".join(_SNAPSHOT_VALUE_COLUMNS)
    + ") VALUES ("
    + ", ".join("?" for _ in range(len(_SNAPSHOT_VALUE_COLUMNS) + 2))
    + ") ON CONFLICT (address, snapshot_date) DO UPDATE SET "
    + ", ".join(f"{column} = excluded.{column}" for column in _SNAPSHOT_VALUE_COLUMNS)
)

_INSERT_TRANSACTION_SQL = (
    "INSERT INTO points_transactions (address, action_type, transaction_id, amount_usd,"
    " points_earned, snapshot_date) VALUES (?, ?, ?, ?, ?, ?)"
)


def _offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def _snapshot_params(snapshot: NewPointsSnapshot) -> tuple[Any, ...]:
    return (
        snapshot.address,
        snapshot.snapshot_date,
        *(getattr(snapshot, column) for column in _SNAPSHOT_VALUE_COLUMNS),
    )


def _transaction_params(transaction: NewPointsTransaction) -> tuple[Any, ...]:
    return (
        transaction.address,
        transaction.action_type,
        transaction.transaction_id,
        transaction.amount_usd,
        transaction.points_earned,
        transaction.snapshot_date,
    )


class PointsRepository:
    """Reads and writes everything the points programme stores."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def _all(self, sql: str, params: Sequence[Any] = ()) -> list[Any]:
        return self._connection.execute(sql, tuple(params)).fetchall()

    def _one(self, sql: str, params: Sequence[Any] = ()) -> Any:
        return self._connection.execute(sql, tuple(params)).fetchone()

    # ------------------------------------------------------ points config

    def get_points_config(self) -> list[PointsConfig]:
        """Return every active points rule."""
        rows = self._all(f"SELECT {_CONFIG_COLUMNS} FROM points_config WHERE is_active = 1")
        return [PointsConfig(*row) for row in rows]

    def get_points_config_for_action(self, action_type: str) -> PointsConfig | None:
        row = self._one(
            f"SELECT {_CONFIG_COLUMNS} FROM points_config"
            " WHERE action_type = ? AND is_active = 1 LIMIT 1",
            (action_type,),
        )
        return PointsConfig(*row) if row is not None else None

    def insert_points_config(self, configs: Sequence[NewPointsConfig]) -> None:
        """Insert rules; a rule for an action already configured is skipped."""
        if not configs:
            return
        with self._connection:
            self._connection.executemany(
                "INSERT INTO points_config (action_type, points_per_usd,"
                " points_per_usd_per_day, is_active) VALUES (?, ?, ?, ?)"
                " ON CONFLICT (action_type) DO NOTHING",
                [
                    (c.action_type, c.points_per_usd, c.points_per_usd_per_day, c.is_active)
                    for c in configs
                ],
            )

    # -------------------------------------------------------- multipliers

    def get_active_multipliers(self) -> list[PointsMultiplier]:
        """Return active multipliers, lowest threshold first."""
        rows = self._all(
            f"SELECT {_MULTIPLIER_COLUMNS} FROM points_multipliers WHERE is_active = 1"
            " ORDER BY CAST(threshold_value AS REAL) ASC, id ASC"
        )
        return [PointsMultiplier(*row) for row in rows]

    def get_multipliers_by_type(self, multiplier_type: str) -> list[PointsMultiplier]:
        """Return active multipliers of one type, lowest threshold first."""
        rows = self._all(
            f"SELECT {_MULTIPLIER_COLUMNS} FROM points_multipliers"
            " WHERE multiplier_type = ? AND is_active = 1"
            " ORDER BY CAST(threshold_value AS REAL) ASC, id ASC",
            (multiplier_type,),
        )
        return [PointsMultiplier(*row) for row in rows]

    def insert_multipliers(self, multipliers: Sequence[NewPointsMultiplier]) -> None:
        if not multipliers:
            return
        with self._connection:
            self._connection.executemany(
                "INSERT INTO points_multipliers (multiplier_type, threshold_value, multiplier,"
                " is_active) VALUES (?, ?, ?, ?)",
                [
                    (m.multiplier_type, m.threshold_value, m.multiplier, m.is_active)
                    for m in multipliers
                ],
            )

    # ----------------------------------------------------- referral codes

    def get_referral_code(self, code: str) -> ReferralCode | None:
        row = self._one(
            f"SELECT {_REFERRAL_CODE_COLUMNS} FROM referral_codes WHERE code = ? LIMIT 1",
            (code,),
        )
        return ReferralCode(*row) if row is not None else None

    def get_referral_code_by_owner(self, owner_address: str) -> ReferralCode | None:
        row = self._one(
            f"SELECT {_REFERRAL_CODE_COLUMNS} FROM referral_codes"
            " WHERE owner_address = ? ORDER BY id ASC LIMIT 1",
            (owner_address,),
        )
        return ReferralCode(*row) if row is not None else None

    def insert_referral_code(self, code: NewReferralCode) -> ReferralCode:
        """Store a referral code and return the stored row; duplicates raise."""
        with self._connection:
            cursor = self._connection.execute(
                "INSERT INTO referral_codes (code, owner_address) VALUES (?, ?)",
                (code.code, code.owner_address),
            )
        row = self._one(
            f"SELECT {_REFERRAL_CODE_COLUMNS} FROM referral_codes WHERE id = ?",
            (cursor.lastrowid,),
        )
        return ReferralCode(*row)

    # ----------------------------------------------------- user referrals

    def get_all_user_referrals(self) -> list[UserReferral]:
        rows = self._all(f"SELECT {_USER_REFERRAL_COLUMNS} FROM user_referrals")
        return [UserReferral(*row) for row in rows]

    def get_user_referral(self, user_address: str) -> UserReferral | None:
        row = self._one(
            f"SELECT {_USER_REFERRAL_COLUMNS} FROM user_referrals WHERE user_address = ? LIMIT 1",
            (user_address,),
        )
        return UserReferral(*row) if row is not None else None

    def get_referrals_for_code(self, referral_code: str) -> list[UserReferral]:
        rows = self._all(
            f"SELECT {_USER_REFERRAL_COLUMNS} FROM user_referrals WHERE referral_code = ?",
            (referral_code,),
        )
        return [UserReferral(*row) for row in rows]

    def insert_user_referral(self, referral: NewUserReferral) -> UserReferral:
        """Store a referral and return the stored row; a second one for a user raises."""
        with self._connection:
            cursor = self._connection.execute(
                "INSERT INTO user_referrals (user_address, referral_code, referred_by_address)"
                " VALUES (?, ?, ?)",
                (referral.user_address, referral.referral_code, referral.referred_by_address),
            )
        row = self._one(
            f"SELECT {_USER_REFERRAL_COLUMNS} FROM user_referrals WHERE id = ?",
            (cursor.lastrowid,),
        )
        return UserReferral(*row)

    # ---------------------------------------------------------- snapshots

    def get_snapshot(self, address: str, snapshot_date: date) -> PointsSnapshot | None:
        row = self._one(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM points_snapshots"
            " WHERE address = ? AND snapshot_date = ? LIMIT 1",
            (address, snapshot_date),
        )
        return PointsSnapshot(*row) if row is not None else None

    def get_user_snapshots(self, address: str, page: int, limit: int) -> list[PointsSnapshot]:
        """Return one page of an address's snapshots, newest date first."""
        rows = self._all(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM points_snapshots WHERE address = ?"
            " ORDER BY snapshot_date DESC LIMIT ? OFFSET ?",
            (address, limit, _offset(page, limit)),
        )
        return [PointsSnapshot(*row) for row in rows]

    def get_latest_snapshot(self, address: str) -> PointsSnapshot | None:
        row = self._one(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM points_snapshots WHERE address = ?"
            " ORDER BY snapshot_date DESC LIMIT 1",
            (address,),
        )
        return PointsSnapshot(*row) if row is not None else None

    def get_snapshots_by_date(self, snapshot_date: date) -> list[PointsSnapshot]:
        rows = self._all(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM points_snapshots WHERE snapshot_date = ?",
            (snapshot_date,),
        )
        return [PointsSnapshot(*row) for row in rows]

    def get_leaderboard(
        self, snapshot_date: date | None, page: int, limit: int
    ) -> list[PointsSnapshot]:
        """Rank snapshots of a date by total points; with no date, the latest date is used."""
        if snapshot_date is None:
            row = self._one(
                "SELECT snapshot_date FROM points_snapshots ORDER BY snapshot_date DESC LIMIT 1"
            )
            if row is None:
                return []
            snapshot_date = row[0]
        rows = self._all(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM points_snapshots WHERE snapshot_date = ?"
            " ORDER BY CAST(total_points AS REAL) DESC, id ASC LIMIT ? OFFSET ?",
            (snapshot_date, limit, _offset(page, limit)),
        )
        return [PointsSnapshot(*row) for row in rows]

    def insert_snapshots(self, snapshots: Sequence[NewPointsSnapshot]) -> None:
        """Store snapshots, replacing the values of any already stored for the same day."""
        if not snapshots:
            return
        with self._connection:
            self._connection.executemany(
                _UPSERT_SNAPSHOT_SQL, [_snapshot_params(s) for s in snapshots]
            )

    def upsert_snapshot(self, snapshot: NewPointsSnapshot) -> PointsSnapshot:
        """Store one snapshot, replacing an existing one, and return the stored row."""
        with self._connection:
            self._connection.execute(_UPSERT_SNAPSHOT_SQL, _snapshot_params(snapshot))
        stored = self.get_snapshot(snapshot.address, snapshot.snapshot_date)
        if stored is None:
            raise RuntimeError(f"Snapshot for {snapshot.address} was not stored")
        return stored

    # ------------------------------------------------------- transactions

    def get_user_transactions(
        self, address: str, page: int, limit: int
    ) -> list[PointsTransaction]:
        """Return one page of an address's points transactions, newest first."""
        rows = self._all(
            f"SELECT {_TRANSACTION_COLUMNS} FROM points_transactions WHERE address = ?"
            " ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (address, limit, _offset(page, limit)),
        )
        return [PointsTransaction(*row) for row in rows]

    def get_transactions_by_action(
        self, action_type: str, page: int, limit: int
    ) -> list[PointsTransaction]:
        rows = self._all(
            f"SELECT {_TRANSACTION_COLUMNS} FROM points_transactions WHERE action_type = ?"
            " ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (action_type, limit, _offset(page, limit)),
        )
        return [PointsTransaction(*row) for row in rows]

    def get_transactions_in_period(
        self, address: str, start_time: datetime, end_time: datetime
    ) -> list[PointsTransaction]:
        """Return transactions created at or after ``start_time`` and before ``end_time``."""
        rows = self._all(
            f"SELECT {_TRANSACTION_COLUMNS} FROM points_transactions"
            " WHERE address = ? AND created_at >= ? AND created_at < ?"
            " ORDER BY created_at ASC",
            (address, start_time, end_time),
        )
        return [PointsTransaction(*row) for row in rows]

    def insert_transactions(self, transactions: Sequence[NewPointsTransaction]) -> None:
        if not transactions:
            return
        with self._connection:
            self._connection.executemany(
                _INSERT_TRANSACTION_SQL, [_transaction_params(t) for t in transactions]
            )

    def insert_transaction(self, transaction: NewPointsTransaction) -> PointsTransaction:
        """Store one transaction and return the stored row."""
        with self._connection:
            cursor = self._connection.execute(
                _INSERT_TRANSACTION_SQL, _transaction_params(transaction)
            )
        row = self._one(
            f"SELECT {_TRANSACTION_COLUMNS} FROM points_transactions WHERE id = ?",
            (cursor.lastrowid,),
        )
        return PointsTransaction(*row)

    def delete_transactions_by_date(self, snapshot_date: date) -> int:
        """Delete the transactions of one snapshot date and return how many went."""
        with self._connection:
            cursor = self._connection.execute(
                "DELETE FROM points_transactions WHERE snapshot_date = ?", (snapshot_date,)
            )
        return cursor.rowcount