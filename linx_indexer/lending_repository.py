"""Storage of lending markets, lending events and deposit snapshots."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal, InvalidOperation

from linx_indexer.models import (
    DepositSnapshot,
    LendingEvent,
    Market,
    NewDepositSnapshot,
    NewLendingEvent,
    Position,
)

_MARKET_COLUMNS = "id, market_contract_id, collateral_token, loan_token, oracle, irm, ltv, created_at"
_EVENT_COLUMNS = (
    "id, market_id, event_type, token_id, on_behalf, amount, shares, transaction_id,"
    " event_index, block_time, created_at, fields"
)
_SNAPSHOT_COLUMNS = "id, address, market_id, amount, amount_usd, timestamp, created_at"

_ZERO = Decimal(0)


def _offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def _repaid_assets(event: LendingEvent) -> Decimal | None:
    repaid = event.fields.get("repaidAssets") if isinstance(event.fields, dict) else None
    if not isinstance(repaid, str):
        return None
    try:
        value = Decimal(repaid)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


class LendingRepository:
    """Reads and writes lending data and derives user positions from events."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    # ------------------------------------------------------------ markets

    def get_markets(self, page: int, limit: int) -> list[Market]:
        """Return one page of markets, oldest first."""
        rows = self._connection.execute(
            f"SELECT {_MARKET_COLUMNS} FROM lending_markets"
            " ORDER BY created_at ASC LIMIT ? OFFSET ?",
            (limit, _offset(page, limit)),
        ).fetchall()
        return [Market(*row) for row in rows]

    def get_all_markets(self) -> list[Market]:
        """Return every market, oldest first."""
        rows = self._connection.execute(
            f"SELECT {_MARKET_COLUMNS} FROM lending_markets ORDER BY created_at ASC"
        ).fetchall()
        return [Market(*row) for row in rows]

    def insert_markets(self, markets: Sequence[Market]) -> None:
        """Insert markets; a market whose id is already stored is skipped."""
        if not markets:
            return
        with self._connection:
            self._connection.executemany(
                f"INSERT INTO lending_markets ({_MARKET_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?) ON CONFLICT DO NOTHING",
                [
                    (
                        m.id,
                        m.market_contract_id,
                        m.collateral_token,
                        m.loan_token,
                        m.oracle,
                        m.irm,
                        m.ltv,
                        m.created_at,
                    )
                    for m in markets
                ],
            )

    def get_market(self, market_id: str) -> Market | None:
        row = self._connection.execute(
            f"SELECT {_MARKET_COLUMNS} FROM lending_markets WHERE id = ? LIMIT 1",
            (market_id,),
        ).fetchone()
        return Market(*row) if row is not None else None

    # ------------------------------------------------------------- events

    def get_activity(
        self,
        market_id: str,
        event_types: Sequence[str],
        address: str | None,
        page: int,
        limit: int,
    ) -> list[LendingEvent]:
        """Return a market's events of the given types, newest first."""
        if not event_types:
            return []
        placeholders = ", ".join("?" for _ in event_types)
        sql = (
            f"SELECT {_EVENT_COLUMNS} FROM lending_events"
            f" WHERE market_id = ? AND event_type IN ({placeholders})"
        )
        params: list[object] = [market_id, *event_types]
        if address is not None:
            sql += " AND on_behalf = ?"
            params.append(address)
        sql += " ORDER BY block_time DESC LIMIT ? OFFSET ?"
        params.extend([limit, _offset(page, limit)])
        rows = self._connection.execute(sql, params).fetchall()
        return [LendingEvent(*row) for row in rows]

    def insert_lending_events(self, events: Sequence[NewLendingEvent]) -> None:
        """Insert events; an event already stored is skipped."""
        if not events:
            return
        with self._connection:
            self._connection.executemany(
                "INSERT INTO lending_events (market_id, event_type, token_id, on_behalf, amount,"
                " shares, transaction_id, event_index, block_time, fields)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) ON CONFLICT DO NOTHING",
                [
                    (
                        e.market_id,
                        e.event_type,
                        e.token_id,
                        e.on_behalf,
                        e.amount,
                        e.shares,
                        e.transaction_id,
                        e.event_index,
                        e.block_time,
                        e.fields,
                    )
                    for e in events
                ],
            )

    def get_user_events_for_market(self, address: str, market_id: str) -> list[LendingEvent]:
        """Return an address's events in one market, oldest first."""
        rows = self._connection.execute(
            f"SELECT {_EVENT_COLUMNS} FROM lending_events"
            " WHERE on_behalf = ? AND market_id = ? ORDER BY block_time ASC",
            (address, market_id),
        ).fetchall()
        return [LendingEvent(*row) for row in rows]

    def get_borrow_events_in_period(
        self, start_time: datetime, end_time: datetime
    ) -> list[LendingEvent]:
        """Return Borrow events at or after ``start_time`` and before ``end_time``."""
        rows = self._connection.execute(
            f"SELECT {_EVENT_COLUMNS} FROM lending_events"
            " WHERE event_type = 'Borrow' AND block_time >= ? AND block_time < ?",
            (start_time, end_time),
        ).fetchall()
        return [LendingEvent(*row) for row in rows]

    # ---------------------------------------------------------- positions

    def get_positions(
        self,
        market_id: str | None,
        address: str | None,
        page: int,
        limit: int,
    ) -> list[Position]:
        """Return positions for a user, a market, or a user in a market."""
        if market_id is not None and address is not None:
            position = self._calculate_user_position(address, market_id)
            return [position] if position is not None else []
        if address is not None:
            return self._calculate_user_positions(address)
        if market_id is not None:
            return self._calculate_positions_for_market(market_id, page, limit)
        raise ValueError("Either market_id or address must be provided")

    def _calculate_user_position(self, address: str, market_id: str) -> Position | None:
        events = self.get_user_events_for_market(address, market_id)
        if not events:
            return None

        supply_shares = borrow_shares = collateral = _ZERO
        supplied_amount = borrowed_amount = _ZERO
        last_updated = events[0].block_time

        for event in events:
            kind = event.event_type
            if kind == "Supply":
                supply_shares += event.shares
                supplied_amount += event.amount
            elif kind == "Withdraw":
                supply_shares -= event.shares
                supplied_amount -= event.amount
            elif kind == "Borrow":
                borrow_shares += event.shares
                borrowed_amount += event.amount
            elif kind == "Repay":
                borrow_shares -= event.shares
                borrowed_amount -= event.amount
            elif kind == "SupplyCollateral":
                collateral += event.amount
            elif kind == "WithdrawCollateral":
                collateral -= event.amount
            elif kind == "Liquidate":
                borrow_shares -= event.shares
                collateral -= event.amount
                repaid = _repaid_assets(event)
                if repaid is not None:
                    borrowed_amount -= repaid
            last_updated = max(last_updated, event.block_time)

        if supply_shares == 0 and borrow_shares == 0 and collateral == 0:
            return None

        return Position(
            address=address,
            market_id=market_id,
            supply_shares=supply_shares,
            borrow_shares=borrow_shares,
            collateral=collateral,
            supplied_amount=supplied_amount,
            borrowed_amount=borrowed_amount,
            updated_at=last_updated,
        )

    def _calculate_positions_for_market(
        self, market_id: str, page: int, limit: int
    ) -> list[Position]:
        rows = self._connection.execute(
            "SELECT DISTINCT on_behalf FROM lending_events WHERE market_id = ?"
            " ORDER BY on_behalf ASC LIMIT ? OFFSET ?",
            (market_id, limit, _offset(page, limit)),
        ).fetchall()
        positions = (self._calculate_user_position(row[0], market_id) for row in rows)
        return [p for p in positions if p is not None]

    def _calculate_user_positions(self, address: str) -> list[Position]:
        positions = (
            self._calculate_user_position(address, market.id) for market in self.get_all_markets()
        )
        found = [p for p in positions if p is not None]
        found.sort(key=lambda p: p.updated_at, reverse=True)
        return found

    # ----------------------------------------------------------- deposits

    def insert_deposit_snapshots(self, snapshots: Sequence[NewDepositSnapshot]) -> None:
        """Insert deposit snapshots; one already stored is skipped."""
        if not snapshots:
            return
        with self._connection:
            self._connection.executemany(
                "INSERT INTO lending_deposits_snapshots (address, market_id, amount, amount_usd,"
                " timestamp) VALUES (?, ?, ?, ?, ?) ON CONFLICT DO NOTHING",
                [(s.address, s.market_id, s.amount, s.amount_usd, s.timestamp) for s in snapshots],
            )

    def get_deposit_snapshots_in_period(
        self, start_time: datetime, end_time: datetime
    ) -> list[DepositSnapshot]:
        """Return snapshots taken at or after ``start_time`` and before ``end_time``."""
        rows = self._connection.execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM lending_deposits_snapshots"
            " WHERE timestamp >= ? AND timestamp < ?",
            (start_time, end_time),
        ).fetchall()
        return [DepositSnapshot(*row) for row in rows]