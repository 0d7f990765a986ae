import sqlite3
from datetime import date, datetime
from decimal import Decimal

import pytest

from linx_indexer.db import create_schema, open_database

SOURCE_TABLES = {
    "account_transactions",
    "blocks",
    "contract_calls",
    "events",
    "lending_deposits_snapshots",
    "lending_events",
    "lending_markets",
    "lending_positions",
    "loan_actions",
    "loan_details",
    "points_config",
    "points_multipliers",
    "points_snapshots",
    "points_transactions",
    "pools",
    "processor_status",
    "referral_codes",
    "swaps",
    "transactions",
    "transfers",
    "user_referrals",
}


@pytest.fixture
def conn():
    connection = open_database(":memory:")
    yield connection
    connection.close()


def _tables(connection):
    rows = connection.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
    ).fetchall()
    return {row[0] for row in rows}


def test_all_tables_created(conn):
    assert _tables(conn) == SOURCE_TABLES


def test_create_schema_is_idempotent(conn):
    create_schema(conn)
    create_schema(conn)
    assert _tables(conn) == SOURCE_TABLES


def test_decimal_round_trip_keeps_precision(conn):
    ltv = Decimal("0.123456789012345678901234567890")
    conn.execute(
        "INSERT INTO lending_markets (id, market_contract_id, collateral_token, loan_token,"
        " oracle, irm, ltv) VALUES (?, ?, ?, ?, ?, ?, ?)",
        ("m1", "c1", "col", "loan", "oracle", "irm", ltv),
    )
    row = conn.execute("SELECT ltv, created_at FROM lending_markets").fetchone()
    assert row["ltv"] == ltv
    assert isinstance(row["created_at"], datetime)


def test_datetime_json_round_trip(conn):
    when = datetime(2025, 1, 15, 12, 30, 1, 250000)
    fields = {"repaidAssets": "100", "nested": [1, 2]}
    conn.execute(
        "INSERT INTO lending_events (market_id, event_type, token_id, on_behalf, amount,"
        " shares, transaction_id, event_index, block_time, fields)"
        " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        ("m1", "Borrow", "t", "user", Decimal("10"), Decimal("3"), "tx", 0, when, fields),
    )
    row = conn.execute("SELECT block_time, fields, amount FROM lending_events").fetchone()
    assert row["block_time"] == when
    assert row["fields"] == fields
    assert row["amount"] == Decimal("10")


def test_date_and_bool_round_trip(conn):
    day = date(2025, 1, 15)
    conn.execute(
        "INSERT INTO points_snapshots (address, snapshot_date) VALUES (?, ?)", ("u", day)
    )
    conn.execute("INSERT INTO points_config (action_type, is_active) VALUES (?, ?)", ("swap", False))
    snap = conn.execute("SELECT snapshot_date, total_points FROM points_snapshots").fetchone()
    config = conn.execute("SELECT is_active FROM points_config").fetchone()
    assert snap["snapshot_date"] == day
    assert snap["total_points"] == Decimal(0)
    assert config["is_active"] is False


def test_snapshot_unique_per_address_and_date(conn):
    day = date(2025, 1, 15)
    conn.execute("INSERT INTO points_snapshots (address, snapshot_date) VALUES (?, ?)", ("u", day))
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO points_snapshots (address, snapshot_date) VALUES (?, ?)", ("u", day)
        )


def test_foreign_keys_enforced(conn):
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO contract_calls (account_transaction_id, contract_address, tx_id)"
            " VALUES (?, ?, ?)",
            (999, "contract", "tx"),
        )


def test_open_database_on_file_persists(tmp_path):
    path = tmp_path / "indexer.db"
    first = open_database(path)
    first.execute(
        "INSERT INTO processor_status (processor, last_timestamp) VALUES (?, ?)", ("lending", 42)
    )
    first.commit()
    first.close()
    second = open_database(path)
    row = second.execute("SELECT last_timestamp FROM processor_status").fetchone()
    second.close()
    assert row[0] == 42