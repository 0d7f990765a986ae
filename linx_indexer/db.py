"""SQLite storage for the indexer: typed columns and the table layout."""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from os import PathLike

# Column type names are chosen so that SQLite gives them TEXT affinity
# (they contain "TEXT") and never rewrites decimals into floats.
_DECIMAL = "DECIMAL_TEXT"
_DATETIME = "DATETIME_TEXT"
_DATE = "DATE_TEXT"
_JSON = "JSON_TEXT"
_NOW = "(strftime('%Y-%m-%dT%H:%M:%f', 'now'))"


def _register_types() -> None:
    sqlite3.register_adapter(Decimal, lambda value: format(value, "f"))
    sqlite3.register_adapter(datetime, lambda value: value.isoformat())
    sqlite3.register_adapter(date, lambda value: value.isoformat())
    sqlite3.register_adapter(dict, json.dumps)
    sqlite3.register_adapter(list, json.dumps)

    sqlite3.register_converter(_DECIMAL, lambda raw: Decimal(raw.decode()))
    sqlite3.register_converter(_DATETIME, lambda raw: datetime.fromisoformat(raw.decode()))
    sqlite3.register_converter(_DATE, lambda raw: date.fromisoformat(raw.decode()))
    sqlite3.register_converter(_JSON, lambda raw: json.loads(raw.decode()))
    sqlite3.register_converter("BOOLEAN", lambda raw: int(raw) != 0)


_register_types()


_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS account_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL,
    tx_type TEXT NOT NULL,
    from_group INTEGER NOT NULL,
    to_group INTEGER NOT NULL,
    block_height INTEGER NOT NULL,
    tx_id TEXT NOT NULL,
    timestamp {_DATETIME} NOT NULL
);

CREATE TABLE IF NOT EXISTS blocks (
    hash TEXT PRIMARY KEY,
    timestamp {_DATETIME} NOT NULL,
    chain_from INTEGER NOT NULL,
    chain_to INTEGER NOT NULL,
    height INTEGER NOT NULL,
    nonce TEXT NOT NULL,
    version TEXT NOT NULL,
    dep_state_hash TEXT NOT NULL,
    txs_hash TEXT NOT NULL,
    tx_number INTEGER NOT NULL,
    target TEXT NOT NULL,
    ghost_uncles {_JSON} NOT NULL,
    main_chain BOOLEAN NOT NULL,
    deps {_JSON} NOT NULL
);

CREATE TABLE IF NOT EXISTS contract_calls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_transaction_id INTEGER NOT NULL REFERENCES account_transactions (id),
    contract_address TEXT NOT NULL,
    tx_id TEXT NOT NULL,
    UNIQUE (tx_id, contract_address)
);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    tx_id TEXT NOT NULL,
    contract_address TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    fields {_JSON} NOT NULL
);

CREATE TABLE IF NOT EXISTS lending_deposits_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL,
    market_id TEXT NOT NULL,
    amount {_DECIMAL} NOT NULL,
    amount_usd {_DECIMAL} NOT NULL,
    timestamp {_DATETIME} NOT NULL,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW},
    UNIQUE (address, market_id, timestamp)
);

CREATE TABLE IF NOT EXISTS lending_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    market_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    token_id TEXT NOT NULL,
    on_behalf TEXT NOT NULL,
    amount {_DECIMAL} NOT NULL,
    shares {_DECIMAL} NOT NULL,
    transaction_id TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    block_time {_DATETIME} NOT NULL,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW},
    fields {_JSON} NOT NULL DEFAULT '{{}}',
    UNIQUE (transaction_id, event_index)
);

CREATE TABLE IF NOT EXISTS lending_markets (
    id TEXT PRIMARY KEY,
    market_contract_id TEXT NOT NULL,
    collateral_token TEXT NOT NULL,
    loan_token TEXT NOT NULL,
    oracle TEXT NOT NULL,
    irm TEXT NOT NULL,
    ltv {_DECIMAL} NOT NULL,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS lending_positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    market_id TEXT NOT NULL,
    address TEXT NOT NULL,
    supply_shares {_DECIMAL} NOT NULL,
    borrow_shares {_DECIMAL} NOT NULL,
    collateral {_DECIMAL} NOT NULL,
    updated_at {_DATETIME} NOT NULL,
    UNIQUE (market_id, address)
);

CREATE TABLE IF NOT EXISTS loan_actions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    loan_subcontract_id TEXT NOT NULL,
    loan_id {_DECIMAL},
    "by" TEXT NOT NULL,
    timestamp {_DATETIME} NOT NULL,
    action_type INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS loan_details (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    loan_subcontract_id TEXT NOT NULL,
    lending_token_id TEXT NOT NULL,
    collateral_token_id TEXT NOT NULL,
    lending_amount {_DECIMAL} NOT NULL,
    collateral_amount {_DECIMAL} NOT NULL,
    interest_rate {_DECIMAL} NOT NULL,
    duration {_DECIMAL} NOT NULL,
    lender TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS points_config (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action_type TEXT NOT NULL UNIQUE,
    points_per_usd {_DECIMAL},
    points_per_usd_per_day {_DECIMAL},
    is_active BOOLEAN NOT NULL DEFAULT 1,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW},
    updated_at {_DATETIME} NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS points_multipliers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    multiplier_type TEXT NOT NULL,
    threshold_value {_DECIMAL} NOT NULL,
    multiplier {_DECIMAL} NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT 1,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS points_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL,
    snapshot_date {_DATE} NOT NULL,
    swap_points {_DECIMAL} NOT NULL DEFAULT '0',
    supply_points {_DECIMAL} NOT NULL DEFAULT '0',
    borrow_points {_DECIMAL} NOT NULL DEFAULT '0',
    base_points_total {_DECIMAL} NOT NULL DEFAULT '0',
    multiplier_type TEXT,
    multiplier_value {_DECIMAL} NOT NULL DEFAULT '0',
    multiplier_points {_DECIMAL} NOT NULL DEFAULT '0',
    referral_points {_DECIMAL} NOT NULL DEFAULT '0',
    total_points {_DECIMAL} NOT NULL DEFAULT '0',
    total_volume_usd {_DECIMAL} NOT NULL DEFAULT '0',
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW},
    UNIQUE (address, snapshot_date)
);

CREATE TABLE IF NOT EXISTS points_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL,
    action_type TEXT NOT NULL,
    transaction_id TEXT,
    amount_usd {_DECIMAL} NOT NULL,
    points_earned {_DECIMAL} NOT NULL,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW},
    snapshot_date {_DATE} NOT NULL
);

CREATE TABLE IF NOT EXISTS pools (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL UNIQUE,
    token_a TEXT NOT NULL,
    token_b TEXT NOT NULL,
    factory_address TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS processor_status (
    processor TEXT PRIMARY KEY CHECK (length(processor) <= 50),
    last_timestamp INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS referral_codes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL UNIQUE,
    owner_address TEXT NOT NULL,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS swaps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_transaction_id INTEGER NOT NULL REFERENCES account_transactions (id),
    token_in TEXT NOT NULL,
    token_out TEXT NOT NULL,
    amount_in {_DECIMAL} NOT NULL,
    amount_out {_DECIMAL} NOT NULL,
    pool_address TEXT NOT NULL,
    tx_id TEXT NOT NULL,
    UNIQUE (tx_id, pool_address, token_in, token_out)
);

CREATE TABLE IF NOT EXISTS transactions (
    tx_hash TEXT PRIMARY KEY,
    unsigned {_JSON} NOT NULL,
    script_execution_ok BOOLEAN NOT NULL,
    contract_inputs {_JSON} NOT NULL,
    generated_outputs {_JSON} NOT NULL,
    input_signatures {_JSON} NOT NULL,
    script_signatures {_JSON} NOT NULL,
    created_at {_DATETIME},
    updated_at {_DATETIME},
    main_chain BOOLEAN NOT NULL,
    block_hash TEXT
);

CREATE TABLE IF NOT EXISTS transfers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_transaction_id INTEGER NOT NULL REFERENCES account_transactions (id),
    token_id TEXT NOT NULL,
    from_address TEXT NOT NULL,
    to_address TEXT NOT NULL,
    amount {_DECIMAL} NOT NULL,
    tx_id TEXT NOT NULL,
    UNIQUE (tx_id, token_id, from_address, to_address)
);

CREATE TABLE IF NOT EXISTS user_referrals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_address TEXT NOT NULL UNIQUE,
    referral_code TEXT NOT NULL,
    referred_by_address TEXT NOT NULL,
    created_at {_DATETIME} NOT NULL DEFAULT {_NOW}
);
"""


def create_schema(connection: sqlite3.Connection) -> None:
    """Create every table the indexer uses; existing tables are left alone."""
    connection.executescript(_SCHEMA)
    connection.commit()


def open_database(path: str | PathLike[str]) -> sqlite3.Connection:
    """Open (or create) the database at ``path`` with typed columns and the schema."""
    connection = sqlite3.connect(path, detect_types=sqlite3.PARSE_DECLTYPES)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    create_schema(connection)
    return connection