import sqlite3
from datetime import date
from decimal import Decimal

import pytest
from starlette.applications import Starlette
from starlette.testclient import TestClient

from linx_indexer.db import create_schema
from linx_indexer.models import NewPointsSnapshot
from linx_indexer.points_api import routes
from linx_indexer.points_repository import PointsRepository


@pytest.fixture
def connection():
    conn = sqlite3.connect(
        ":memory:", detect_types=sqlite3.PARSE_DECLTYPES, check_same_thread=False
    )
    conn.row_factory = sqlite3.Row
    create_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def client(connection):
    app = Starlette(routes=routes())
    app.state.db = connection
    with TestClient(app) as test_client:
        yield test_client


def snapshot(address, day, total):
    zero = Decimal(0)
    return NewPointsSnapshot(
        address=address, snapshot_date=day, swap_points=zero, supply_points=zero,
        borrow_points=zero, base_points_total=zero, multiplier_type=None,
        multiplier_value=zero, multiplier_points=zero, referral_points=zero,
        total_points=Decimal(total), total_volume_usd=zero,
    )


def test_empty_leaderboard(client):
    response = client.get("/points/leaderboard")
    assert response.status_code == 200
    assert response.json() == []


def test_leaderboard_uses_latest_date_ranked(client, connection):
    repo = PointsRepository(connection)
    repo.insert_snapshots([
        snapshot("old", date(2025, 1, 14), "999"),
        snapshot("low", date(2025, 1, 15), "10.5"),
        snapshot("high", date(2025, 1, 15), "20"),
    ])
    response = client.get("/points/leaderboard")
    assert response.json() == [
        {"user": "high", "total_points": "20"},
        {"user": "low", "total_points": "10.5"},
    ]


def test_leaderboard_is_limited_to_fifty(client, connection):
    repo = PointsRepository(connection)
    repo.insert_snapshots([snapshot(f"u{i}", date(2025, 1, 15), str(i)) for i in range(60)])
    body = client.get("/points/leaderboard").json()
    assert len(body) == 50
    totals = [Decimal(entry["total_points"]) for entry in body]
    assert totals == sorted(totals, reverse=True)


def test_user_points_from_latest_snapshot(client, connection):
    repo = PointsRepository(connection)
    repo.insert_snapshots([
        snapshot("user1", date(2025, 1, 14), "3000"),
        snapshot("user1", date(2025, 1, 15), "7000"),
    ])
    response = client.get("/points/user/user1")
    assert response.status_code == 200
    assert response.json() == {"total_points": "7000"}


def test_unknown_user_is_not_found(client):
    response = client.get("/points/user/nobody")
    assert response.status_code == 404
    assert response.json() == {"error": "No points snapshot found for address nobody"}