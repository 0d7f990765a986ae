from datetime import date, datetime
from decimal import Decimal

from linx_indexer.models import (
    AccountTransaction,
    NewPointsConfig,
    Pool,
    Position,
    TransferDetails,
    TransferTransaction,
    to_json,
)


def _account_tx():
    return AccountTransaction(
        id=7,
        address="addr1",
        tx_type="transfer",
        from_group=0,
        to_group=1,
        block_height=1000,
        tx_id="tx1",
        timestamp=datetime(2025, 1, 15, 12, 0, 0),
    )


def test_to_json_flat_record():
    pool = Pool(id=1, address="pool1", token_a="tokenA", token_b="tokenB", factory_address="f")
    assert to_json(pool) == {
        "id": 1,
        "address": "pool1",
        "token_a": "tokenA",
        "token_b": "tokenB",
        "factory_address": "f",
    }


def test_to_json_decimal_is_fixed_point_string():
    assert to_json(Decimal("1E+2")) == "100"
    assert to_json(Decimal("0.000123")) == "0.000123"


def test_to_json_datetime_and_date():
    assert to_json(datetime(2025, 1, 15, 12, 0, 0)) == "2025-01-15T12:00:00"
    assert to_json(date(2025, 1, 15)) == "2025-01-15"


def test_to_json_nested_records():
    tx = TransferTransaction(
        account_transaction=_account_tx(),
        transfer=TransferDetails(
            token_id="tokenA", from_address="a", to_address="b", amount=Decimal("5"), id=3
        ),
    )
    result = to_json(tx)
    assert result["account_transaction"]["tx_id"] == "tx1"
    assert result["account_transaction"]["timestamp"] == "2025-01-15T12:00:00"
    assert result["transfer"]["amount"] == "5"
    assert result["transfer"]["id"] == 3


def test_to_json_lists_and_dicts():
    data = {"items": [Decimal("1.5"), None, True], 2: "x"}
    assert to_json(data) == {"items": ["1.5", None, True], "2": "x"}


def test_new_points_config_defaults():
    config = NewPointsConfig(action_type="swap")
    assert config.points_per_usd is None
    assert config.points_per_usd_per_day is None
    assert config.is_active is True


def test_position_round_trips_through_json_keys():
    position = Position(
        address="addr",
        market_id="m1",
        supply_shares=Decimal("10"),
        borrow_shares=Decimal("0"),
        collateral=Decimal("2.5"),
        supplied_amount=Decimal("10"),
        borrowed_amount=Decimal("0"),
        updated_at=datetime(2025, 1, 1),
    )
    result = to_json(position)
    assert set(result) == {
        "address",
        "market_id",
        "supply_shares",
        "borrow_shares",
        "collateral",
        "supplied_amount",
        "borrowed_amount",
        "updated_at",
    }
    assert Decimal(result["collateral"]) == position.collateral