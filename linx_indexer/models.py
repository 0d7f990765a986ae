"""Records stored in the indexer database and served by its HTTP API."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def to_json(value: Any) -> Any:
    """Turn records, decimals and dates into plain JSON-compatible values.

    Decimals become strings in fixed-point notation so that no precision is
    lost; dates and datetimes become ISO 8601 strings.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_json(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return to_json(value.value)
    if isinstance(value, dict):
        return {str(key): to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


# ---------------------------------------------------------------- accounts


@dataclass
class AccountTransaction:
    id: int
    address: str
    tx_type: str
    from_group: int
    to_group: int
    block_height: int
    tx_id: str
    timestamp: datetime


@dataclass
class NewAccountTransaction:
    address: str
    tx_type: str
    from_group: int
    to_group: int
    block_height: int
    tx_id: str
    timestamp: datetime


@dataclass
class TransferDetails:
    token_id: str
    from_address: str
    to_address: str
    amount: Decimal
    id: int | None = None


@dataclass
class SwapDetails:
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal
    pool_address: str
    tx_id: str
    id: int | None = None


@dataclass
class ContractCallDetails:
    contract_address: str
    id: int | None = None


@dataclass
class TransferTransaction:
    account_transaction: AccountTransaction
    transfer: TransferDetails


@dataclass
class SwapTransaction:
    account_transaction: AccountTransaction
    swap: SwapDetails


@dataclass
class NewTransferTransaction:
    account_transaction: NewAccountTransaction
    transfer: TransferDetails


@dataclass
class NewSwapTransaction:
    account_transaction: NewAccountTransaction
    swap: SwapDetails


@dataclass
class NewContractCallTransaction:
    account_transaction: NewAccountTransaction
    contract_call: ContractCallDetails


# ----------------------------------------------------------------- lending


@dataclass
class Market:
    id: str
    market_contract_id: str
    collateral_token: str
    loan_token: str
    oracle: str
    irm: str
    ltv: Decimal
    created_at: datetime


@dataclass
class LendingEvent:
    id: int
    market_id: str
    event_type: str
    token_id: str
    on_behalf: str
    amount: Decimal
    shares: Decimal
    transaction_id: str
    event_index: int
    block_time: datetime
    created_at: datetime
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class NewLendingEvent:
    market_id: str
    event_type: str
    token_id: str
    on_behalf: str
    amount: Decimal
    shares: Decimal
    transaction_id: str
    event_index: int
    block_time: datetime
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class Position:
    address: str
    market_id: str
    supply_shares: Decimal
    borrow_shares: Decimal
    collateral: Decimal
    supplied_amount: Decimal
    borrowed_amount: Decimal
    updated_at: datetime


@dataclass
class DepositSnapshot:
    id: int
    address: str
    market_id: str
    amount: Decimal
    amount_usd: Decimal
    timestamp: datetime
    created_at: datetime


@dataclass
class NewDepositSnapshot:
    address: str
    market_id: str
    amount: Decimal
    amount_usd: Decimal
    timestamp: datetime


# ------------------------------------------------------------------ points


@dataclass
class PointsConfig:
    id: int
    action_type: str
    points_per_usd: Decimal | None
    points_per_usd_per_day: Decimal | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class NewPointsConfig:
    action_type: str
    points_per_usd: Decimal | None = None
    points_per_usd_per_day: Decimal | None = None
    is_active: bool = True


@dataclass
class PointsMultiplier:
    id: int
    multiplier_type: str
    threshold_value: Decimal
    multiplier: Decimal
    is_active: bool
    created_at: datetime


@dataclass
class NewPointsMultiplier:
    multiplier_type: str
    threshold_value: Decimal
    multiplier: Decimal
    is_active: bool = True


@dataclass
class ReferralCode:
    id: int
    code: str
    owner_address: str
    created_at: datetime


@dataclass
class NewReferralCode:
    code: str
    owner_address: str


@dataclass
class UserReferral:
    id: int
    user_address: str
    referral_code: str
    referred_by_address: str
    created_at: datetime


@dataclass
class NewUserReferral:
    user_address: str
    referral_code: str
    referred_by_address: str


@dataclass
class PointsSnapshot:
    id: int
    address: str
    snapshot_date: date
    swap_points: Decimal
    supply_points: Decimal
    borrow_points: Decimal
    base_points_total: Decimal
    multiplier_type: str | None
    multiplier_value: Decimal
    multiplier_points: Decimal
    referral_points: Decimal
    total_points: Decimal
    total_volume_usd: Decimal
    created_at: datetime


@dataclass
class NewPointsSnapshot:
    address: str
    snapshot_date: date
    swap_points: Decimal
    supply_points: Decimal
    borrow_points: Decimal
    base_points_total: Decimal
    multiplier_type: str | None
    multiplier_value: Decimal
    multiplier_points: Decimal
    referral_points: Decimal
    total_points: Decimal
    total_volume_usd: Decimal


@dataclass
class PointsTransaction:
    id: int
    address: str
    action_type: str
    transaction_id: str | None
    amount_usd: Decimal
    points_earned: Decimal
    created_at: datetime
    snapshot_date: date


@dataclass
class NewPointsTransaction:
    address: str
    action_type: str
    transaction_id: str | None
    amount_usd: Decimal
    points_earned: Decimal
    snapshot_date: date


# ------------------------------------------------------------------- pools


@dataclass
class Pool:
    id: int
    address: str
    token_a: str
    token_b: str
    factory_address: str


@dataclass
class NewPool:
    address: str
    token_a: str
    token_b: str
    factory_address: str