# linx_indexer

Storage, points calculation and an HTTP API for indexed on-chain activity:
account transactions (transfers, swaps, contract calls), lending markets and
events, liquidity pools, and a daily points programme with volume multipliers
and referrals.

Data lives in SQLite. Amounts are kept as `decimal.Decimal` everywhere and are
stored as text, so share and point arithmetic never loses precision.

## Modules

| Module | Contents |
| --- | --- |
| `linx_indexer.models` | Dataclass records for every table (`AccountTransaction`, `SwapTransaction`, `TransferTransaction`, `Market`, `LendingEvent`, `Position`, `DepositSnapshot`, `PointsConfig`, `PointsMultiplier`, `ReferralCode`, `UserReferral`, `PointsSnapshot`, `PointsTransaction`, `Pool` and their `New...` insert forms). `to_json(value)` turns records into JSON-ready values: decimals become fixed-point strings, dates ISO 8601 strings. |
| `linx_indexer.db` | `open_database(path)` opens a typed connection and creates the tables; `create_schema(connection)` creates the tables on an existing connection. Importing the module registers the decimal, date, datetime and JSON column types with `sqlite3`. |
| `linx_indexer.account_transactions_repository` | `AccountTransactionRepository`: `insert_transfers`, `insert_swaps`, `insert_contract_calls` (a row that cannot be stored, such as a duplicate, is skipped whole), `get_account_transactions(address, limit, offset)` and `get_swaps_in_period(start_time, end_time)`. |
| `linx_indexer.lending_repository` | `LendingRepository`: markets, lending events, activity pages, deposit snapshots, and `get_positions(market_id, address, page, limit)`, which rebuilds positions from each user's event history. |
| `linx_indexer.points_repository` | `PointsRepository`: points rules, multipliers, referral codes and referrals, daily snapshots (with upsert), the leaderboard and points transactions. |
| `linx_indexer.pool_repository` | `PoolRepository`: `insert_pools` and `get_pools`, keyed by pool address. |
| `linx_indexer.linx_price` | `Network`, `TokenInfo` (with `convert_to_decimal` and `from_json`), `testnet_token_info()` and `LinxPriceService`, which reads token metadata and USD prices from a token-list HTTP endpoint; on `Network.TESTNET` it uses built-in token data and makes no request. |
| `linx_indexer.token_service` | `TokenService(linx_service, oracle=None, cache_ttl=30.0)`: prices from an optional oracle, falling back to `LinxPriceService`, cached for `cache_ttl` seconds; `clear_cache()` empties the cache. |
| `linx_indexer.points_activity` | `UserDailyActivity`, `TransactionDetail`, `apply_multipliers` and `add_referral_points`. |
| `linx_indexer.points_calculator` | `PointsSettings` and `PointsCalculatorService`. |
| `linx_indexer.app` | `create_app(connection)`: the Starlette application serving the endpoints below. |

## Serving the API

```python
import sqlite3

from linx_indexer.app import create_app
from linx_indexer.db import create_schema

connection = sqlite3.connect(
    "indexer.db",
    detect_types=sqlite3.PARSE_DECLTYPES,
    check_same_thread=False,
)
create_schema(connection)
app = create_app(connection)
```

`app` is an ASGI application; run it with any ASGI server. Requests may be
handled on a thread other than the one that opened the connection, hence
`check_same_thread=False`.

### Endpoints

- `GET /account-transactions?address=...&limit=20&offset=0`: an address's
  transfers and swaps, newest first. `limit` must be 1 to 100, `offset` must
  not be negative, `address` is required and may not be empty.
- `GET /lending/markets?page=1&limit=20`: markets, oldest first.
- `GET /lending/borrow-activity?market_id=...&address=...&page=1&limit=20`:
  Borrow, Repay, Liquidate, SupplyCollateral and WithdrawCollateral events,
  newest first. `market_id` is required.
- `GET /lending/earn-activity?market_id=...&address=...&page=1&limit=20`:
  Supply and Withdraw events, newest first. `market_id` is required.
- `GET /lending/positions?market_id=...&address=...&page=1&limit=20`:
  positions computed from the event history; at least one of `market_id` and
  `address` is required.
- `GET /points/leaderboard`: the top 50 `{"user", "total_points"}` entries of
  the latest snapshot day.
- `GET /points/user/{address}`: `{"total_points": ...}` from the address's
  latest snapshot, or 404 when it has none.

`page` must be at least 1 and `limit` 1 to 100. Invalid parameters give a 400
response, and errors are returned as `{"error": "<message>"}`.

## Calculating points

```python
from datetime import date

from linx_indexer.account_transactions_repository import AccountTransactionRepository
from linx_indexer.lending_repository import LendingRepository
from linx_indexer.linx_price import LinxPriceService, Network
from linx_indexer.points_calculator import PointsCalculatorService, PointsSettings
from linx_indexer.points_repository import PointsRepository
from linx_indexer.token_service import TokenService

prices = TokenService(LinxPriceService("", Network.TESTNET))
service = PointsCalculatorService(
    PointsRepository(connection),
    LendingRepository(connection),
    AccountTransactionRepository(connection),
    prices,
    PointsSettings(referral_percentage=0.05),
)
service.calculate_points_for_date(date(2025, 1, 15))
```

For each day the service:

1. values every swap (by its input token) and every Borrow event in USD, using
   the token's decimals and price, and multiplies by the `points_per_usd` of
   the active `swap` and `borrow` rules; a missing rule skips that action, and
   an item whose token cannot be priced is skipped;
2. applies the highest `volume` multiplier whose threshold the user's USD
   volume reaches;
3. gives each referrer the configured percentage of the base points of the
   users they referred;
4. stores a snapshot per active user whose total is the previous day's total
   plus the day's points, and carries forward users who had a snapshot the
   previous day but no activity;
5. deletes that day's points transactions and stores the new ones.

`calculate_points_for_range(start_date, end_date)` covers an inclusive range.
`run_scheduler(interval_seconds=300, max_runs=None)` recalculates yesterday
(UTC) at once and then after every interval, logging failures and going on; it
runs forever unless `max_runs` is given.

## What the package does not do

- It does not read blocks or events from a node: the tables are filled through
  the repositories' insert methods by whatever feeds the package.
- It ships no price oracle; pass any object with a
  `get_token_price(token_id)` method as `TokenService`'s `oracle`.
- Supply points are not awarded, and deposit snapshots are only stored and
  read, not generated from market state.
- It has no command-line program and no bundled server; serve `create_app`
  with an ASGI server of your choice.