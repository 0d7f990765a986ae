"""HTTP endpoints for lending markets, activity and positions."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from linx_indexer.account_api import (
    DEFAULT_LIMIT,
    BadRequestError,
    _check_limit,
    _endpoint,
    _int_param,
)
from linx_indexer.lending_repository import LendingRepository
from linx_indexer.models import to_json

BORROW_EVENT_TYPES = ("Borrow", "Repay", "Liquidate", "SupplyCollateral", "WithdrawCollateral")
EARN_EVENT_TYPES = ("Supply", "Withdraw")


def _pagination(request: Request) -> tuple[int, int]:
    limit = _int_param(request, "limit", DEFAULT_LIMIT)
    page = _int_param(request, "page", 1)
    _check_limit(limit)
    if page < 1:
        raise BadRequestError("Page must be a positive integer")
    return page, limit


def _repository(request: Request) -> LendingRepository:
    return LendingRepository(request.app.state.db)


@_endpoint
async def _get_markets(request: Request) -> Response:
    page, limit = _pagination(request)
    return JSONResponse(to_json(_repository(request).get_markets(page, limit)))


async def _activity(request: Request, event_types: tuple[str, ...]) -> Response:
    market_id = request.query_params.get("market_id")
    if market_id is None:
        raise BadRequestError("Missing parameter market_id")
    page, limit = _pagination(request)
    address = request.query_params.get("address")
    events = _repository(request).get_activity(market_id, event_types, address, page, limit)
    return JSONResponse(to_json(events))


@_endpoint
async def _get_borrow_activity(request: Request) -> Response:
    return await _activity(request, BORROW_EVENT_TYPES)


@_endpoint
async def _get_earn_activity(request: Request) -> Response:
    return await _activity(request, EARN_EVENT_TYPES)


@_endpoint
async def _get_positions(request: Request) -> Response:
    page, limit = _pagination(request)
    market_id = request.query_params.get("market_id")
    address = request.query_params.get("address")
    if market_id is None and address is None:
        raise BadRequestError("Either market_id or address must be provided")
    positions = _repository(request).get_positions(market_id, address, page, limit)
    return JSONResponse(to_json(positions))


def routes() -> list[Route]:
    """Routes of the lending endpoints."""
    return [
        Route("/lending/markets", _get_markets, methods=["GET"]),
        Route("/lending/borrow-activity", _get_borrow_activity, methods=["GET"]),
        Route("/lending/earn-activity", _get_earn_activity, methods=["GET"]),
        Route("/lending/positions", _get_positions, methods=["GET"]),
    ]