"""HTTP endpoints for the points leaderboard and per-user points."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from linx_indexer.account_api import NotFoundError, _endpoint
from linx_indexer.models import to_json
from linx_indexer.points_repository import PointsRepository

LEADERBOARD_SIZE = 50


@_endpoint
async def _get_leaderboard(request: Request) -> Response:
    repository = PointsRepository(request.app.state.db)
    snapshots = repository.get_leaderboard(None, 1, LEADERBOARD_SIZE)
    entries = [
        {"user": snapshot.address, "total_points": to_json(snapshot.total_points)}
        for snapshot in snapshots
    ]
    return JSONResponse(entries)


@_endpoint
async def _get_user_points(request: Request) -> Response:
    address = request.path_params["address"]
    repository = PointsRepository(request.app.state.db)
    snapshot = repository.get_latest_snapshot(address)
    if snapshot is None:
        raise NotFoundError(f"No points snapshot found for address {address}")
    return JSONResponse({"total_points": to_json(snapshot.total_points)})


def routes() -> list[Route]:
    """Routes of the points endpoints."""
    return [
        Route("/points/leaderboard", _get_leaderboard, methods=["GET"]),
        Route("/points/user/{address}", _get_user_points, methods=["GET"]),
    ]