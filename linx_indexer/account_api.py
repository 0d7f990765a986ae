"""HTTP errors shared by the API and the account-transactions endpoint.

Handlers read the database connection from ``request.app.state.db``.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from linx_indexer.account_transactions_repository import AccountTransactionRepository
from linx_indexer.models import to_json

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class AppError(Exception):
    """An error reported to the client with an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


_Handler = Callable[[Request], Awaitable[Response]]


def _endpoint(handler: _Handler) -> _Handler:
    """Turn errors raised by a handler into JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except AppError as exc:
            return JSONResponse({"error": exc.message}, status_code=exc.status_code)
        except Exception:
            logger.exception("Unhandled error in %s", request.url.path)
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    return wrapper


def _int_param(request: Request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise BadRequestError(f"Invalid value for parameter {name}") from None


def _check_limit(limit: int) -> None:
    if limit <= 0 or limit > MAX_LIMIT:
        raise BadRequestError("Limit must be between 1 and 100")


@_endpoint
async def _get_account_transactions(request: Request) -> Response:
    limit = _int_param(request, "limit", DEFAULT_LIMIT)
    offset = _int_param(request, "offset", 0)
    _check_limit(limit)
    if offset < 0:
        raise BadRequestError("Offset must be non-negative")

    address = request.query_params.get("address")
    if address is None:
        raise BadRequestError("Missing parameter address")
    if not address:
        raise BadRequestError("Address parameter cannot be empty")

    repository = AccountTransactionRepository(request.app.state.db)
    transactions = repository.get_account_transactions(address, limit, offset)
    return JSONResponse(to_json(transactions))


def routes() -> list[Route]:
    """Routes of the account-transactions endpoint."""
    return [Route("/account-transactions", _get_account_transactions, methods=["GET"])]