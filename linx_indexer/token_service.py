"""Token prices with an oracle-first lookup and a short-lived cache."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from linx_indexer.linx_price import LinxPriceService, TokenInfo

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 30.0


class PriceOracle(Protocol):
    """Anything that can quote a token's USD price, raising when it cannot."""

    def get_token_price(self, token_id: str) -> Decimal: ...


@dataclass(frozen=True)
class _CachedPrice:
    price: Decimal
    cached_at: float


class TokenService:
    """Token metadata and USD prices.

    Prices come from the oracle when it knows the token, otherwise from the
    Linx API, and are cached for ``cache_ttl`` seconds.
    """

    def __init__(
        self,
        linx_service: LinxPriceService,
        oracle: PriceOracle | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self._linx_service = linx_service
        self._oracle = oracle
        self._cache_ttl = cache_ttl
        self._cache: dict[str, _CachedPrice] = {}
        self._lock = threading.Lock()

    def get_token_price(self, token_id: str) -> Decimal:
        """Return the token's USD price: cache, then oracle, then the Linx API."""
        cached = self._get_from_cache(token_id)
        if cached is not None:
            logger.debug("Cache hit for token %s", token_id)
            return cached

        price = self._fetch_price(token_id)
        self._set_cache(token_id, price)
        return price

    def get_token_info(self, token_id: str) -> TokenInfo:
        return self._linx_service.get_token_info(token_id)

    def get_token_decimals(self, token_id: str) -> int:
        return self._linx_service.get_token_decimals(token_id)

    def clear_cache(self) -> None:
        """Drop every cached price."""
        with self._lock:
            self._cache.clear()

    def _fetch_price(self, token_id: str) -> Decimal:
        if self._oracle is None:
            return self._linx_service.get_token_price(token_id)

        try:
            price = self._oracle.get_token_price(token_id)
        except Exception as oracle_err:
            logger.debug(
                "Oracle fetch failed for token %s: %s, trying Linx API", token_id, oracle_err
            )
            try:
                return self._linx_service.get_token_price(token_id)
            except Exception as linx_err:
                raise RuntimeError(
                    f"Both oracle and Linx API failed for token {token_id}."
                    f" Oracle error: {oracle_err}: {linx_err}"
                ) from linx_err
        logger.debug("Fetched price for token %s from oracle", token_id)
        return price

    def _get_from_cache(self, token_id: str) -> Decimal | None:
        with self._lock:
            cached = self._cache.get(token_id)
        if cached is None:
            return None
        if time.monotonic() - cached.cached_at < self._cache_ttl:
            return cached.price
        return None

    def _set_cache(self, token_id: str, price: Decimal) -> None:
        with self._lock:
            self._cache[token_id] = _CachedPrice(price=price, cached_at=time.monotonic())