"""Token metadata and prices from the Linx token API."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import httpx

ALPH_TOKEN_ID = "0" * 64
TEST_BTC_TOKEN_ID = "0712ee40be418ed0105b1b9c1f255a5e3fa0ef40004f400f216df05eb014c600"
TEST_USDT_TOKEN_ID = "79804da1cd63c4575675b6391d956f4745591c65a30aa058ae6bd0a07ce64b00"
TEST_ETH_TOKEN_ID = "c52beb16cc053af22524d010dee4a4946340cb568c6c1cfc48201894b3cf7000"
TEST_USDC_TOKEN_ID = "26b3ade43c606f03ca3a171f3b5b61d6ccd89d4ea25393f8e34dde10ea922e00"

_LOGO_BASE = "https://raw.githubusercontent.com/alephium/token-list/master/logos/"
_TIMEOUT_SECONDS = 5.0


class Network(Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"


@dataclass(frozen=True)
class TokenInfo:
    id: str
    name: str
    symbol: str
    decimals: int
    description: str
    logo_uri: str
    price_usd: float

    def convert_to_decimal(self, raw_amount: Decimal) -> Decimal:
        """Scale a raw on-chain amount down by the token's decimals."""
        return Decimal(raw_amount) / Decimal(10**self.decimals)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> TokenInfo:
        """Build token info from one entry of the API's JSON list."""
        if not isinstance(data, Mapping):
            raise ValueError("token entry must be an object")
        try:
            values = {
                "id": data["id"],
                "name": data["name"],
                "symbol": data["symbol"],
                "description": data["description"],
                "logo_uri": data["logoURI"],
            }
            decimals = data["decimals"]
            price = data["priceUsd"]
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r} in token entry") from exc
        for key, value in values.items():
            if not isinstance(value, str):
                raise ValueError(f"field {key!r} must be a string")
        if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= 255:
            raise ValueError("field 'decimals' must be an integer from 0 to 255")
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise ValueError("field 'priceUsd' must be a number")
        return cls(decimals=decimals, price_usd=float(price), **values)


def _testnet_token(token_id: str, name: str, decimals: int, logo: str = "", description: str = "") -> TokenInfo:
    return TokenInfo(
        id=token_id,
        name=name,
        symbol=name,
        decimals=decimals,
        description=description,
        logo_uri=f"{_LOGO_BASE}{logo}" if logo else "",
        price_usd=0.0,
    )


def testnet_token_info() -> dict[str, TokenInfo]:
    """Fixed token metadata used on testnet, where the API is not queried."""
    tokens = [
        TokenInfo(
            id=ALPH_TOKEN_ID,
            name="Alephium",
            symbol="ALPH",
            decimals=18,
            description="Native Alephium token",
            logo_uri="",
            price_usd=0.0,
        ),
        _testnet_token(TEST_BTC_TOKEN_ID, "tBTC", 18, "TBTC.png"),
        _testnet_token(TEST_USDT_TOKEN_ID, "tUSDT", 6, "TUSDT.png"),
        _testnet_token(TEST_ETH_TOKEN_ID, "tETH", 18, "TETH.png"),
        _testnet_token(TEST_USDC_TOKEN_ID, "tUSDC", 6, "TUSDC.png"),
    ]
    return {token.id: token for token in tokens}


def _price_from_float(token_id: str, price: float) -> Decimal:
    if not math.isfinite(price):
        raise ValueError(f"Failed to parse price for token {token_id}")
    try:
        return Decimal(repr(price))
    except InvalidOperation as exc:
        raise ValueError(f"Failed to parse price for token {token_id}") from exc


class LinxPriceService:
    """Looks up token metadata and USD prices."""

    def __init__(
        self,
        api_url: str,
        network: Network,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_url = api_url
        self.network = network
        self._client = client if client is not None else httpx.Client(timeout=_TIMEOUT_SECONDS)

    def get_token_info(self, token_id: str) -> TokenInfo:
        """Return metadata and price for one token; LookupError if unknown."""
        tokens = self._fetch_all_tokens()
        try:
            return tokens[token_id]
        except KeyError:
            raise LookupError(f"Token {token_id} not found in Linx API") from None

    def get_token_price(self, token_id: str) -> Decimal:
        """Return the token's USD price."""
        info = self.get_token_info(token_id)
        return _price_from_float(token_id, info.price_usd)

    def get_token_decimals(self, token_id: str) -> int:
        return self.get_token_info(token_id).decimals

    def get_multiple_prices(self, token_ids: Iterable[str]) -> dict[str, Decimal]:
        """Return USD prices for the given tokens; unknown tokens are left out."""
        tokens = self._fetch_all_tokens()
        return {
            token_id: _price_from_float(token_id, tokens[token_id].price_usd)
            for token_id in token_ids
            if token_id in tokens
        }

    def _fetch_all_tokens(self) -> dict[str, TokenInfo]:
        if self.network is Network.TESTNET:
            return testnet_token_info()

        try:
            response = self._client.get(self.api_url)
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to fetch tokens from Linx API: {exc}") from exc

        if not response.is_success:
            raise RuntimeError(f"Linx API returned error status: {response.status_code}")

        try:
            payload = response.json()
            if not isinstance(payload, list):
                raise ValueError("expected a list of tokens")
            tokens = [TokenInfo.from_json(entry) for entry in payload]
        except ValueError as exc:
            raise ValueError(f"Failed to parse Linx API response: {exc}") from exc

        return {token.id: token for token in tokens}