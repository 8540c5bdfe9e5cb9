"""Spot USD prices from public market-data APIs.

Provider order:
  crypto:      CoinGecko -> Binance ({SYM}USDT) -> Coinbase ({SYM}-USD spot)
  commodities: Twelve Data (needs TWELVE_API_KEY), no fallback provider

``fetch_spot_usd`` raises PriceUnavailableError when every provider fails.
``best_effort_price`` never raises: it falls back to a caller-supplied price,
then to a static constant, so trade opening never fails on market data.

Callers must fetch prices BEFORE opening a transaction that takes row locks.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import httpx

from config.settings import settings
from src.ex_common.errors import PriceUnavailableError
from src.ex_common.money import QUOTE_COIN
from src.ex_market.domain.symbols import (
    COINGECKO_IDS,
    TWELVE_DATA_SYMBOLS,
    fallback_price,
    is_commodity,
    normalize_symbol,
)

logger = logging.getLogger(__name__)

_COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"
_BINANCE_URL = "https://api.binance.com/api/v3/ticker/price"
_COINBASE_URL = "https://api.coinbase.com/v2/prices/{symbol}-USD/spot"
_TWELVE_DATA_URL = "https://api.twelvedata.com/price"

_PROVIDER_ERRORS = (
    httpx.HTTPError,
    ValueError,
    KeyError,
    TypeError,
    AttributeError,
    InvalidOperation,
)


@dataclass(frozen=True)
class PriceQuote:
    symbol: str
    price: Decimal
    source: str          # provider name, "client" or "fallback"

    @property
    def is_live(self) -> bool:
        return self.source not in ("client", "fallback")


def _positive(value: object) -> Decimal | None:
    if value is None:
        return None
    price = Decimal(str(value))
    if not price.is_finite() or price <= 0:
        return None
    return price


class PriceFeed:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        twelve_api_key: str | None = None,
        cache_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=settings.PRICE_FEED_TIMEOUT_SECONDS,
            headers={"Accept": "application/json"},
        )
        self._twelve_api_key = (
            twelve_api_key if twelve_api_key is not None else settings.TWELVE_API_KEY
        )
        self._cache_seconds = (
            cache_seconds if cache_seconds is not None else settings.PRICE_CACHE_SECONDS
        )
        self._clock = clock
        self._cache: dict[str, tuple[float, PriceQuote]] = {}

    async def fetch_spot_usd(self, symbol: str) -> PriceQuote:
        """Live USD price for ``symbol``; raises PriceUnavailableError."""
        sym = normalize_symbol(symbol)
        if sym == QUOTE_COIN:
            return PriceQuote(sym, Decimal("1"), "peg")

        cached = self._cache.get(sym)
        if cached is not None and cached[0] > self._clock():
            return cached[1]

        if is_commodity(sym):
            providers = [("twelvedata", self._twelve_data)]
        else:
            providers = [
                ("coingecko", self._coingecko),
                ("binance", self._binance),
                ("coinbase", self._coinbase),
            ]

        for name, provider in providers:
            try:
                price = await provider(sym)
            except _PROVIDER_ERRORS as exc:
                logger.warning("Price provider %s failed for %s: %s", name, sym, exc)
                continue
            if price is not None:
                quote = PriceQuote(sym, price, name)
                self._cache[sym] = (self._clock() + self._cache_seconds, quote)
                return quote

        raise PriceUnavailableError(sym)

    async def best_effort_price(
        self, symbol: str, client_price: Decimal | None = None
    ) -> PriceQuote:
        """Live price, else a sane client-supplied price, else a static constant."""
        sym = normalize_symbol(symbol)
        try:
            return await self.fetch_spot_usd(sym)
        except PriceUnavailableError:
            pass
        if client_price is not None and client_price.is_finite() and client_price > 0:
            logger.info("Using client-supplied price %s for %s", client_price, sym)
            return PriceQuote(sym, client_price, "client")
        logger.warning("All price providers down for %s, using static fallback", sym)
        return PriceQuote(sym, fallback_price(sym), "fallback")

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Providers: return None when the payload holds no usable price
    # ------------------------------------------------------------------

    async def _coingecko(self, sym: str) -> Decimal | None:
        for coin_id in COINGECKO_IDS.get(sym, ()):
            resp = await self._client.get(
                _COINGECKO_URL, params={"ids": coin_id, "vs_currencies": "usd"}
            )
            resp.raise_for_status()
            price = _positive(resp.json(parse_float=Decimal).get(coin_id, {}).get("usd"))
            if price is not None:
                return price
        return None

    async def _binance(self, sym: str) -> Decimal | None:
        resp = await self._client.get(_BINANCE_URL, params={"symbol": f"{sym}USDT"})
        resp.raise_for_status()
        return _positive(resp.json().get("price"))

    async def _coinbase(self, sym: str) -> Decimal | None:
        resp = await self._client.get(
            _COINBASE_URL.format(symbol=sym), headers={"CB-VERSION": "2023-01-01"}
        )
        resp.raise_for_status()
        return _positive(resp.json().get("data", {}).get("amount"))

    async def _twelve_data(self, sym: str) -> Decimal | None:
        if not self._twelve_api_key:
            logger.warning("TWELVE_API_KEY not configured, cannot price %s", sym)
            return None
        resp = await self._client.get(
            _TWELVE_DATA_URL,
            params={"symbol": TWELVE_DATA_SYMBOLS[sym], "apikey": self._twelve_api_key},
        )
        resp.raise_for_status()
        return _positive(resp.json().get("price"))


_price_feed: PriceFeed | None = None


def get_price_feed() -> PriceFeed:
    """Process-wide PriceFeed (shares one httpx connection pool)."""
    global _price_feed  # noqa: PLW0603
    if _price_feed is None:
        _price_feed = PriceFeed()
    return _price_feed


async def close_price_feed() -> None:
    global _price_feed  # noqa: PLW0603
    if _price_feed is not None:
        await _price_feed.aclose()
        _price_feed = None
