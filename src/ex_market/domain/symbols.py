"""Tradable symbols, input normalization and static price fallbacks."""

from decimal import Decimal

from src.ex_common.enums import TradeDirection
from src.ex_common.errors import UnsupportedSymbolError

CRYPTO_SYMBOLS: tuple[str, ...] = ("BTC", "ETH", "SOL", "XRP", "TON")
COMMODITY_SYMBOLS: tuple[str, ...] = ("XAU", "XAG", "WTI", "NATGAS", "XCU")
SUPPORTED_SYMBOLS: tuple[str, ...] = CRYPTO_SYMBOLS + COMMODITY_SYMBOLS

COINGECKO_IDS: dict[str, tuple[str, ...]] = {
    "BTC": ("bitcoin",),
    "ETH": ("ethereum",),
    "SOL": ("solana",),
    "XRP": ("ripple",),
    "TON": ("the-open-network", "toncoin"),
    "USDT": ("tether",),
}

TWELVE_DATA_SYMBOLS: dict[str, str] = {
    "XAU": "XAU/USD",
    "XAG": "XAG/USD",
    "WTI": "CL=F",
    "NATGAS": "NG=F",
    "XCU": "HG=F",
}

# Last resort so a trade can always open
FALLBACK_PRICES: dict[str, Decimal] = {
    "BTC": Decimal("65000"),
    "ETH": Decimal("3400"),
    "SOL": Decimal("140"),
    "XRP": Decimal("0.6"),
    "TON": Decimal("7.0"),
}
DEFAULT_FALLBACK_PRICE = Decimal("1")


def normalize_symbol(raw: str | None) -> str:
    """"btc/usdt", "BTCUSDT", " eth-usd " -> "BTC" / "ETH".

    A bare "USDT" or "USD" is left alone.
    """
    s = "".join((raw or "").split()).upper()
    s = s.split("/")[0].split("-")[0]
    for suffix in ("USDT", "USD"):
        if s != suffix and s.endswith(suffix):
            s = s[: -len(suffix)]
            break
    return s


def require_supported(raw: str | None) -> str:
    symbol = normalize_symbol(raw)
    if symbol not in SUPPORTED_SYMBOLS:
        raise UnsupportedSymbolError(raw or "")
    return symbol


def normalize_direction(raw: str | None) -> TradeDirection:
    """BUY/LONG -> BUY, SELL/SHORT -> SELL; anything mentioning SELL is a SELL."""
    d = (raw or "").strip().upper()
    if d in ("BUY", "LONG"):
        return TradeDirection.BUY
    if d == "SHORT" or "SELL" in d:
        return TradeDirection.SELL
    return TradeDirection.BUY


def is_commodity(symbol: str) -> bool:
    return symbol in TWELVE_DATA_SYMBOLS


def price_decimals(symbol: str) -> int:
    """Display precision for entry and settlement prices."""
    return 4 if symbol in ("XRP", "TON") else 2


def fallback_price(symbol: str) -> Decimal:
    return FALLBACK_PRICES.get(symbol, DEFAULT_FALLBACK_PRICE)
