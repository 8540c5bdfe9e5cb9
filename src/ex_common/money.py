"""Decimal money utilities for the multi-coin ledger.

All amounts, balances and prices are ``decimal.Decimal`` and are stored as
NUMERIC(28, 8). Never float. Each coin has a fixed precision:

  USDT: 2   BTC/ETH/SOL: 8   XRP/TON: 4

User-entered amounts carrying more precision than their coin allows are
rejected; computed amounts (payouts, conversion proceeds) are rounded DOWN so
the platform never credits a fraction the coin cannot represent.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

from src.ex_common.errors import InvalidRequestError, UnsupportedCoinError

QUOTE_COIN = "USDT"

COIN_DECIMALS: dict[str, int] = {
    "USDT": 2,
    "BTC": 8,
    "ETH": 8,
    "SOL": 8,
    "XRP": 4,
    "TON": 4,
}

# Balance rows created for every new account
SUPPORTED_COINS: tuple[str, ...] = tuple(COIN_DECIMALS)

ZERO = Decimal("0")

# NUMERIC(28, 8) holds 20 integer digits
MAX_AMOUNT = Decimal(10) ** 20


def normalize_coin(coin: str) -> str:
    """Upper-case and validate a coin code."""
    code = (coin or "").strip().upper()
    if code not in COIN_DECIMALS:
        raise UnsupportedCoinError(coin)
    return code


def coin_quantum(coin: str) -> Decimal:
    """Smallest representable unit: USDT -> Decimal('0.01')."""
    return Decimal(1).scaleb(-COIN_DECIMALS[coin])


def to_decimal(value: object) -> Decimal:
    """Convert int/str/Decimal (or float via its repr) to Decimal, rejecting NaN/inf."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidRequestError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise InvalidRequestError(f"Not a finite number: {value!r}")
    return result


def parse_amount(value: object, coin: str) -> Decimal:
    """Validate a user-entered positive amount for ``coin``.

    Raises InvalidRequestError for non-positive values, excess precision or
    values too large for a NUMERIC(28, 8) column.
    """
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidRequestError(f"Amount must be positive, got {amount}")
    if amount >= MAX_AMOUNT:
        raise InvalidRequestError(f"Amount must be below 1e20, got {amount}")
    try:
        quantized = amount.quantize(coin_quantum(coin), rounding=ROUND_DOWN)
    except InvalidOperation as exc:
        raise InvalidRequestError(f"Amount out of range: {amount}") from exc
    if amount != quantized:
        raise InvalidRequestError(
            f"{coin} supports at most {COIN_DECIMALS[coin]} decimal places, got {amount}"
        )
    return quantized


def quantize_down(amount: Decimal, coin: str) -> Decimal:
    """Round a computed amount down to the coin's precision."""
    return amount.quantize(coin_quantum(coin), rounding=ROUND_DOWN)


def round_price(price: Decimal, places: int) -> Decimal:
    """Round a display price half-up to ``places`` decimals."""
    return price.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, coin: str) -> str:
    """Display string at coin precision: (Decimal('1.5'), 'USDT') -> '1.50'."""
    return f"{amount.quantize(coin_quantum(coin), rounding=ROUND_DOWN):f}"
