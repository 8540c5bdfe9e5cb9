"""Pure trade-resolution rules.

Nothing here touches the database, the clock or global state: the trade-mode
overrides are passed in by the caller, who reads them inside the resolution
transaction.
"""

import random
from decimal import Decimal

from src.ex_common.enums import GlobalTradeMode, TradeDirection, TradeResult, UserTradeMode
from src.ex_common.money import QUOTE_COIN, quantize_down, round_price
from src.ex_market.domain.symbols import price_decimals

MIN_DURATION_SECONDS = 5
MAX_DURATION_SECONDS = 120

# Payout rate by exact duration in seconds; any other duration pays the default
PAYOUT_RATES: dict[int, Decimal] = {
    30: Decimal("0.30"),
    60: Decimal("0.50"),
    90: Decimal("0.70"),
    120: Decimal("1.00"),
}
DEFAULT_PAYOUT_RATE = Decimal("0.30")

# Cosmetic settlement offset: 2-8 bps of entry, at least one tick
MIN_OFFSET_PCT = 0.0002
MAX_OFFSET_PCT = 0.0008


def clamp_duration(seconds: int) -> int:
    return max(MIN_DURATION_SECONDS, min(MAX_DURATION_SECONDS, int(seconds)))


def payout_rate(duration: int) -> Decimal:
    """30/50/70/100% for exactly 30/60/90/120 s, 30% for anything else."""
    return PAYOUT_RATES.get(duration, DEFAULT_PAYOUT_RATE)


def decide_outcome(
    direction: TradeDirection,
    entry_price: Decimal,
    market_price: Decimal | None,
    user_mode: UserTradeMode | None,
    global_mode: GlobalTradeMode,
) -> TradeResult:
    """Per-account override, then global override, then the market comparison.

    In AUTO mode an unchanged price counts as "up". A missing market price is
    treated as unchanged.
    """
    if user_mode is UserTradeMode.WIN:
        return TradeResult.WIN
    if user_mode is UserTradeMode.LOSE:
        return TradeResult.LOSE
    if global_mode is GlobalTradeMode.ALL_WIN:
        return TradeResult.WIN
    if global_mode is GlobalTradeMode.ALL_LOSE:
        return TradeResult.LOSE

    observed = entry_price if market_price is None else market_price
    went_up = observed >= entry_price
    wins = went_up if direction is TradeDirection.BUY else not went_up
    return TradeResult.WIN if wins else TradeResult.LOSE


def compute_profit(stake: Decimal, outcome: TradeResult, duration: int) -> Decimal:
    if outcome is TradeResult.WIN:
        return quantize_down(stake * payout_rate(duration), QUOTE_COIN)
    return -stake


def _min_tick(entry_price: Decimal) -> Decimal:
    if entry_price < 2:
        return Decimal("0.0001")
    if entry_price < 100:
        return Decimal("0.01")
    return Decimal("0.1")


def settlement_price(
    entry_price: Decimal,
    symbol: str,
    direction: TradeDirection,
    outcome: TradeResult,
    rng: random.Random | None = None,
) -> Decimal:
    """Plausible display price on the outcome-consistent side of entry.

    WIN+BUY and LOSE+SELL land above entry, WIN+SELL and LOSE+BUY below.
    """
    draw = (rng or random).uniform(MIN_OFFSET_PCT, MAX_OFFSET_PCT)
    gap = max(entry_price * Decimal(str(draw)), _min_tick(entry_price))
    above = (outcome is TradeResult.WIN) == (direction is TradeDirection.BUY)

    places = price_decimals(symbol)
    quantum = Decimal(1).scaleb(-places)
    price = round_price(entry_price + gap if above else entry_price - gap, places)

    # Rounding must not collapse onto (or across) the entry price
    if above and price <= entry_price:
        price = round_price(entry_price, places) + quantum
        if price <= entry_price:
            price += quantum
    elif not above and price >= entry_price:
        price = round_price(entry_price, places) - quantum
        if price >= entry_price:
            price -= quantum
    return max(price, quantum)
