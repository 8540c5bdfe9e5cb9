"""Public price lookup: no authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.ex_common.response import ApiResponse, respond
from src.ex_market.domain.symbols import SUPPORTED_SYMBOLS, price_decimals, require_supported
from src.ex_market.infrastructure.price_feed import PriceFeed, get_price_feed

router = APIRouter(prefix="/prices", tags=["prices"])


@router.get("")
async def list_symbols(request: Request) -> ApiResponse:
    return respond(request, {"symbols": list(SUPPORTED_SYMBOLS)})


@router.get("/{symbol}")
async def get_price(
    symbol: str,
    feed: Annotated[PriceFeed, Depends(get_price_feed)],
    request: Request,
) -> ApiResponse:
    sym = require_supported(symbol)
    quote = await feed.fetch_spot_usd(sym)
    return respond(
        request,
        {
            "symbol": quote.symbol,
            "price_usd": f"{quote.price:.{price_decimals(sym)}f}",
            "source": quote.source,
        },
    )
