# ahamai/tools/crypto.py
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, Field

from .. import indicators
from ..errors import ProviderError
from ..fallback import get_json, run_methods
from .base import Tool, ToolContext, error_message, utc_now_iso

logger = logging.getLogger(__name__)

COINGECKO = "https://api.coingecko.com/api/v3"
COINCAP = "https://api.coincap.io/v2"

# symbol -> (CoinGecko id, CoinCap id, display name)
COINS = {
    "btc": ("bitcoin", "bitcoin", "Bitcoin"),
    "eth": ("ethereum", "ethereum", "Ethereum"),
    "ada": ("cardano", "cardano", "Cardano"),
    "sol": ("solana", "solana", "Solana"),
    "doge": ("dogecoin", "dogecoin", "Dogecoin"),
    "dot": ("polkadot", "polkadot", "Polkadot"),
    "link": ("chainlink", "chainlink", "Chainlink"),
    "ltc": ("litecoin", "litecoin", "Litecoin"),
    "bch": ("bitcoin-cash", "bitcoin-cash", "Bitcoin Cash"),
    "xlm": ("stellar", "stellar", "Stellar"),
    "xrp": ("ripple", "ripple", "XRP"),
    "matic": ("polygon", "polygon", "Polygon"),
    "avax": ("avalanche-2", "avalanche", "Avalanche"),
    "algo": ("algorand", "algorand", "Algorand"),
    "atom": ("cosmos", "cosmos", "Cosmos"),
    "near": ("near", "near-protocol", "NEAR Protocol"),
    "uni": ("uniswap", "uniswap", "Uniswap"),
    "aave": ("aave", "aave", "Aave"),
    "comp": ("compound-governance-token", "compound", "Compound"),
}

PERIOD_DAYS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90, "180d": 180, "1y": 365}
PERIOD_INTERVAL = {"1d": "h1", "7d": "h6"}  # CoinCap; everything else is d1


def coingecko_id(symbol: str) -> str:
    return COINS.get(symbol.lower(), (symbol,))[0]


def coincap_id(symbol: str) -> str:
    entry = COINS.get(symbol.lower())
    return entry[1] if entry else symbol


def crypto_name(symbol: str) -> str:
    entry = COINS.get(symbol.lower())
    return entry[2] if entry else symbol.upper()


class CryptoArgs(BaseModel):
    symbol: str = Field(description="Cryptocurrency symbol (e.g., BTC, ETH, ADA, SOL, DOGE)")
    period: Literal["1d", "7d", "30d", "90d", "180d", "1y"] = Field(default="30d", description="Time period for historical data")
    currency: Literal["usd", "eur", "btc"] = Field(default="usd", description="Currency for price display")
    include_market_data: bool = Field(default=True, description="Include detailed market statistics")
    compare: Optional[List[str]] = Field(default=None, description="Additional crypto symbols to compare (max 3)")


DESCRIPTION = """Get real-time cryptocurrency data and analysis with interactive charts.
Provides current prices, historical charts, market statistics (market cap, volume, supply),
24h/7d/30d changes and technical indicators. Supports BTC, ETH, ADA, SOL, DOGE and more."""


def _iso_ms(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


async def fetch_current_price(client: httpx.AsyncClient, symbol: str, currency: str) -> Dict[str, Any]:
    async def coingecko():
        coin_id = coingecko_id(symbol)
        data = await get_json(client, f"{COINGECKO}/simple/price", "coingecko", params={
            "ids": coin_id,
            "vs_currencies": currency,
            "include_24hr_change": "true",
            "include_market_cap": "true",
            "include_24hr_vol": "true",
        })
        coin = data.get(coin_id)
        if not coin or coin.get(currency) is None:
            raise ProviderError("coingecko", f"no data for {symbol}")
        return {
            "symbol": symbol.upper(),
            "name": crypto_name(symbol),
            "price": coin[currency],
            "change24h": coin.get(f"{currency}_24h_change") or 0,
            "marketCap": coin.get(f"{currency}_market_cap") or 0,
            "volume24h": coin.get(f"{currency}_24h_vol") or 0,
        }

    async def coincap():
        data = await get_json(client, f"{COINCAP}/assets/{coincap_id(symbol)}", "coincap")
        asset = data.get("data")
        if not asset:
            raise ProviderError("coincap", f"no data for {symbol}")
        # CoinCap only quotes USD
        return {
            "symbol": symbol.upper(),
            "name": asset.get("name") or crypto_name(symbol),
            "price": _float(asset.get("priceUsd")),
            "change24h": _float(asset.get("changePercent24Hr")),
            "marketCap": _float(asset.get("marketCapUsd")),
            "volume24h": _float(asset.get("volumeUsd24Hr")),
        }

    return await run_methods(f"price {symbol}", [coingecko, coincap])


async def fetch_chart(client: httpx.AsyncClient, symbol: str, period: str, currency: str) -> List[Dict[str, Any]]:
    days = PERIOD_DAYS.get(period, 30)

    async def coingecko():
        data = await get_json(client, f"{COINGECKO}/coins/{coingecko_id(symbol)}/market_chart", "coingecko chart", params={
            "vs_currency": currency,
            "days": days,
            "interval": "hourly" if days <= 1 else "daily",
        })
        prices = data.get("prices") or []
        if not prices:
            raise ProviderError("coingecko chart", "no chart data available")
        volumes = data.get("total_volumes") or []
        return [
            {
                "date": _iso_ms(ts),
                "timestamp": ts,
                "price": price,
                "volume": volumes[i][1] if i < len(volumes) else 0,
            }
            for i, (ts, price) in enumerate(prices)
        ]

    async def coincap():
        end = int(time.time() * 1000)
        start = end - days * 24 * 60 * 60 * 1000
        data = await get_json(client, f"{COINCAP}/assets/{coincap_id(symbol)}/history", "coincap history", params={
            "interval": PERIOD_INTERVAL.get(period, "d1"),
            "start": start,
            "end": end,
        })
        items = data.get("data") or []
        if not items:
            raise ProviderError("coincap history", "no chart data available")
        # no volume in CoinCap history
        return [
            {"date": _iso_ms(item["time"]), "timestamp": item["time"], "price": _float(item.get("priceUsd")), "volume": 0}
            for item in items
        ]

    return await run_methods(f"chart {symbol}", [coingecko, coincap])


async def fetch_market_data(client: httpx.AsyncClient, symbol: str, currency: str) -> Dict[str, Any]:
    try:
        data = await get_json(client, f"{COINGECKO}/coins/{coingecko_id(symbol)}", "coingecko market", params={
            "localization": "false",
            "tickers": "false",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
            "sparkline": "false",
        })
    except ProviderError as e:
        logger.info("Failed to fetch market data for %s: %s", symbol, e)
        return {}

    market = data.get("market_data") or {}

    def by_currency(field: str, default: Any = 0) -> Any:
        return (market.get(field) or {}).get(currency, default)

    return {
        "marketCap": by_currency("market_cap"),
        "marketCapRank": data.get("market_cap_rank") or 0,
        "totalVolume": by_currency("total_volume"),
        "circulatingSupply": market.get("circulating_supply") or 0,
        "totalSupply": market.get("total_supply") or 0,
        "maxSupply": market.get("max_supply"),
        "ath": by_currency("ath"),
        "athDate": by_currency("ath_date", None),
        "atl": by_currency("atl"),
        "atlDate": by_currency("atl_date", None),
        "priceChange7d": market.get("price_change_percentage_7d") or 0,
        "priceChange30d": market.get("price_change_percentage_30d") or 0,
        "marketCapChange24h": market.get("market_cap_change_percentage_24h") or 0,
    }


async def fetch_comparison(client: httpx.AsyncClient, symbols: List[str], currency: str) -> List[Dict[str, Any]]:
    ids = ",".join(coingecko_id(s.lower()) for s in symbols)
    try:
        data = await get_json(client, f"{COINGECKO}/simple/price", "coingecko compare", params={
            "ids": ids,
            "vs_currencies": currency,
            "include_24hr_change": "true",
            "include_market_cap": "true",
        })
    except ProviderError as e:
        logger.info("Failed to fetch comparison data: %s", e)
        return []

    rows = []
    for s in symbols:
        coin = data.get(coingecko_id(s.lower())) or {}
        rows.append({
            "symbol": s.upper(),
            "name": crypto_name(s),
            "price": coin.get(currency) or 0,
            "change24h": coin.get(f"{currency}_24h_change") or 0,
            "marketCap": coin.get(f"{currency}_market_cap") or 0,
        })
    return rows


def technical_indicators(chart: List[Dict[str, Any]]) -> Dict[str, Any]:
    if len(chart) < 20:
        return {}
    prices = [p["price"] for p in chart]
    volumes = [p["volume"] for p in chart]
    return {
        "sma20": indicators.sma_last(prices, 20) or 0,
        "sma50": indicators.sma_last(prices, 50) or 0,
        "rsi": indicators.rsi(prices, 14),
        "volatility": indicators.volatility(prices),
        "avgVolume": sum(volumes) / len(volumes),
        "priceRange": indicators.price_range(prices),
    }


def format_currency(value: float) -> str:
    # 2 to 8 decimals, trailing zeros trimmed past the cents
    text = f"{value:,.8f}".rstrip("0")
    whole, _, frac = text.partition(".")
    return f"${whole}.{frac.ljust(2, '0')}"


def generate_analysis(current: Dict[str, Any], chart: List[Dict[str, Any]], tech: Dict[str, Any]) -> Dict[str, Any]:
    trend = "bullish" if len(chart) > 1 and chart[-1]["price"] > chart[0]["price"] else "bearish"
    vol = tech.get("volatility", 0)
    level = "high" if vol > 0.05 else "medium" if vol > 0.02 else "low"
    price_range = tech.get("priceRange") or {}
    change = current["change24h"]

    return {
        "trend": trend,
        "volatility": level,
        "sentiment": "positive" if trend == "bullish" else "negative",
        "keyLevels": {
            "support": price_range.get("low") or current["price"] * 0.9,
            "resistance": price_range.get("high") or current["price"] * 1.1,
        },
        "summary": (
            f"{current['symbol']} is showing {trend} momentum with {level} volatility. "
            f"Current price is {format_currency(current['price'])} with "
            f"{'gains' if change >= 0 else 'losses'} of {abs(change):.2f}% in 24h."
        ),
    }


async def _empty(value):
    return value


async def execute(args: CryptoArgs, ctx: ToolContext) -> Dict[str, Any]:
    symbol = args.symbol.lower().strip()
    logger.info("Fetching crypto data for %s", symbol.upper())

    try:
        current, chart, market, comparison = await asyncio.gather(
            fetch_current_price(ctx.client, symbol, args.currency),
            fetch_chart(ctx.client, symbol, args.period, args.currency),
            fetch_market_data(ctx.client, symbol, args.currency) if args.include_market_data else _empty({}),
            fetch_comparison(ctx.client, args.compare[:3], args.currency) if args.compare else _empty([]),
        )
        tech = technical_indicators(chart)
        return {
            "type": "crypto",
            "symbol": symbol.upper(),
            "current": current,
            "chart": chart,
            "market": market,
            "comparison": comparison,
            "technicalIndicators": tech,
            "analysis": generate_analysis(current, chart, tech),
            "period": args.period,
            "currency": args.currency.upper(),
            "timestamp": utc_now_iso(),
            "status": "success",
        }
    except Exception as e:
        logger.warning("Crypto tool error for %s: %s", symbol, e)
        return {
            "type": "crypto",
            "symbol": symbol.upper(),
            "error": f"Failed to fetch crypto data: {error_message(e)}",
            "timestamp": utc_now_iso(),
            "status": "error",
        }


TOOL = Tool(name="crypto", description=DESCRIPTION, args_model=CryptoArgs, execute=execute)
