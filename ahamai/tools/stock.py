# ahamai/tools/stock.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, Field

from .. import indicators
from ..errors import ProviderError
from ..fallback import get_json, run_methods
from .base import Tool, ToolContext, error_message, utc_now_iso

logger = logging.getLogger(__name__)

YAHOO_Q1 = "https://query1.finance.yahoo.com"
YAHOO_Q2 = "https://query2.finance.yahoo.com"

Period = Literal["1d", "5d", "1mo", "3mo", "6mo", "1y", "2y", "5y", "10y", "ytd", "max"]
Interval = Literal["1m", "2m", "5m", "15m", "30m", "60m", "90m", "1h", "1d", "5d", "1wk", "1mo", "3mo"]


class StockArgs(BaseModel):
    symbol: str = Field(description="Stock symbol (e.g., AAPL, GOOGL, MSFT, TSLA)")
    period: Period = Field(default="1mo", description="Time period for historical data")
    interval: Interval = Field(default="1d", description="Data interval")
    include_news: bool = Field(default=True, description="Include recent news about the stock")
    compare: Optional[List[str]] = Field(default=None, description="Additional stock symbols to compare (max 3)")


DESCRIPTION = """Get real-time stock market data and analysis with interactive charts.
Use this tool when users want current stock prices, historical performance,
trend analysis, comparisons between stocks, or key financial statistics."""


# ------------------------------
# Quote
# ------------------------------

def _last(values: Optional[List[Any]]) -> Any:
    if not values:
        return None
    return values[-1]


def _first_result(data: Dict[str, Any], provider: str) -> Dict[str, Any]:
    results = (data.get("chart") or {}).get("result") or []
    if not results:
        raise ProviderError(provider, "no data in response")
    return results[0]


def _build_quote(symbol: str, meta: Dict[str, Any], quote: Dict[str, Any]) -> Dict[str, Any]:
    price = meta.get("regularMarketPrice") or _last(quote.get("close"))
    previous_close = meta.get("previousClose") or meta.get("chartPreviousClose")
    if price is None or not previous_close:
        raise ProviderError("yahoo", "quote is missing price data")

    highs = [h for h in quote.get("high") or [] if h is not None]
    lows = [l for l in quote.get("low") or [] if l is not None]
    change = price - previous_close

    return {
        "symbol": symbol,
        "name": meta.get("longName") or meta.get("shortName") or symbol,
        "price": price,
        "change": change,
        "changePercent": change / previous_close * 100,
        "previousClose": previous_close,
        "open": meta.get("regularMarketOpen") or _last(quote.get("open")),
        "high": meta.get("regularMarketDayHigh") or (max(highs) if highs else price),
        "low": meta.get("regularMarketDayLow") or (min(lows) if lows else price),
        "volume": meta.get("regularMarketVolume") or _last(quote.get("volume")) or 0,
        "marketCap": meta.get("marketCap"),
        "currency": meta.get("currency") or "USD",
        "exchangeName": meta.get("exchangeName") or "Unknown",
        "marketState": meta.get("marketState") or "UNKNOWN",
        "timezone": meta.get("timezone") or "America/New_York",
    }


async def fetch_quote(client: httpx.AsyncClient, symbol: str) -> Dict[str, Any]:
    async def primary():
        data = await get_json(client, f"{YAHOO_Q1}/v8/finance/chart/{symbol}", "yahoo v8",
                              params={"range": "1d", "interval": "1d"})
        result = _first_result(data, "yahoo v8")
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        return _build_quote(symbol, result.get("meta") or {}, quotes[0])

    async def alternate():
        data = await get_json(client, f"{YAHOO_Q2}/v8/finance/chart/{symbol}", "yahoo v8 alt")
        result = _first_result(data, "yahoo v8 alt")
        return _build_quote(symbol, result.get("meta") or {}, {})

    return await run_methods(f"quote {symbol}", [primary, alternate])


# ------------------------------
# Chart
# ------------------------------

def _bars(result: Dict[str, Any], provider: str) -> List[Dict[str, Any]]:
    timestamps = result.get("timestamp") or []
    if not timestamps:
        raise ProviderError(provider, "no timestamps in chart data")
    quote = ((result.get("indicators") or {}).get("quote") or [{}])[0]

    def at(field: str, i: int) -> Any:
        values = quote.get(field) or []
        return values[i] if i < len(values) else None

    bars = []
    for i, ts in enumerate(timestamps):
        close = at("close", i)
        if not close:
            continue
        bars.append({
            "date": datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "timestamp": ts,
            "open": at("open", i) or 0,
            "high": at("high", i) or 0,
            "low": at("low", i) or 0,
            "close": close,
            "volume": at("volume", i) or 0,
        })
    return bars


async def fetch_chart(client: httpx.AsyncClient, symbol: str, period: str, interval: str) -> List[Dict[str, Any]]:
    params = {"range": period, "interval": interval}

    async def primary():
        data = await get_json(client, f"{YAHOO_Q1}/v8/finance/chart/{symbol}", "yahoo chart", params=params)
        return _bars(_first_result(data, "yahoo chart"), "yahoo chart")

    async def alternate():
        data = await get_json(client, f"{YAHOO_Q2}/v8/finance/chart/{symbol}", "yahoo chart alt", params=params)
        return _bars(_first_result(data, "yahoo chart alt"), "yahoo chart alt")

    return await run_methods(f"chart {symbol}", [primary, alternate])


# ------------------------------
# News & Stats (optional, never fatal)
# ------------------------------

async def fetch_news(client: httpx.AsyncClient, symbol: str) -> List[Dict[str, Any]]:
    try:
        data = await get_json(client, f"{YAHOO_Q1}/v1/finance/search", "yahoo news",
                              params={"q": symbol, "quotesCount": 1, "newsCount": 5})
    except ProviderError as e:
        logger.info("Failed to fetch news for %s: %s", symbol, e)
        return []

    news = []
    for item in data.get("news") or []:
        published = item.get("providerPublishTime")
        news.append({
            "title": item.get("title"),
            "summary": item.get("summary"),
            "link": item.get("link"),
            "publisher": item.get("publisher"),
            "publishedAt": (
                datetime.fromtimestamp(published, tz=timezone.utc).isoformat().replace("+00:00", "Z")
                if published else None
            ),
        })
    return news


_STAT_FIELDS = {
    # card key: (quoteSummary module, field)
    "peRatio": ("summaryDetail", "trailingPE"),
    "pegRatio": ("summaryDetail", "pegRatio"),
    "priceToBook": ("summaryDetail", "priceToBook"),
    "dividendYield": ("summaryDetail", "dividendYield"),
    "eps": ("financialData", "trailingEps"),
    "revenue": ("financialData", "totalRevenue"),
    "profitMargin": ("financialData", "profitMargins"),
    "operatingMargin": ("financialData", "operatingMargins"),
    "returnOnEquity": ("financialData", "returnOnEquity"),
    "debtToEquity": ("financialData", "debtToEquity"),
    "currentRatio": ("financialData", "currentRatio"),
    "beta": ("defaultKeyStatistics", "beta"),
    "fiftyTwoWeekHigh": ("summaryDetail", "fiftyTwoWeekHigh"),
    "fiftyTwoWeekLow": ("summaryDetail", "fiftyTwoWeekLow"),
    "averageVolume": ("summaryDetail", "averageVolume"),
    "sharesOutstanding": ("defaultKeyStatistics", "sharesOutstanding"),
}


async def fetch_stats(client: httpx.AsyncClient, symbol: str) -> Dict[str, Any]:
    try:
        data = await get_json(
            client, f"{YAHOO_Q1}/v10/finance/quoteSummary/{symbol}", "yahoo stats",
            params={"modules": "summaryDetail,financialData,defaultKeyStatistics"},
        )
    except ProviderError as e:
        logger.info("Failed to fetch stats for %s: %s", symbol, e)
        return {}

    results = (data.get("quoteSummary") or {}).get("result") or [{}]
    modules = results[0] or {}
    stats = {}
    for key, (module, field) in _STAT_FIELDS.items():
        raw = ((modules.get(module) or {}).get(field) or {}).get("raw")
        if raw is not None:
            stats[key] = raw
    return stats


# ------------------------------
# Indicators & Analysis
# ------------------------------

def technical_indicators(chart: List[Dict[str, Any]]) -> Dict[str, Any]:
    if len(chart) < 20:
        return {}

    closes = [bar["close"] for bar in chart]
    bands = indicators.bollinger_bands(closes, 20, 2)
    rsi_values = indicators.rsi_series(closes, 14)

    return {
        "sma20": indicators.sma_last(closes, 20),
        "sma50": indicators.sma_last(closes, 50),
        "sma200": indicators.sma_last(closes, 200),
        "rsi": rsi_values[-1] if rsi_values else None,
        "macd": indicators.macd(closes),
        "bollingerBands": {
            "upper": bands["upper"][-1],
            "middle": bands["middle"][-1],
            "lower": bands["lower"][-1],
        },
    }


def _signed(value: float, fmt: str = ".2f") -> str:
    return f"{'+' if value >= 0 else ''}{value:{fmt}}"


def generate_analysis(quote: Dict[str, Any], tech: Dict[str, Any], news: List[Dict[str, Any]], stats: Dict[str, Any]) -> str:
    lines = [f"📈 Stock Analysis: {quote['name']} ({quote['symbol']})", ""]

    lines.append(f"💰 Current Price: ${quote['price']:.2f} {quote['currency']}")
    lines.append(f"📊 Change: {'+' if quote['change'] >= 0 else ''}${quote['change']:.2f} ({_signed(quote['changePercent'])}%)")
    lines.append(f"📈 Day Range: ${quote['low']:.2f} - ${quote['high']:.2f}")
    lines.append(f"📦 Volume: {indicators.format_number(quote['volume'])}")
    if quote.get("marketCap"):
        lines.append(f"🏢 Market Cap: ${indicators.format_number(quote['marketCap'])}")
    lines.append(f"🏛️ Exchange: {quote['exchangeName']} ({quote['marketState']})")
    lines.append("")

    if tech.get("sma20"):
        lines.append("🔍 Technical Indicators:")
        lines.append(f"• SMA 20: ${tech['sma20']:.2f}")
        if tech.get("sma50"):
            lines.append(f"• SMA 50: ${tech['sma50']:.2f}")
        if tech.get("sma200"):
            lines.append(f"• SMA 200: ${tech['sma200']:.2f}")
        if tech.get("rsi"):
            lines.append(f"• RSI (14): {tech['rsi']:.2f} {indicators.rsi_signal(tech['rsi'])}")
        if tech.get("macd"):
            lines.append(f"• MACD: {tech['macd']['macd']:.4f} {indicators.macd_signal(tech['macd'])}")
        lines.append("")

    if stats:
        lines.append("📊 Key Statistics:")
        if stats.get("peRatio"):
            lines.append(f"• P/E Ratio: {stats['peRatio']:.2f}")
        if stats.get("pegRatio"):
            lines.append(f"• PEG Ratio: {stats['pegRatio']:.2f}")
        if stats.get("priceToBook"):
            lines.append(f"• Price-to-Book: {stats['priceToBook']:.2f}")
        if stats.get("dividendYield"):
            lines.append(f"• Dividend Yield: {stats['dividendYield'] * 100:.2f}%")
        if stats.get("eps"):
            lines.append(f"• EPS: ${stats['eps']:.2f}")
        if stats.get("beta"):
            lines.append(f"• Beta: {stats['beta']:.2f} {indicators.beta_signal(stats['beta'])}")
        if stats.get("fiftyTwoWeekHigh") and stats.get("fiftyTwoWeekLow"):
            lines.append(f"• 52W Range: ${stats['fiftyTwoWeekLow']:.2f} - ${stats['fiftyTwoWeekHigh']:.2f}")
        lines.append("")

    pct = quote["changePercent"]
    lines.append("📈 Price Movement Analysis:")
    if pct > 5:
        lines.append(f"🚀 Strong upward momentum (+{pct:.2f}%)")
    elif pct > 2:
        lines.append(f"📈 Positive movement (+{pct:.2f}%)")
    elif pct > -2:
        lines.append(f"➡️ Relatively stable ({pct:.2f}%)")
    elif pct > -5:
        lines.append(f"📉 Negative movement ({pct:.2f}%)")
    else:
        lines.append(f"🔻 Significant decline ({pct:.2f}%)")

    if stats.get("averageVolume") and quote.get("volume"):
        ratio = quote["volume"] / stats["averageVolume"]
        if ratio > 2:
            lines.append(f"🔊 High volume activity ({ratio:.1f}x average)")
        elif ratio > 1.5:
            lines.append(f"📢 Above average volume ({ratio:.1f}x average)")
        elif ratio < 0.5:
            lines.append(f"🔇 Low volume activity ({ratio:.1f}x average)")
        else:
            lines.append(f"📊 Normal volume activity ({ratio:.1f}x average)")
    lines.append("")

    if news:
        lines.append(f"📰 Recent News ({len(news)} articles):")
        for i, article in enumerate(news[:3], start=1):
            lines.append(f"{i}. {article['title']}")
            if article.get("summary"):
                lines.append(f"   {article['summary'][:100]}...")
        lines.append("")

    lines.append("💡 Interactive charts and detailed analysis available below.")
    return "\n".join(lines)


# ------------------------------
# Tool Entry
# ------------------------------

async def _no_news() -> List[Dict[str, Any]]:
    return []


async def execute(args: StockArgs, ctx: ToolContext) -> Dict[str, Any]:
    symbol = args.symbol.upper().strip()
    logger.info("Fetching stock data for %s", symbol)

    try:
        quote, chart, news, stats = await asyncio.gather(
            fetch_quote(ctx.client, symbol),
            fetch_chart(ctx.client, symbol, args.period, args.interval),
            fetch_news(ctx.client, symbol) if args.include_news else _no_news(),
            fetch_stats(ctx.client, symbol),
        )

        comparison: List[Dict[str, Any]] = []
        if args.compare:
            others = [s.upper().strip() for s in args.compare[:3]]
            comparison = list(await asyncio.gather(*(fetch_quote(ctx.client, s) for s in others)))

        tech = technical_indicators(chart)
        return {
            "type": "stock",
            "symbol": symbol,
            "quote": quote,
            "chart": chart,
            "news": news,
            "stats": stats,
            "comparison": comparison,
            "technicalIndicators": tech,
            "analysis": generate_analysis(quote, tech, news, stats),
            "period": args.period,
            "interval": args.interval,
            "timestamp": utc_now_iso(),
            "status": "success",
        }
    except Exception as e:
        logger.warning("Stock data fetch failed for %s: %s", symbol, e)
        message = error_message(e)
        return {
            "type": "stock",
            "symbol": symbol,
            "error": message,
            "analysis": (
                f"❌ Stock data retrieval failed: {message}\n\n"
                "🔄 Possible issues:\n• Invalid stock symbol\n• Market is closed\n"
                "• API rate limit reached\n• Network connection problem\n\n"
                "💡 Suggestions:\n• Check the stock symbol spelling\n• Try again in a few moments\n"
                "• Ensure the symbol is listed on major exchanges"
            ),
            "timestamp": utc_now_iso(),
            "status": "error",
        }


TOOL = Tool(name="stock", description=DESCRIPTION, args_model=StockArgs, execute=execute)
