"""ahamai/indicators.py
Technical indicators for the stock and crypto cards.

Plain moving-window arithmetic over numpy arrays. Every public function accepts
any sequence of floats and returns Python floats/lists so results drop straight
into a JSON card.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray([v for v in values if v is not None], dtype=float)


def sma(values: Sequence[float], period: int) -> List[float]:
    """Rolling simple moving average; empty when there are fewer than `period` values."""
    arr = _as_array(values)
    if period <= 0 or len(arr) < period:
        return []
    window = np.ones(period) / period
    return np.convolve(arr, window, mode="valid").tolist()


def sma_last(values: Sequence[float], period: int) -> Optional[float]:
    series = sma(values, period)
    return series[-1] if series else None


def ema(values: Sequence[float], period: int) -> List[float]:
    """Exponential moving average seeded with the first value."""
    arr = _as_array(values)
    if len(arr) == 0:
        return []
    multiplier = 2 / (period + 1)
    out = np.empty_like(arr)
    out[0] = arr[0]
    for i in range(1, len(arr)):
        out[i] = (arr[i] - out[i - 1]) * multiplier + out[i - 1]
    return out.tolist()


def rsi_series(closes: Sequence[float], period: int = 14) -> List[float]:
    """RSI per window of price changes. A window with no losses divides by 1."""
    arr = _as_array(closes)
    if len(arr) < 2:
        return []
    changes = np.diff(arr)
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)
    if len(changes) < period:
        return []

    window = np.ones(period) / period
    avg_gain = np.convolve(gains, window, mode="valid")
    avg_loss = np.convolve(losses, window, mode="valid")
    avg_loss = np.where(avg_loss == 0, 1.0, avg_loss)
    rs = avg_gain / avg_loss
    return (100 - (100 / (1 + rs))).tolist()


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """Latest RSI over the last `period` changes. 50 when too short, 100 when no losses."""
    arr = _as_array(prices)
    if len(arr) < period + 1:
        return 50.0
    changes = np.diff(arr[-(period + 1):])
    gains = changes[changes > 0].sum()
    losses = -changes[changes < 0].sum()
    if losses == 0:
        return 100.0
    rs = (gains / period) / (losses / period)
    return float(100 - (100 / (1 + rs)))


def macd(closes: Sequence[float]) -> Dict[str, float]:
    ema12 = np.asarray(ema(closes, 12))
    ema26 = np.asarray(ema(closes, 26))
    if len(ema12) == 0:
        return {}
    line = ema12 - ema26
    signal = np.asarray(ema(line.tolist(), 9))
    histogram = line - signal
    return {
        "macd": float(line[-1]),
        "signal": float(signal[-1]),
        "histogram": float(histogram[-1]),
    }


def bollinger_bands(values: Sequence[float], period: int = 20, k: float = 2) -> Dict[str, List[float]]:
    arr = _as_array(values)
    if len(arr) < period:
        return {"upper": [], "middle": [], "lower": []}
    windows = np.lib.stride_tricks.sliding_window_view(arr, period)
    middle = windows.mean(axis=1)
    std = windows.std(axis=1)  # population std-dev
    return {
        "upper": (middle + k * std).tolist(),
        "middle": middle.tolist(),
        "lower": (middle - k * std).tolist(),
    }


def volatility(prices: Sequence[float]) -> float:
    """Population standard deviation of simple returns."""
    arr = _as_array(prices)
    if len(arr) < 2:
        return 0.0
    returns = np.diff(arr) / arr[:-1]
    return float(returns.std())


def price_range(prices: Sequence[float]) -> Dict[str, float]:
    arr = _as_array(prices)
    if len(arr) == 0:
        return {}
    high, low = float(arr.max()), float(arr.min())
    return {"high": high, "low": low, "range": high - low}


# ------------------------------
# Text helpers
# ------------------------------

def format_number(num: float) -> str:
    if num >= 1e12:
        return f"{num / 1e12:.2f}T"
    if num >= 1e9:
        return f"{num / 1e9:.2f}B"
    if num >= 1e6:
        return f"{num / 1e6:.2f}M"
    if num >= 1e3:
        return f"{num / 1e3:.2f}K"
    return f"{num:.0f}"


def rsi_signal(value: float) -> str:
    if value > 70:
        return "(Overbought)"
    if value < 30:
        return "(Oversold)"
    return "(Neutral)"


def macd_signal(values: Dict[str, float]) -> str:
    if values["macd"] > values["signal"]:
        return "(Bullish)"
    if values["macd"] < values["signal"]:
        return "(Bearish)"
    return "(Neutral)"


def beta_signal(beta: float) -> str:
    if beta > 1.5:
        return "(High volatility)"
    if beta > 1:
        return "(More volatile than market)"
    if beta < 0.5:
        return "(Low volatility)"
    return "(Similar to market)"
