import pytest

from ahamai import indicators


def test_sma_rolling_window():
    assert indicators.sma([1, 2, 3, 4, 5], 3) == pytest.approx([2, 3, 4])


def test_sma_too_short_is_empty():
    assert indicators.sma([1, 2], 3) == []
    assert indicators.sma_last([1, 2], 3) is None


def test_sma_ignores_missing_values():
    assert indicators.sma_last([1, None, 3, 5], 3) == pytest.approx(3)


def test_ema_seeded_with_first_value():
    assert indicators.ema([0, 3], 2) == pytest.approx([0, 2])
    assert indicators.ema([], 5) == []


def test_rsi_defaults_and_extremes():
    assert indicators.rsi([1, 2, 3], 14) == 50.0
    assert indicators.rsi(list(range(20)), 14) == 100.0


def test_rsi_balanced_moves_is_fifty():
    prices = [1 if i % 2 == 0 else 2 for i in range(15)]
    assert indicators.rsi(prices, 14) == pytest.approx(50.0)


def test_rsi_series_length_and_zero_loss_window():
    series = indicators.rsi_series(list(range(16)), 14)
    # 15 changes -> 2 windows; no losses means avg loss is treated as 1
    assert len(series) == 2
    assert series == pytest.approx([50.0, 50.0])


def test_macd_flat_prices():
    result = indicators.macd([10.0] * 40)
    assert result == pytest.approx({"macd": 0.0, "signal": 0.0, "histogram": 0.0})
    assert indicators.macd([]) == {}


def test_bollinger_bands_flat_prices_collapse():
    bands = indicators.bollinger_bands([5.0] * 25, 20, 2)
    assert len(bands["middle"]) == 6
    assert bands["upper"][-1] == bands["middle"][-1] == bands["lower"][-1] == 5.0


def test_bollinger_bands_uses_population_std():
    values = [1.0, 3.0]
    bands = indicators.bollinger_bands(values, 2, 1)
    assert bands["middle"] == [2.0]
    assert bands["upper"] == [3.0]
    assert bands["lower"] == [1.0]


def test_volatility_and_price_range():
    assert indicators.volatility([100, 100, 100]) == 0.0
    assert indicators.volatility([100, 110, 99]) == pytest.approx(0.1)
    assert indicators.price_range([3, 9, 4]) == {"high": 9.0, "low": 3.0, "range": 6.0}
    assert indicators.price_range([]) == {}


def test_format_number():
    assert indicators.format_number(1.5e12) == "1.50T"
    assert indicators.format_number(2.5e9) == "2.50B"
    assert indicators.format_number(3_200_000) == "3.20M"
    assert indicators.format_number(2500) == "2.50K"
    assert indicators.format_number(999) == "999"


def test_signals():
    assert indicators.rsi_signal(75) == "(Overbought)"
    assert indicators.rsi_signal(25) == "(Oversold)"
    assert indicators.rsi_signal(50) == "(Neutral)"
    assert indicators.macd_signal({"macd": 1, "signal": 0}) == "(Bullish)"
    assert indicators.macd_signal({"macd": 0, "signal": 1}) == "(Bearish)"
    assert indicators.beta_signal(1.8) == "(High volatility)"
    assert indicators.beta_signal(1.2) == "(More volatile than market)"
    assert indicators.beta_signal(0.3) == "(Low volatility)"
    assert indicators.beta_signal(0.9) == "(Similar to market)"
