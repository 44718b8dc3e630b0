import math

import pytest

from tradelab.indicators import atr, ema, is_valid, macd, rsi, sma


def test_sma_has_nan_until_period_is_filled() -> None:
    values = [1.0, 2.0, 3.0, 4.0, 5.0]

    result = sma(values, 3)

    assert math.isnan(result[0]) and math.isnan(result[1])
    assert result[2:] == pytest.approx([2.0, 3.0, 4.0])


def test_ema_seeds_from_first_value() -> None:
    values = [10.0, 11.0, 12.0, 13.0]

    result = ema(values, 3)

    alpha = 2 / 4
    expected = 10.0
    for value in values[1:3]:
        expected = alpha * value + (1 - alpha) * expected
    assert math.isnan(result[1])
    assert result[2] == pytest.approx(expected)


def test_rsi_extremes() -> None:
    rising = [float(value) for value in range(1, 30)]
    flat = [5.0] * 30

    assert rsi(rising, 14)[14] == 100.0
    assert rsi(flat, 14)[-1] == 50.0
    assert all(math.isnan(value) for value in rsi(rising, 14)[:14])


def test_rsi_stays_in_bounds() -> None:
    values = [100 + 5 * math.sin(idx / 3) for idx in range(80)]

    valid = [value for value in rsi(values, 14) if not math.isnan(value)]

    assert valid
    assert all(0.0 <= value <= 100.0 for value in valid)


def test_atr_seed_and_smoothing() -> None:
    highs = [11.0, 12.0, 13.0, 14.0]
    lows = [9.0, 10.0, 11.0, 12.0]
    closes = [10.0, 11.0, 12.0, 13.0]

    result = atr(highs, lows, closes, 3)

    assert math.isnan(result[1])
    assert result[2] == pytest.approx(2.0)
    assert result[3] == pytest.approx(2.0)


def test_macd_line_warmup() -> None:
    values = [100 + idx * 0.5 for idx in range(60)]

    line, signal = macd(values, 12, 26, 9)

    assert math.isnan(line[24])
    assert not math.isnan(line[25])
    assert math.isnan(signal[25])
    assert not math.isnan(signal[-1])


def test_indicators_are_causal() -> None:
    values = [100 + 3 * math.sin(idx / 4) + idx * 0.1 for idx in range(120)]
    prefix = values[:70]

    for full, partial in (
        (sma(values, 10), sma(prefix, 10)),
        (ema(values, 10), ema(prefix, 10)),
        (rsi(values, 14), rsi(prefix, 14)),
        (macd(values)[0], macd(prefix)[0]),
    ):
        assert full[:70] == pytest.approx(partial, nan_ok=True)


def test_invalid_period_and_is_valid() -> None:
    with pytest.raises(ValueError):
        sma([1.0], 0)
    assert is_valid(1.0, 2.0)
    assert not is_valid(1.0, float("nan"))
    assert not is_valid(float("inf"))
