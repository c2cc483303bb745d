"""
Batch indicator kernels

Whole-series equivalents of the incremental calculators, compiled with numba.
They use the same seeding, warm-up and summation order, so a batch column
matches replaying the incremental calculator candle by candle. Used for
charting / previews, never inside the replay loop.
"""

from typing import Any, Dict, Mapping, Union

import numpy as np
import pandas as pd
from numba import njit

from ..core.candles import ensure_series


@njit
def calculate_sma(prices: np.ndarray, window: int) -> np.ndarray:
    """
    Fast SMA calculation with numba

    Args:
        prices: Price array
        window: Moving average window

    Returns:
        SMA array (NaN while warming up)
    """
    n = len(prices)
    sma = np.full(n, np.nan)

    for i in range(window - 1, n):
        total = 0.0
        for j in range(i - window + 1, i + 1):
            total += prices[j]
        sma[i] = total / window

    return sma


@njit
def calculate_ema(prices: np.ndarray, window: int) -> np.ndarray:
    """
    Fast EMA calculation with numba

    Leading NaNs are skipped; the EMA is seeded with the mean of the first
    `window` valid prices.

    Args:
        prices: Price array
        window: EMA window

    Returns:
        EMA array (NaN while warming up)
    """
    n = len(prices)
    ema = np.full(n, np.nan)
    alpha = 2.0 / (window + 1)

    count = 0
    seeded = False
    prev = 0.0

    for i in range(n):
        price = prices[i]
        if np.isnan(price):
            continue
        if not seeded:
            count += 1
            if count == window:
                total = 0.0
                for j in range(i - window + 1, i + 1):
                    total += prices[j]
                prev = total / window
                ema[i] = prev
                seeded = True
        else:
            prev = price * alpha + prev * (1 - alpha)
            ema[i] = prev

    return ema


@njit
def calculate_rsi(prices: np.ndarray, window: int = 14) -> np.ndarray:
    """
    Fast RSI calculation with numba

    Simple averages of gains and losses over the trailing `window` changes.

    Args:
        prices: Price array
        window: RSI window

    Returns:
        RSI array (NaN while warming up)
    """
    n = len(prices)
    rsi = np.full(n, np.nan)

    for i in range(window, n):
        gain_total = 0.0
        loss_total = 0.0
        for j in range(i - window + 1, i + 1):
            change = prices[j] - prices[j - 1]
            gain_total += change if change > 0 else 0.0
            loss_total += -change if change < 0 else 0.0
        avg_gain = gain_total / window
        avg_loss = loss_total / window

        if avg_loss == 0:
            rsi[i] = 100.0
        else:
            rs = avg_gain / avg_loss
            rsi[i] = 100.0 - (100.0 / (1.0 + rs))

    return rsi


@njit
def calculate_donchian(highs: np.ndarray, lows: np.ndarray, window: int):
    """
    Donchian channel over the previous `window` candles

    Returns:
        (upper, lower) arrays, NaN while warming up
    """
    n = len(highs)
    upper = np.full(n, np.nan)
    lower = np.full(n, np.nan)

    for i in range(window, n):
        hi = highs[i - window]
        lo = lows[i - window]
        for j in range(i - window + 1, i):
            if highs[j] > hi:
                hi = highs[j]
            if lows[j] < lo:
                lo = lows[j]
        upper[i] = hi
        lower[i] = lo

    return upper, lower


def calculate_macd(prices: np.ndarray, fast: int = 12, slow: int = 26, signal: int = 9):
    """
    MACD line, signal line and histogram

    Returns:
        (macd_line, signal_line, histogram) arrays
    """
    macd_line = calculate_ema(prices, fast) - calculate_ema(prices, slow)
    signal_line = calculate_ema(macd_line, signal)
    return macd_line, signal_line, macd_line - signal_line


def compute_indicator_frame(candles: Any, specs: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """
    Compute indicator columns for a whole candle series

    Args:
        candles: CandleSeries, OHLCV DataFrame or candle records
        specs: name -> {'kind': 'sma'|'ema'|'rsi'|'macd'|'donchian', ...params}

    Returns:
        DataFrame indexed by timestamp with one column per output. MACD adds
        `<name>_signal` and `<name>_histogram`; Donchian writes
        `<name>_upper` and `<name>_lower`.
    """
    data = ensure_series(candles).to_dataframe()
    close = data['close'].to_numpy(dtype=float)
    frame: Dict[str, Union[np.ndarray, pd.Series]] = {}

    for name, spec in specs.items():
        kind = str(spec.get('kind', '')).lower()
        if kind == 'sma':
            frame[name] = calculate_sma(close, _period(name, spec, 'period', 20))
        elif kind == 'ema':
            frame[name] = calculate_ema(close, _period(name, spec, 'period', 20))
        elif kind == 'rsi':
            frame[name] = calculate_rsi(close, _period(name, spec, 'period', 14))
        elif kind == 'macd':
            line, signal_line, histogram = calculate_macd(
                close,
                _period(name, spec, 'fast_period', 12),
                _period(name, spec, 'slow_period', 26),
                _period(name, spec, 'signal_period', 9),
            )
            frame[name] = line
            frame[f'{name}_signal'] = signal_line
            frame[f'{name}_histogram'] = histogram
        elif kind == 'donchian':
            upper, lower = calculate_donchian(
                data['high'].to_numpy(dtype=float),
                data['low'].to_numpy(dtype=float),
                _period(name, spec, 'period', 20),
            )
            frame[f'{name}_upper'] = upper
            frame[f'{name}_lower'] = lower
        else:
            raise ValueError(f"Unknown indicator kind for {name!r}: {spec.get('kind')!r}")

    return pd.DataFrame(frame, index=data.index)


def _period(name: str, spec: Mapping[str, Any], key: str, default: int) -> int:
    value = int(spec.get(key, default))
    if value < 1:
        raise ValueError(f"{name}.{key} must be a positive integer, got {value}")
    return value
