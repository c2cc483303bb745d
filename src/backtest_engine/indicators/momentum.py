"""
Momentum indicators - RSI and MACD
"""

from collections import deque
from typing import Any, Dict, Optional

from ..core.models import Candle
from .base import Indicator, IndicatorSnapshot, sequential_mean
from .moving_average import ExponentialMovingAverage


class RelativeStrengthIndex(Indicator):
    """
    Relative Strength Index over the trailing `period` close-to-close changes

    RS = avgGain / avgLoss, RSI = 100 - 100 / (1 + RS). With no loss in the
    window RSI is 100.
    """

    kind = "rsi"

    def __init__(self, period: int = 14, name: Optional[str] = None):
        super().__init__(period, name)
        self._gains: deque = deque(maxlen=period)
        self._losses: deque = deque(maxlen=period)
        self._last_close: Optional[float] = None

    def _update(self, candle: Candle) -> IndicatorSnapshot:
        close = candle.close
        if self._last_close is None:
            self._last_close = close
            return self._warming_up()

        change = close - self._last_close
        self._last_close = close
        self._gains.append(change if change > 0 else 0.0)
        self._losses.append(-change if change < 0 else 0.0)

        if len(self._gains) < self.period:
            return self._warming_up()

        avg_gain = sequential_mean(self._gains)
        avg_loss = sequential_mean(self._losses)
        if avg_loss == 0:
            rsi = 100.0
        else:
            rs = avg_gain / avg_loss
            rsi = 100.0 - (100.0 / (1.0 + rs))
        return self._emit(rsi, {'avg_gain': avg_gain, 'avg_loss': avg_loss})


class MACD(Indicator):
    """
    Moving Average Convergence Divergence

    The snapshot value is the histogram (MACD line minus signal line), so a
    sign change of value vs previous is a MACD/signal crossover. The MACD and
    signal lines are exposed as components. Warming up until the signal line
    has been seeded.
    """

    kind = "macd"

    def __init__(self, fast_period: int = 12, slow_period: int = 26, signal_period: int = 9,
                 name: Optional[str] = None):
        if fast_period >= slow_period:
            raise ValueError(f"MACD fast_period ({fast_period}) must be below slow_period ({slow_period})")
        super().__init__(slow_period, name or f"macd_{fast_period}_{slow_period}_{signal_period}")
        self.fast_period = fast_period
        self.slow_period = slow_period
        self.signal_period = signal_period
        self._fast = ExponentialMovingAverage(fast_period)
        self._slow = ExponentialMovingAverage(slow_period)
        self._signal = ExponentialMovingAverage(signal_period)

    @property
    def params(self) -> Dict[str, Any]:
        return {
            'fast_period': self.fast_period,
            'slow_period': self.slow_period,
            'signal_period': self.signal_period,
            'name': self.name,
        }

    def _update(self, candle: Candle) -> IndicatorSnapshot:
        fast = self._fast.update_value(candle.close)
        slow = self._slow.update_value(candle.close)
        if fast is None or slow is None:
            return self._warming_up()

        macd_line = fast - slow
        signal = self._signal.update_value(macd_line)
        if signal is None:
            return self._warming_up()

        return self._emit(macd_line - signal, {'macd': macd_line, 'signal': signal})
