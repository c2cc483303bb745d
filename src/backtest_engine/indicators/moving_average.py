"""
Moving averages - SMA and EMA
"""

from collections import deque
from typing import Optional

from ..core.models import Candle
from .base import Indicator, IndicatorSnapshot, sequential_mean


class SimpleMovingAverage(Indicator):
    """Arithmetic mean of the last `period` closes"""

    kind = "sma"

    def __init__(self, period: int = 20, name: Optional[str] = None):
        super().__init__(period, name)
        self._buffer: deque = deque(maxlen=period)

    def _update(self, candle: Candle) -> IndicatorSnapshot:
        self._buffer.append(candle.close)
        if len(self._buffer) < self.period:
            return self._warming_up()
        return self._emit(sequential_mean(self._buffer))


class ExponentialMovingAverage(Indicator):
    """
    Exponential moving average

    ema_t = price_t * k + ema_{t-1} * (1 - k), k = 2 / (period + 1).
    Seeded with the simple mean of the first `period` prices; warming up
    before that.
    """

    kind = "ema"

    def __init__(self, period: int = 20, name: Optional[str] = None):
        super().__init__(period, name)
        self.k = 2.0 / (period + 1)
        self._buffer: deque = deque(maxlen=period)
        self._ema: Optional[float] = None

    @property
    def value(self) -> Optional[float]:
        return self._ema

    def update_value(self, price: float) -> Optional[float]:
        """Advance the EMA with a raw price, returning the new value or None while warming up"""
        self._buffer.append(price)
        if self._ema is None:
            if len(self._buffer) < self.period:
                return None
            self._ema = sequential_mean(self._buffer)
        else:
            self._ema = price * self.k + self._ema * (1 - self.k)
        return self._ema

    def _update(self, candle: Candle) -> IndicatorSnapshot:
        value = self.update_value(candle.close)
        if value is None:
            return self._warming_up()
        return self._emit(value)
