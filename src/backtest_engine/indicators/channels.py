"""
Price channels - Donchian channel
"""

from collections import deque
from typing import Optional

from ..core.models import Candle
from .base import Indicator, IndicatorSnapshot


class DonchianChannel(Indicator):
    """
    Highest high / lowest low of the previous `period` candles

    The current candle is excluded so a close above `upper` is a breakout of
    the prior range. Value is the channel midpoint.
    """

    kind = "donchian"

    def __init__(self, period: int = 20, name: Optional[str] = None):
        super().__init__(period, name)
        self._highs: deque = deque(maxlen=period)
        self._lows: deque = deque(maxlen=period)

    def _update(self, candle: Candle) -> IndicatorSnapshot:
        if len(self._highs) < self.period:
            snapshot = self._warming_up()
        else:
            upper = max(self._highs)
            lower = min(self._lows)
            snapshot = self._emit((upper + lower) / 2.0, {'upper': upper, 'lower': lower})

        self._highs.append(candle.high)
        self._lows.append(candle.low)
        return snapshot
