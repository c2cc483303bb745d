"""
Built-in rule-based strategies

- ema_crossover: fast / slow EMA crossover
- rsi_mean_reversion: buy oversold, sell overbought
- macd_trend: MACD / signal line crossover
- donchian_breakout: close beyond the prior N-candle channel

Every strategy is long-only unless `allow_short` is set. A warming-up
indicator always means no signal.
"""

from typing import Dict, Mapping, Optional
import logging

from ..core.models import Candle, Position, Side
from ..errors import ConfigurationError
from ..indicators import (
    DonchianChannel,
    ExponentialMovingAverage,
    Indicator,
    IndicatorSnapshot,
    MACD,
    RelativeStrengthIndex,
)
from .base import HOLD, Signal, Strategy, crossed_above, crossed_below
from .registry import register_strategy

logger = logging.getLogger(__name__)

ENTER_LONG = Signal(enter=True, side=Side.LONG)
ENTER_SHORT = Signal(enter=True, side=Side.SHORT)


def _exit(position: Position) -> Signal:
    return Signal(exit=True, side=position.side)


@register_strategy
class EMACrossoverStrategy(Strategy):
    """Enter long when the fast EMA first closes above the slow EMA"""

    strategy_id = "ema_crossover"
    name = "EMA Crossover"
    description = "Fast EMA vs slow EMA crossover; exits on the opposite cross"
    default_params = {
        'fast_period': 12,
        'slow_period': 26,
        'allow_short': False,
    }

    def validate_params(self) -> None:
        super().validate_params()
        if self.params['fast_period'] >= self.params['slow_period']:
            raise ConfigurationError(
                f"ema_crossover.fast_period ({self.params['fast_period']}) must be below "
                f"slow_period ({self.params['slow_period']})"
            )

    def create_indicators(self) -> Dict[str, Indicator]:
        return {
            'fast_ema': ExponentialMovingAverage(self.params['fast_period'], name='fast_ema'),
            'slow_ema': ExponentialMovingAverage(self.params['slow_period'], name='slow_ema'),
        }

    def evaluate(self, candle: Candle, indicators: Mapping[str, IndicatorSnapshot],
                 position: Optional[Position]) -> Signal:
        fast = indicators['fast_ema']
        slow = indicators['slow_ema']
        if fast.warming_up or slow.warming_up:
            return HOLD

        cross_up = crossed_above(fast.value, slow.value, fast.previous, slow.previous)
        cross_down = crossed_below(fast.value, slow.value, fast.previous, slow.previous)

        if position is None:
            if cross_up:
                return ENTER_LONG
            if cross_down and self.params['allow_short']:
                return ENTER_SHORT
            return HOLD

        if position.side is Side.LONG and cross_down:
            return _exit(position)
        if position.side is Side.SHORT and cross_up:
            return _exit(position)
        return HOLD


@register_strategy
class RSIMeanReversionStrategy(Strategy):
    """RSI oversold / overbought mean reversion"""

    strategy_id = "rsi_mean_reversion"
    name = "RSI Mean Reversion"
    description = "Buy when RSI drops below oversold, sell when it rises above overbought"
    default_params = {
        'rsi_period': 14,
        'oversold': 30.0,
        'overbought': 70.0,
        'allow_short': False,
    }

    def validate_params(self) -> None:
        super().validate_params()
        oversold = self.params['oversold']
        overbought = self.params['overbought']
        if not 0 < oversold < overbought < 100:
            raise ConfigurationError(
                f"rsi_mean_reversion levels must satisfy 0 < oversold < overbought < 100, "
                f"got oversold={oversold}, overbought={overbought}"
            )

    def create_indicators(self) -> Dict[str, Indicator]:
        return {'rsi': RelativeStrengthIndex(self.params['rsi_period'], name='rsi')}

    def evaluate(self, candle: Candle, indicators: Mapping[str, IndicatorSnapshot],
                 position: Optional[Position]) -> Signal:
        rsi = indicators['rsi']
        if rsi.warming_up:
            return HOLD

        oversold = rsi.value < self.params['oversold']
        overbought = rsi.value > self.params['overbought']

        if position is None:
            if oversold:
                return ENTER_LONG
            if overbought and self.params['allow_short']:
                return ENTER_SHORT
            return HOLD

        if position.side is Side.LONG and overbought:
            return _exit(position)
        if position.side is Side.SHORT and oversold:
            return _exit(position)
        return HOLD


@register_strategy
class MACDTrendStrategy(Strategy):
    """Trend following on MACD / signal line crossovers"""

    strategy_id = "macd_trend"
    name = "MACD Trend"
    description = "Enter when the MACD line crosses above its signal line, exit on the cross back"
    default_params = {
        'fast_period': 12,
        'slow_period': 26,
        'signal_period': 9,
        'allow_short': False,
    }

    def validate_params(self) -> None:
        super().validate_params()
        if self.params['fast_period'] >= self.params['slow_period']:
            raise ConfigurationError(
                f"macd_trend.fast_period ({self.params['fast_period']}) must be below "
                f"slow_period ({self.params['slow_period']})"
            )

    def create_indicators(self) -> Dict[str, Indicator]:
        return {
            'macd': MACD(
                self.params['fast_period'],
                self.params['slow_period'],
                self.params['signal_period'],
                name='macd',
            ),
        }

    def evaluate(self, candle: Candle, indicators: Mapping[str, IndicatorSnapshot],
                 position: Optional[Position]) -> Signal:
        macd = indicators['macd']
        if macd.warming_up:
            return HOLD

        # Histogram changing sign is a MACD / signal crossover
        cross_up = crossed_above(macd.value, 0.0, macd.previous, 0.0)
        cross_down = crossed_below(macd.value, 0.0, macd.previous, 0.0)

        if position is None:
            if cross_up:
                return ENTER_LONG
            if cross_down and self.params['allow_short']:
                return ENTER_SHORT
            return HOLD

        if position.side is Side.LONG and cross_down:
            return _exit(position)
        if position.side is Side.SHORT and cross_up:
            return _exit(position)
        return HOLD


@register_strategy
class DonchianBreakoutStrategy(Strategy):
    """
    Channel breakout

    Enters when the close breaks the prior `entry_period` high (or low, for
    shorts) and exits when it breaks the opposite side of the shorter
    `exit_period` channel.
    """

    strategy_id = "donchian_breakout"
    name = "Donchian Breakout"
    description = "Close above the prior N-candle high enters, close below the exit channel low exits"
    default_params = {
        'entry_period': 20,
        'exit_period': 10,
        'allow_short': False,
    }

    def create_indicators(self) -> Dict[str, Indicator]:
        return {
            'entry_channel': DonchianChannel(self.params['entry_period'], name='entry_channel'),
            'exit_channel': DonchianChannel(self.params['exit_period'], name='exit_channel'),
        }

    def evaluate(self, candle: Candle, indicators: Mapping[str, IndicatorSnapshot],
                 position: Optional[Position]) -> Signal:
        if position is None:
            entry = indicators['entry_channel']
            if entry.warming_up:
                return HOLD
            if candle.close > entry.component('upper'):
                return ENTER_LONG
            if candle.close < entry.component('lower') and self.params['allow_short']:
                return ENTER_SHORT
            return HOLD

        exit_channel = indicators['exit_channel']
        if exit_channel.warming_up:
            return HOLD
        if position.side is Side.LONG and candle.close < exit_channel.component('lower'):
            return _exit(position)
        if position.side is Side.SHORT and candle.close > exit_channel.component('upper'):
            return _exit(position)
        return HOLD
