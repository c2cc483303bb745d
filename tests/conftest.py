"""
Shared fixtures and helpers for the backtest engine tests
"""

from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd
import pytest

from backtest_engine.core.models import BacktestConfig, Candle, Position
from backtest_engine.indicators import Indicator, IndicatorSnapshot
from backtest_engine.strategies import HOLD, Signal, Strategy


def make_config(**overrides) -> BacktestConfig:
    """Valid hourly BTCUSD config; keyword arguments replace fields"""
    fields = dict(
        symbol='BTCUSD',
        timeframe='1h',
        start_time='2024-01-01',
        end_time='2024-12-31',
        initial_balance=10000.0,
        strategy_id='ema_crossover',
        position_size_percent=10.0,
        stop_loss_percent=None,
        take_profit_percent=None,
    )
    fields.update(overrides)
    return BacktestConfig(**fields)


def random_walk_candles(periods: int = 300, seed: int = 42, start: str = '2024-01-01',
                        freq: str = 'h') -> pd.DataFrame:
    """Synthetic OHLCV data with intrabar range"""
    rng = np.random.default_rng(seed)
    dates = pd.date_range(start=start, periods=periods, freq=freq, tz='UTC')

    closes = 100 * np.exp(np.cumsum(rng.normal(0, 0.01, periods)))
    opens = np.concatenate(([closes[0]], closes[:-1]))
    highs = np.maximum(opens, closes) * (1 + np.abs(rng.normal(0, 0.004, periods)))
    lows = np.minimum(opens, closes) * (1 - np.abs(rng.normal(0, 0.004, periods)))
    volume = rng.uniform(1000, 10000, periods)

    return pd.DataFrame({
        'open': opens,
        'high': highs,
        'low': lows,
        'close': closes,
        'volume': volume,
    }, index=pd.DatetimeIndex(dates, name='timestamp'))


class AlwaysLongStrategy(Strategy):
    """Enters long whenever flat, never exits on its own"""

    strategy_id = "always_long"
    description = "Test strategy"
    default_params: Dict[str, Any] = {}

    def create_indicators(self) -> Dict[str, Indicator]:
        return {}

    def evaluate(self, candle: Candle, indicators: Mapping[str, IndicatorSnapshot],
                 position: Optional[Position]) -> Signal:
        if position is None:
            return Signal(enter=True)
        return HOLD


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def random_walk():
    return random_walk_candles()
