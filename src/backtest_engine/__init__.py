"""
Strategy Backtesting Engine

A deterministic, event-driven backtesting engine that replays historical
OHLCV candles through a trading strategy one bar at a time.

The engine provides:
- Incremental technical indicators with explicit warm-up handling
- Pluggable strategies selected by identifier
- Precise stop loss and take profit fills at the protective price level
- Mark-to-market equity tracking with running drawdown
- Summary and extended performance statistics
- Progress reporting and cooperative cancellation
"""

from .core import (
    BacktestConfig,
    BacktestResult,
    BacktestRunner,
    Candle,
    CandleSeries,
    run_backtest,
    run_parameter_sweep,
)
from .errors import BacktestError, ConfigurationError, DataError, UnknownStrategyError

__version__ = "1.0.0"

__all__ = [
    'BacktestConfig',
    'BacktestResult',
    'BacktestRunner',
    'Candle',
    'CandleSeries',
    'run_backtest',
    'run_parameter_sweep',
    'BacktestError',
    'ConfigurationError',
    'DataError',
    'UnknownStrategyError',
]
