"""
Core backtesting components
"""

from .models import (
    BacktestConfig,
    BacktestProgress,
    BacktestResult,
    Candle,
    EquityPoint,
    ExitReason,
    Position,
    PositionState,
    RunStatus,
    Side,
    Trade,
    to_utc_timestamp,
)
from .candles import CandleSeries, ensure_series, make_candles
from .position_manager import (
    PositionManager,
    apply_slippage,
    calculate_position_quantity,
    calculate_stop_loss_price,
    calculate_take_profit_price,
)
from .equity_tracker import EquityTracker
from .runner import BacktestRunner, run_backtest
from .sweep import run_parameter_sweep

__all__ = [
    'BacktestConfig',
    'BacktestProgress',
    'BacktestResult',
    'Candle',
    'EquityPoint',
    'ExitReason',
    'Position',
    'PositionState',
    'RunStatus',
    'Side',
    'Trade',
    'to_utc_timestamp',
    'CandleSeries',
    'ensure_series',
    'make_candles',
    'PositionManager',
    'apply_slippage',
    'calculate_position_quantity',
    'calculate_stop_loss_price',
    'calculate_take_profit_price',
    'EquityTracker',
    'BacktestRunner',
    'run_backtest',
    'run_parameter_sweep',
]
