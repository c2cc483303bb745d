"""
Core data model for the backtesting engine

Candles, positions, trades, equity points, the run configuration and the
run result. Everything except the open Position is immutable once created.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, TYPE_CHECKING, Union
import math

import pandas as pd

from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..statistics.statistics_engine import PerformanceStatistics


TimestampLike = Union[str, datetime, pd.Timestamp, int, float]


class Side(Enum):
    """Position direction"""
    LONG = "long"
    SHORT = "short"

    @property
    def direction(self) -> int:
        """+1 for long, -1 for short"""
        return 1 if self is Side.LONG else -1


class ExitReason(Enum):
    """Why a position was closed"""
    SIGNAL = "signal"
    STOP_LOSS = "stop-loss"
    TAKE_PROFIT = "take-profit"


class PositionState(Enum):
    """Position manager states"""
    FLAT = "flat"
    OPEN = "open"


class RunStatus(Enum):
    """Final status of a run"""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def to_utc_timestamp(value: TimestampLike) -> pd.Timestamp:
    """Normalise a timestamp-like value to a UTC pandas Timestamp.

    Naive values are interpreted as UTC. Integers and floats are epoch seconds.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = pd.Timestamp(value, unit='s')
    else:
        ts = pd.Timestamp(value)
    if ts is pd.NaT:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if ts.tzinfo is None:
        return ts.tz_localize('UTC')
    return ts.tz_convert('UTC')


class Candle(NamedTuple):
    """One OHLCV bar"""
    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float


class Trade(NamedTuple):
    """Closed round trip, appended to the ledger and never mutated"""
    trade_id: int
    symbol: str
    side: Side
    entry_timestamp: pd.Timestamp
    exit_timestamp: pd.Timestamp
    entry_price: float
    exit_price: float
    quantity: float
    pnl: float  # net of commission
    pnl_percent: float
    commission: float
    exit_reason: ExitReason
    duration_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tradeId': self.trade_id,
            'symbol': self.symbol,
            'side': self.side.value,
            'entryTimestamp': self.entry_timestamp.isoformat(),
            'exitTimestamp': self.exit_timestamp.isoformat(),
            'entryPrice': self.entry_price,
            'exitPrice': self.exit_price,
            'quantity': self.quantity,
            'pnl': self.pnl,
            'pnlPercent': self.pnl_percent,
            'commission': self.commission,
            'exitReason': self.exit_reason.value,
            'durationSeconds': self.duration_seconds,
        }


class EquityPoint(NamedTuple):
    """Mark-to-market account value after one candle"""
    timestamp: pd.Timestamp
    equity: float


class BacktestProgress(NamedTuple):
    """Progress report passed to the progress callback"""
    processed: int
    total: int
    fraction: float


@dataclass
class Position:
    """Open position tracking

    Exists only while a trade is open. The Position Manager creates it on an
    entry and converts it into a Trade on exit.
    """
    symbol: str
    side: Side
    entry_price: float
    quantity: float
    entry_timestamp: pd.Timestamp
    stop_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    entry_commission: float = 0.0

    @property
    def notional(self) -> float:
        return self.quantity * self.entry_price

    def unrealized_pnl(self, price: float) -> float:
        """Gross unrealized PnL at the given price"""
        return self.side.direction * (price - self.entry_price) * self.quantity

    def market_value(self, price: float) -> float:
        """Cash the position would return if closed at price, before fees.

        Longs are worth quantity * price. Shorts return their reserved
        collateral plus the unrealized PnL.
        """
        if self.side is Side.LONG:
            return self.quantity * price
        return self.notional + self.unrealized_pnl(price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'side': self.side.value,
            'entryPrice': self.entry_price,
            'quantity': self.quantity,
            'entryTimestamp': self.entry_timestamp.isoformat(),
            'stopPrice': self.stop_price,
            'takeProfitPrice': self.take_profit_price,
            'entryCommission': self.entry_commission,
        }


_NUMERIC_FIELDS = (
    'initial_balance',
    'position_size_percent',
    'stop_loss_percent',
    'take_profit_percent',
    'commission_percent',
    'slippage_percent',
    'max_drawdown_limit_percent',
)
_OPTIONAL_FIELDS = ('stop_loss_percent', 'take_profit_percent', 'max_drawdown_limit_percent')


@dataclass(frozen=True)
class BacktestConfig:
    """Backtest run configuration

    Percent fields are in percent units: position_size_percent=10 sizes each
    entry at 10% of the cash balance. Validated once, before the run starts.
    """
    symbol: str
    timeframe: str
    start_time: pd.Timestamp
    end_time: pd.Timestamp
    initial_balance: float
    strategy_id: str
    position_size_percent: float
    stop_loss_percent: Optional[float] = None
    take_profit_percent: Optional[float] = None
    strategy_params: Mapping[str, Any] = field(default_factory=dict)
    commission_percent: float = 0.0
    slippage_percent: float = 0.0
    warmup_bars: int = 0
    max_drawdown_limit_percent: Optional[float] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, 'start_time', to_utc_timestamp(self.start_time))
            object.__setattr__(self, 'end_time', to_utc_timestamp(self.end_time))
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid date range: {e}") from e

        for name in _NUMERIC_FIELDS:
            value = getattr(self, name)
            if value is None and name in _OPTIONAL_FIELDS:
                continue
            try:
                object.__setattr__(self, name, float(value))
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"{name} must be a number, got {value!r}") from e
        object.__setattr__(self, 'strategy_params', dict(self.strategy_params or {}))

    def __hash__(self) -> int:
        # strategy_params holds a dict; equal configs share the same parameter keys
        return hash((
            self.symbol, self.timeframe, self.start_time, self.end_time, self.initial_balance,
            self.strategy_id, self.position_size_percent, self.stop_loss_percent,
            self.take_profit_percent, self.commission_percent, self.slippage_percent,
            self.warmup_bars, self.max_drawdown_limit_percent, frozenset(self.strategy_params),
        ))

    def validate(self) -> 'BacktestConfig':
        """Check every field, raising ConfigurationError on the first problem"""
        if not self.symbol:
            raise ConfigurationError("symbol must not be empty")
        if not self.timeframe:
            raise ConfigurationError("timeframe must not be empty")
        if self.start_time >= self.end_time:
            raise ConfigurationError(
                f"Invalid date range: start_time {self.start_time} must be before end_time {self.end_time}"
            )
        if not _is_finite(self.initial_balance) or self.initial_balance <= 0:
            raise ConfigurationError(f"initial_balance must be positive, got {self.initial_balance}")
        if not _is_finite(self.position_size_percent) or not 0 < self.position_size_percent <= 100:
            raise ConfigurationError(
                f"position_size_percent must be in (0, 100], got {self.position_size_percent}"
            )
        for name in ('stop_loss_percent', 'take_profit_percent'):
            value = getattr(self, name)
            if value is None:
                continue
            if not _is_finite(value) or not 0 < value < 100:
                raise ConfigurationError(f"{name} must be in (0, 100), got {value}")
        for name in ('commission_percent', 'slippage_percent'):
            value = getattr(self, name)
            if not _is_finite(value) or not 0 <= value < 100:
                raise ConfigurationError(f"{name} must be in [0, 100), got {value}")
        if not isinstance(self.warmup_bars, int) or self.warmup_bars < 0:
            raise ConfigurationError(f"warmup_bars must be a non-negative integer, got {self.warmup_bars}")
        if self.max_drawdown_limit_percent is not None:
            limit = self.max_drawdown_limit_percent
            if not _is_finite(limit) or not 0 < limit <= 100:
                raise ConfigurationError(f"max_drawdown_limit_percent must be in (0, 100], got {limit}")
        if not self.strategy_id:
            raise ConfigurationError("strategy_id must not be empty")
        return self

    @property
    def position_size_fraction(self) -> float:
        return self.position_size_percent / 100.0

    @property
    def stop_loss_fraction(self) -> Optional[float]:
        return None if self.stop_loss_percent is None else self.stop_loss_percent / 100.0

    @property
    def take_profit_fraction(self) -> Optional[float]:
        return None if self.take_profit_percent is None else self.take_profit_percent / 100.0

    @property
    def commission_fraction(self) -> float:
        return self.commission_percent / 100.0

    @property
    def slippage_fraction(self) -> float:
        return self.slippage_percent / 100.0

    def with_overrides(self, **changes) -> 'BacktestConfig':
        """Copy with some fields replaced; `strategy_params` is merged, not replaced"""
        params = changes.pop('strategy_params', None)
        if params:
            merged = dict(self.strategy_params)
            merged.update(params)
            changes['strategy_params'] = merged
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'startTime': self.start_time.isoformat(),
            'endTime': self.end_time.isoformat(),
            'initialBalance': self.initial_balance,
            'strategyId': self.strategy_id,
            'strategyParams': dict(self.strategy_params),
            'positionSizePercent': self.position_size_percent,
            'stopLossPercent': self.stop_loss_percent,
            'takeProfitPercent': self.take_profit_percent,
            'commissionPercent': self.commission_percent,
            'slippagePercent': self.slippage_percent,
            'warmupBars': self.warmup_bars,
            'maxDrawdownLimitPercent': self.max_drawdown_limit_percent,
        }


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of one run, produced exactly once"""
    final_balance: float
    total_return_percent: float
    trades: List[Trade]
    equity_curve: List[EquityPoint]
    win_rate: float  # percent, 0 for an empty ledger
    max_drawdown_percent: float
    average_trade: float
    best_trade: float
    worst_trade: float
    status: RunStatus = RunStatus.COMPLETED
    candles_processed: int = 0
    total_candles: int = 0
    open_position: Optional[Position] = None
    unrealized_pnl: float = 0.0
    trading_halted: bool = False
    statistics: Optional['PerformanceStatistics'] = None

    @property
    def is_complete(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def equity_series(self) -> pd.Series:
        """Equity curve as a pandas Series indexed by timestamp"""
        if not self.equity_curve:
            return pd.Series(dtype=float, name='equity')
        return pd.Series(
            [point.equity for point in self.equity_curve],
            index=pd.DatetimeIndex([point.timestamp for point in self.equity_curve], name='timestamp'),
            name='equity',
        )

    def trades_dataframe(self) -> pd.DataFrame:
        """Trade ledger as a DataFrame, one row per trade"""
        columns = list(Trade._fields)
        if not self.trades:
            return pd.DataFrame(columns=columns)
        rows = []
        for trade in self.trades:
            row = trade._asdict()
            row['side'] = trade.side.value
            row['exit_reason'] = trade.exit_reason.value
            rows.append(row)
        return pd.DataFrame(rows, columns=columns)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe mapping for display or storage layers"""
        return {
            'finalBalance': self.final_balance,
            'totalReturnPercent': self.total_return_percent,
            'trades': [trade.to_dict() for trade in self.trades],
            'equityCurve': [
                {'timestamp': point.timestamp.isoformat(), 'equity': point.equity}
                for point in self.equity_curve
            ],
            'winRate': self.win_rate,
            'maxDrawdownPercent': self.max_drawdown_percent,
            'averageTrade': self.average_trade,
            'bestTrade': self.best_trade,
            'worstTrade': self.worst_trade,
            'status': self.status.value,
            'isComplete': self.is_complete,
            'candlesProcessed': self.candles_processed,
            'totalCandles': self.total_candles,
            'openPosition': self.open_position.to_dict() if self.open_position else None,
            'unrealizedPnl': self.unrealized_pnl,
            'tradingHalted': self.trading_halted,
            'statistics': self.statistics.to_dict() if self.statistics else None,
        }


def _is_finite(value: Any) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False
