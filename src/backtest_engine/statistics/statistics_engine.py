"""
Statistics Engine

Extended performance statistics for a finished (or cancelled) run:
- Trade statistics (win/loss counts, gross profit/loss, profit factor)
- Consecutive win/loss streaks and holding time
- Exit reason and direction breakdown
- Per-candle return volatility, Sharpe and Sortino ratios
- Trade return skewness and kurtosis

Every statistic falls back to 0 when it is undefined (no trades, flat
equity, too few samples), never NaN or inf, so results stay comparable
and JSON-safe.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Sequence
import logging
import math
import re

import numpy as np
from scipy import stats

from ..core.models import EquityPoint, ExitReason, Side, Trade

logger = logging.getLogger(__name__)

_TIMEFRAME_PATTERN = re.compile(r'^\s*(\d+)\s*([a-zA-Z]+)\s*$')
_UNIT_SECONDS = {
    's': 1,
    'm': 60, 'min': 60,
    'h': 3600,
    'd': 86400,
    'w': 604800,
    'M': 2592000,  # 30 days
}
_SECONDS_PER_YEAR = 365 * 86400  # crypto markets trade every day


@dataclass(frozen=True)
class PerformanceStatistics:
    """Extended run statistics"""

    # Trade statistics
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    profit_factor: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    total_commission: float = 0.0

    # Streaks and holding time
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    average_holding_seconds: float = 0.0

    # Breakdown
    long_trades: int = 0
    short_trades: int = 0
    exit_reasons: Dict[str, int] = field(default_factory=dict)
    exposure_percent: float = 0.0

    # Risk-adjusted metrics
    volatility: float = 0.0  # std of per-candle equity returns
    annualized_volatility: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    skewness: float = 0.0  # of trade returns
    kurtosis: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {_camel(key): value for key, value in data.items()}


class StatisticsEngine:
    """
    Statistics engine for backtest analysis

    Args:
        risk_free_rate: Annual risk-free rate for Sharpe / Sortino ratios
    """

    def __init__(self, risk_free_rate: float = 0.0):
        self.risk_free_rate = risk_free_rate

    def calculate(self,
                  trades: Sequence[Trade],
                  equity_curve: Sequence[EquityPoint],
                  initial_balance: float,
                  timeframe: str = '',
                  bars_in_market: int = 0) -> PerformanceStatistics:
        """
        Calculate extended statistics

        Args:
            trades: Closed trade ledger
            equity_curve: One point per processed candle
            initial_balance: Starting balance, the reference for the first return
            timeframe: Bar interval label used to annualise ('1h', '4h', '1d', ...)
            bars_in_market: Candles that ended with a position open

        Returns:
            PerformanceStatistics
        """
        trade_stats = self._calculate_trade_statistics(trades)
        streaks = self._calculate_consecutive_statistics(trades)

        returns = equity_returns(equity_curve, initial_balance)
        periods_per_year = self._infer_periods_per_year(timeframe, equity_curve)
        risk_stats = self._calculate_risk_metrics(returns, periods_per_year)
        shape = self._calculate_distribution(trades)

        exit_reasons = {reason.value: 0 for reason in ExitReason}
        for trade in trades:
            exit_reasons[trade.exit_reason.value] += 1

        exposure = bars_in_market / len(equity_curve) * 100.0 if equity_curve else 0.0

        return PerformanceStatistics(
            total_trades=trade_stats['total_trades'],
            winning_trades=trade_stats['winning_trades'],
            losing_trades=trade_stats['losing_trades'],
            gross_profit=trade_stats['gross_profit'],
            gross_loss=trade_stats['gross_loss'],
            profit_factor=trade_stats['profit_factor'],
            average_win=trade_stats['average_win'],
            average_loss=trade_stats['average_loss'],
            total_commission=trade_stats['total_commission'],
            max_consecutive_wins=streaks['max_wins'],
            max_consecutive_losses=streaks['max_losses'],
            average_holding_seconds=trade_stats['average_holding_seconds'],
            long_trades=sum(1 for t in trades if t.side is Side.LONG),
            short_trades=sum(1 for t in trades if t.side is Side.SHORT),
            exit_reasons=exit_reasons,
            exposure_percent=exposure,
            volatility=risk_stats['volatility'],
            annualized_volatility=risk_stats['annualized_volatility'],
            sharpe_ratio=risk_stats['sharpe_ratio'],
            sortino_ratio=risk_stats['sortino_ratio'],
            skewness=shape['skewness'],
            kurtosis=shape['kurtosis'],
        )

    def _calculate_trade_statistics(self, trades: Sequence[Trade]) -> Dict[str, Any]:
        """Calculate trade-related statistics"""
        if not trades:
            return {
                'total_trades': 0, 'winning_trades': 0, 'losing_trades': 0,
                'gross_profit': 0.0, 'gross_loss': 0.0, 'profit_factor': 0.0,
                'average_win': 0.0, 'average_loss': 0.0, 'total_commission': 0.0,
                'average_holding_seconds': 0.0,
            }

        winning_trades = [t.pnl for t in trades if t.pnl > 0]
        losing_trades = [t.pnl for t in trades if t.pnl < 0]

        gross_profit = _sum(winning_trades)
        gross_loss = abs(_sum(losing_trades))
        # Undefined without losses
        profit_factor = gross_profit / gross_loss if gross_loss > 0 else 0.0

        return {
            'total_trades': len(trades),
            'winning_trades': len(winning_trades),
            'losing_trades': len(losing_trades),
            'gross_profit': gross_profit,
            'gross_loss': gross_loss,
            'profit_factor': profit_factor,
            'average_win': gross_profit / len(winning_trades) if winning_trades else 0.0,
            'average_loss': _sum(losing_trades) / len(losing_trades) if losing_trades else 0.0,
            'total_commission': _sum(t.commission for t in trades),
            'average_holding_seconds': _sum(t.duration_seconds for t in trades) / len(trades),
        }

    def _calculate_consecutive_statistics(self, trades: Sequence[Trade]) -> Dict[str, int]:
        """Longest winning and losing streaks, in ledger order"""
        max_wins = max_losses = 0
        current_wins = current_losses = 0

        for trade in trades:
            if trade.pnl > 0:
                current_wins += 1
                current_losses = 0
                max_wins = max(max_wins, current_wins)
            else:
                current_losses += 1
                current_wins = 0
                max_losses = max(max_losses, current_losses)

        return {'max_wins': max_wins, 'max_losses': max_losses}

    def _calculate_risk_metrics(self, returns: np.ndarray, periods_per_year: float) -> Dict[str, float]:
        if len(returns) < 2:
            return {'volatility': 0.0, 'annualized_volatility': 0.0,
                    'sharpe_ratio': 0.0, 'sortino_ratio': 0.0}

        volatility = float(np.std(returns, ddof=1))
        excess_mean = float(np.mean(returns)) - self.risk_free_rate / periods_per_year
        sharpe_ratio = excess_mean / volatility * math.sqrt(periods_per_year) if volatility > 0 else 0.0

        # Sortino ratio (downside deviation)
        downside_returns = returns[returns < 0]
        downside_deviation = float(np.std(downside_returns, ddof=1)) if len(downside_returns) > 1 else 0.0
        sortino_ratio = (excess_mean / downside_deviation * math.sqrt(periods_per_year)
                         if downside_deviation > 0 else 0.0)

        return {
            'volatility': _finite(volatility),
            'annualized_volatility': _finite(volatility * math.sqrt(periods_per_year)),
            'sharpe_ratio': _finite(sharpe_ratio),
            'sortino_ratio': _finite(sortino_ratio),
        }

    def _calculate_distribution(self, trades: Sequence[Trade]) -> Dict[str, float]:
        """Skewness and excess kurtosis of trade returns"""
        if len(trades) < 3:
            return {'skewness': 0.0, 'kurtosis': 0.0}
        trade_returns = np.array([t.pnl_percent for t in trades], dtype=float)
        if np.ptp(trade_returns) == 0:
            return {'skewness': 0.0, 'kurtosis': 0.0}
        return {
            'skewness': _finite(stats.skew(trade_returns)),
            'kurtosis': _finite(stats.kurtosis(trade_returns)),
        }

    def _infer_periods_per_year(self, timeframe: str, equity_curve: Sequence[EquityPoint]) -> float:
        """Candles per year from the timeframe label, else from the timestamps"""
        seconds = timeframe_to_seconds(timeframe)
        if seconds is None and len(equity_curve) >= 2:
            delta = (equity_curve[1].timestamp - equity_curve[0].timestamp).total_seconds()
            seconds = delta if delta > 0 else None
        if seconds is None:
            return 365.0  # Default to daily
        return _SECONDS_PER_YEAR / seconds


def timeframe_to_seconds(timeframe: str) -> Optional[float]:
    """'15m' -> 900, '4h' -> 14400, '1d' -> 86400; None if unparseable"""
    match = _TIMEFRAME_PATTERN.match(timeframe or '')
    if not match:
        return None
    count, unit = int(match.group(1)), match.group(2)
    if unit != 'M':
        unit = unit.lower()
    seconds = _UNIT_SECONDS.get(unit)
    if seconds is None or count <= 0:
        return None
    return float(count * seconds)


def equity_returns(equity_curve: Sequence[EquityPoint], initial_balance: float) -> np.ndarray:
    """Per-candle simple returns; the first is measured from the initial balance"""
    if not equity_curve:
        return np.empty(0)
    equity = np.array([point.equity for point in equity_curve], dtype=float)
    previous = np.concatenate(([initial_balance], equity[:-1]))
    safe_previous = np.where(previous > 0, previous, 1.0)
    return np.where(previous > 0, equity / safe_previous - 1.0, 0.0)


def _sum(values) -> float:
    total = 0.0
    for v in values:
        total += v
    return total


def _finite(value: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)
