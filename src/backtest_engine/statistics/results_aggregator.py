"""
Results Aggregator - reduces the trade ledger and equity curve to a BacktestResult
"""

from typing import List, Optional
import logging

from ..core.models import (
    BacktestConfig,
    BacktestResult,
    EquityPoint,
    Position,
    RunStatus,
    Trade,
)
from .statistics_engine import StatisticsEngine

logger = logging.getLogger(__name__)


class ResultsAggregator:
    """Builds the run result, with summary and extended statistics"""

    def __init__(self, statistics_engine: Optional[StatisticsEngine] = None):
        self.statistics_engine = statistics_engine or StatisticsEngine()

    def aggregate(self,
                  config: BacktestConfig,
                  trades: List[Trade],
                  equity_curve: List[EquityPoint],
                  final_balance: float,
                  max_drawdown_percent: float,
                  status: RunStatus = RunStatus.COMPLETED,
                  candles_processed: int = 0,
                  total_candles: int = 0,
                  open_position: Optional[Position] = None,
                  unrealized_pnl: float = 0.0,
                  trading_halted: bool = False,
                  bars_in_market: int = 0) -> BacktestResult:
        """
        Reduce a run to its result

        Args:
            config: Run configuration
            trades: Closed trade ledger
            equity_curve: One point per processed candle
            final_balance: Cash plus any open position marked at the last close
            max_drawdown_percent: Tracked maximum drawdown

        Returns:
            BacktestResult
        """
        summary = summarize_trades(trades)
        initial = config.initial_balance

        statistics = self.statistics_engine.calculate(
            trades,
            equity_curve,
            initial,
            timeframe=config.timeframe,
            bars_in_market=bars_in_market,
        )

        return BacktestResult(
            final_balance=final_balance,
            total_return_percent=(final_balance - initial) / initial * 100.0,
            trades=list(trades),
            equity_curve=list(equity_curve),
            win_rate=summary['win_rate'],
            max_drawdown_percent=max_drawdown_percent,
            average_trade=summary['average_trade'],
            best_trade=summary['best_trade'],
            worst_trade=summary['worst_trade'],
            status=status,
            candles_processed=candles_processed,
            total_candles=total_candles,
            open_position=open_position,
            unrealized_pnl=unrealized_pnl,
            trading_halted=trading_halted,
            statistics=statistics,
        )


def summarize_trades(trades: List[Trade]) -> dict:
    """
    Win rate (percent), average, best and worst trade PnL

    All zero for an empty ledger.
    """
    if not trades:
        return {'win_rate': 0.0, 'average_trade': 0.0, 'best_trade': 0.0, 'worst_trade': 0.0}

    total = 0.0
    winners = 0
    for trade in trades:
        total += trade.pnl
        if trade.pnl > 0:
            winners += 1

    pnls = [trade.pnl for trade in trades]
    return {
        'win_rate': winners / len(trades) * 100.0,
        'average_trade': total / len(trades),
        'best_trade': max(pnls),
        'worst_trade': min(pnls),
    }
