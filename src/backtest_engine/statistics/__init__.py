"""
Statistics - result aggregation and extended performance analysis
"""

from .statistics_engine import (
    PerformanceStatistics,
    StatisticsEngine,
    equity_returns,
    timeframe_to_seconds,
)
from .results_aggregator import ResultsAggregator, summarize_trades

__all__ = [
    'PerformanceStatistics',
    'StatisticsEngine',
    'equity_returns',
    'timeframe_to_seconds',
    'ResultsAggregator',
    'summarize_trades',
]
