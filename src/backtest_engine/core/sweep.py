"""
Parameter sweeps - one independent runner per parameter combination
"""

from concurrent.futures import ThreadPoolExecutor
from itertools import product
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

import pandas as pd

from ..config import get_settings
from ..errors import BacktestError
from .candles import ensure_series
from .models import BacktestConfig, BacktestResult
from .runner import BacktestRunner

logger = logging.getLogger(__name__)

STRATEGY_PARAM_PREFIX = 'strategy_params.'

SUMMARY_COLUMNS = [
    'final_balance',
    'total_return_percent',
    'max_drawdown_percent',
    'win_rate',
    'num_trades',
    'average_trade',
    'best_trade',
    'worst_trade',
    'profit_factor',
    'sharpe_ratio',
    'sortino_ratio',
]


def expand_param_grid(param_grid: Mapping[str, Sequence[Any]]) -> List[Dict[str, Any]]:
    """Cartesian product of the grid as a list of {name: value} dicts"""
    param_names = list(param_grid.keys())
    param_values = [list(values) for values in param_grid.values()]
    return [dict(zip(param_names, combo)) for combo in product(*param_values)]


def build_config(base_config: BacktestConfig, params: Mapping[str, Any]) -> BacktestConfig:
    """Apply one combination: config field names or `strategy_params.<name>` keys"""
    field_changes: Dict[str, Any] = {}
    strategy_changes: Dict[str, Any] = {}
    for name, value in params.items():
        if name.startswith(STRATEGY_PARAM_PREFIX):
            strategy_changes[name[len(STRATEGY_PARAM_PREFIX):]] = value
        else:
            field_changes[name] = value
    if strategy_changes:
        field_changes['strategy_params'] = strategy_changes
    return base_config.with_overrides(**field_changes)


def summarize_result(result: BacktestResult) -> Dict[str, Any]:
    stats = result.statistics
    return {
        'final_balance': result.final_balance,
        'total_return_percent': result.total_return_percent,
        'max_drawdown_percent': result.max_drawdown_percent,
        'win_rate': result.win_rate,
        'num_trades': len(result.trades),
        'average_trade': result.average_trade,
        'best_trade': result.best_trade,
        'worst_trade': result.worst_trade,
        'profit_factor': stats.profit_factor if stats else 0.0,
        'sharpe_ratio': stats.sharpe_ratio if stats else 0.0,
        'sortino_ratio': stats.sortino_ratio if stats else 0.0,
    }


def run_parameter_sweep(base_config: BacktestConfig,
                        candles: Any,
                        param_grid: Mapping[str, Sequence[Any]],
                        metric: str = 'total_return_percent',
                        max_workers: Optional[int] = None) -> pd.DataFrame:
    """
    Run parameter optimization

    Args:
        base_config: Configuration the combinations are applied to
        candles: Candle input shared (read-only) by every run
        param_grid: name -> values; names are BacktestConfig fields or
            `strategy_params.<name>`
        metric: Summary column to sort by, descending
        max_workers: Thread pool size (settings default)

    Returns:
        DataFrame with one row per successful combination: parameters plus
        summary metrics
    """
    series = ensure_series(candles, symbol=base_config.symbol, timeframe=base_config.timeframe)
    combinations = expand_param_grid(param_grid)
    if max_workers is None:
        max_workers = get_settings().max_workers

    def run_one(index: int, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        logger.info(f"Testing combination {index + 1}/{len(combinations)}: {params}")
        try:
            runner = BacktestRunner(build_config(base_config, params), progress_interval=max(len(series), 1))
            result = runner.run(series)
        except (BacktestError, TypeError, ValueError) as e:
            logger.error(f"Error in combination {index + 1}: {e}")
            return None
        row = dict(params)
        row.update(summarize_result(result))
        return row

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        rows = list(executor.map(run_one, range(len(combinations)), combinations))

    results = [row for row in rows if row is not None]
    results_df = pd.DataFrame(results, columns=list(param_grid.keys()) + SUMMARY_COLUMNS)
    if metric in results_df.columns and not results_df.empty:
        results_df = results_df.sort_values(metric, ascending=False, kind='mergesort').reset_index(drop=True)
    return results_df
