"""
Parameter sweep tests
"""

import pytest

from backtest_engine import run_backtest, run_parameter_sweep
from backtest_engine.core.sweep import SUMMARY_COLUMNS, build_config, expand_param_grid

from conftest import make_config, random_walk_candles


def test_expand_param_grid():
    grid = expand_param_grid({'a': [1, 2], 'b': ['x', 'y', 'z']})

    assert len(grid) == 6
    assert grid[0] == {'a': 1, 'b': 'x'}
    assert grid[-1] == {'a': 2, 'b': 'z'}


def test_build_config_routes_strategy_params():
    base = make_config(strategy_params={'slow_period': 30})
    config = build_config(base, {'strategy_params.fast_period': 7, 'stop_loss_percent': 2.5})

    assert config.stop_loss_percent == 2.5
    assert dict(config.strategy_params) == {'fast_period': 7, 'slow_period': 30}
    assert base.stop_loss_percent is None


class TestParameterSweep:

    def setup_method(self):
        self.config = make_config(strategy_params={'slow_period': 20})
        self.candles = random_walk_candles(300, seed=21)

    def test_one_row_per_combination(self):
        results = run_parameter_sweep(
            self.config,
            self.candles,
            {'strategy_params.fast_period': [3, 5, 8], 'stop_loss_percent': [2.0, 4.0]},
            max_workers=2,
        )

        assert len(results) == 6
        assert list(results.columns) == ['strategy_params.fast_period', 'stop_loss_percent'] + SUMMARY_COLUMNS
        returns = results['total_return_percent'].tolist()
        assert returns == sorted(returns, reverse=True)

    def test_rows_match_single_runs(self):
        results = run_parameter_sweep(self.config, self.candles,
                                      {'strategy_params.fast_period': [3, 5]}, max_workers=2)

        for _, row in results.iterrows():
            config = self.config.with_overrides(
                strategy_params={'fast_period': int(row['strategy_params.fast_period'])})
            single = run_backtest(config, self.candles)
            assert row['final_balance'] == pytest.approx(single.final_balance)
            assert row['num_trades'] == len(single.trades)

    def test_invalid_combinations_are_skipped(self):
        results = run_parameter_sweep(
            self.config,
            self.candles,
            {'stop_loss_percent': [2.0, 150.0], 'strategy_params.fast_period': [5, 25]},
            max_workers=1,
        )

        # Only stop 2% with fast 5 is valid (fast must stay below slow 20)
        assert len(results) == 1
        assert results['stop_loss_percent'].iloc[0] == 2.0

    def test_sort_metric(self):
        results = run_parameter_sweep(self.config, self.candles,
                                      {'strategy_params.fast_period': [3, 5, 8]},
                                      metric='max_drawdown_percent', max_workers=1)

        drawdowns = results['max_drawdown_percent'].tolist()
        assert drawdowns == sorted(drawdowns, reverse=True)

    def test_empty_when_nothing_valid(self):
        results = run_parameter_sweep(self.config, self.candles, {'initial_balance': [0, -1]})

        assert results.empty
        assert 'total_return_percent' in results.columns
