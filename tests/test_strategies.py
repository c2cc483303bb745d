"""
Strategy evaluator and registry tests
"""

import pandas as pd
import pytest

from backtest_engine import ConfigurationError, UnknownStrategyError
from backtest_engine.core.models import Candle, Position, Side
from backtest_engine.indicators import IndicatorSnapshot
from backtest_engine.strategies import (
    HOLD,
    DonchianBreakoutStrategy,
    EMACrossoverStrategy,
    MACDTrendStrategy,
    RSIMeanReversionStrategy,
    Signal,
    available_strategies,
    create_strategy,
    crossed_above,
    crossed_below,
    get_strategy_class,
    register_strategy,
    unregister_strategy,
)

from conftest import AlwaysLongStrategy

T0 = pd.Timestamp('2024-01-01', tz='UTC')
CANDLE = Candle(T0, 100.0, 100.0, 100.0, 100.0, 0.0)


def snap(name, value=None, previous=None, **components):
    return IndicatorSnapshot(name=name, value=value, previous=previous, components=components)


def position(side=Side.LONG):
    return Position(symbol='BTCUSD', side=side, entry_price=100.0, quantity=1.0, entry_timestamp=T0)


class TestRegistry:

    def test_builtins_registered(self):
        ids = [s['id'] for s in available_strategies()]
        for strategy_id in ('ema_crossover', 'rsi_mean_reversion', 'macd_trend', 'donchian_breakout'):
            assert strategy_id in ids

    def test_defaults_exposed(self):
        by_id = {s['id']: s for s in available_strategies()}
        assert by_id['ema_crossover']['default_params']['fast_period'] == 12
        assert by_id['ema_crossover']['default_params']['slow_period'] == 26
        assert by_id['rsi_mean_reversion']['default_params']['oversold'] == 30.0

    def test_unknown_strategy(self):
        with pytest.raises(UnknownStrategyError) as excinfo:
            get_strategy_class('grid_bot')
        assert 'grid_bot' in str(excinfo.value)
        assert isinstance(excinfo.value, ConfigurationError)

    def test_register_new_strategy(self):
        register_strategy(AlwaysLongStrategy)
        try:
            strategy = create_strategy('always_long')
            assert isinstance(strategy, AlwaysLongStrategy)
        finally:
            unregister_strategy('always_long')

        with pytest.raises(UnknownStrategyError):
            get_strategy_class('always_long')


class TestParameters:

    def test_defaults_merged(self):
        strategy = create_strategy('ema_crossover', {'fast_period': 5})
        assert strategy.params == {'fast_period': 5, 'slow_period': 26, 'allow_short': False}

    def test_values_coerced_to_default_types(self):
        strategy = create_strategy('ema_crossover', {'fast_period': '5', 'slow_period': 20.0,
                                                     'allow_short': 'true'})
        assert strategy.params['fast_period'] == 5
        assert isinstance(strategy.params['slow_period'], int)
        assert strategy.params['allow_short'] is True

    def test_unknown_parameter(self):
        with pytest.raises(ConfigurationError):
            create_strategy('ema_crossover', {'window': 5})

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            create_strategy('ema_crossover', {'fast_period': 30, 'slow_period': 10})
        with pytest.raises(ConfigurationError):
            create_strategy('ema_crossover', {'fast_period': 2.5})
        with pytest.raises(ConfigurationError):
            create_strategy('rsi_mean_reversion', {'oversold': 80, 'overbought': 70})
        with pytest.raises(ConfigurationError):
            create_strategy('donchian_breakout', {'entry_period': 0})

    def test_describe(self):
        info = create_strategy('macd_trend', {'signal_period': 5}).describe()
        assert info['id'] == 'macd_trend'
        assert info['name'] == 'MACD Trend'
        assert info['parameters']['signal_period'] == 5

    def test_warmup_period(self):
        assert create_strategy('ema_crossover').warmup_period == 26
        assert create_strategy('donchian_breakout', {'entry_period': 30}).warmup_period == 30


class TestCrossHelpers:

    def test_crossed_above(self):
        assert crossed_above(11, 10, 9, 10)
        assert not crossed_above(11, 10, 11, 10)
        # Missing previous counts as not above
        assert crossed_above(11, 10, None, None)
        assert not crossed_above(None, 10, 9, 10)

    def test_crossed_below(self):
        assert crossed_below(9, 10, 11, 10)
        assert not crossed_below(9, 10, 8, 10)
        assert not crossed_below(10, 10, 11, 10)


class TestEMACrossover:

    def setup_method(self):
        self.strategy = EMACrossoverStrategy({'fast_period': 2, 'slow_period': 4})

    def test_warming_up_is_no_signal(self):
        indicators = {'fast_ema': snap('fast_ema', 101.0, 99.0), 'slow_ema': snap('slow_ema')}
        assert self.strategy.evaluate(CANDLE, indicators, None) == HOLD

    def test_enter_on_cross_up(self):
        indicators = {'fast_ema': snap('fast_ema', 101.0, 99.0), 'slow_ema': snap('slow_ema', 100.0, 100.0)}
        assert self.strategy.evaluate(CANDLE, indicators, None) == Signal(enter=True, side=Side.LONG)

    def test_no_entry_while_already_above(self):
        indicators = {'fast_ema': snap('fast_ema', 102.0, 101.0), 'slow_ema': snap('slow_ema', 100.0, 100.0)}
        assert self.strategy.evaluate(CANDLE, indicators, None) == HOLD

    def test_exit_on_cross_down(self):
        indicators = {'fast_ema': snap('fast_ema', 99.0, 101.0), 'slow_ema': snap('slow_ema', 100.0, 100.0)}
        signal = self.strategy.evaluate(CANDLE, indicators, position())
        assert signal.exit
        assert not signal.enter

    def test_short_only_when_allowed(self):
        indicators = {'fast_ema': snap('fast_ema', 99.0, 101.0), 'slow_ema': snap('slow_ema', 100.0, 100.0)}
        assert self.strategy.evaluate(CANDLE, indicators, None) == HOLD

        shorting = EMACrossoverStrategy({'fast_period': 2, 'slow_period': 4, 'allow_short': True})
        assert shorting.evaluate(CANDLE, indicators, None) == Signal(enter=True, side=Side.SHORT)

    def test_evaluate_is_pure(self):
        indicators = {'fast_ema': snap('fast_ema', 101.0, 99.0), 'slow_ema': snap('slow_ema', 100.0, 100.0)}
        first = self.strategy.evaluate(CANDLE, indicators, None)
        second = self.strategy.evaluate(CANDLE, indicators, None)
        assert first == second


class TestRSIMeanReversion:

    def setup_method(self):
        self.strategy = RSIMeanReversionStrategy()

    def test_signals(self):
        assert self.strategy.evaluate(CANDLE, {'rsi': snap('rsi')}, None) == HOLD
        assert self.strategy.evaluate(CANDLE, {'rsi': snap('rsi', 25.0)}, None).enter
        assert self.strategy.evaluate(CANDLE, {'rsi': snap('rsi', 50.0)}, None) == HOLD
        assert self.strategy.evaluate(CANDLE, {'rsi': snap('rsi', 75.0)}, position()).exit
        assert self.strategy.evaluate(CANDLE, {'rsi': snap('rsi', 75.0)}, None) == HOLD

    def test_short_exit_when_oversold(self):
        strategy = RSIMeanReversionStrategy({'allow_short': True})
        assert strategy.evaluate(CANDLE, {'rsi': snap('rsi', 75.0)}, None).side is Side.SHORT
        assert strategy.evaluate(CANDLE, {'rsi': snap('rsi', 25.0)}, position(Side.SHORT)).exit


class TestMACDTrend:

    def test_histogram_sign_change(self):
        strategy = MACDTrendStrategy()
        assert strategy.evaluate(CANDLE, {'macd': snap('macd')}, None) == HOLD
        assert strategy.evaluate(CANDLE, {'macd': snap('macd', 0.5, -0.2)}, None).enter
        assert strategy.evaluate(CANDLE, {'macd': snap('macd', 0.5, 0.2)}, None) == HOLD
        assert strategy.evaluate(CANDLE, {'macd': snap('macd', -0.1, 0.3)}, position()).exit


class TestDonchianBreakout:

    def setup_method(self):
        self.strategy = DonchianBreakoutStrategy({'entry_period': 5, 'exit_period': 3})
        self.ready = {
            'entry_channel': snap('entry_channel', 100.0, None, upper=105.0, lower=95.0),
            'exit_channel': snap('exit_channel', 100.0, None, upper=103.0, lower=97.0),
        }

    def test_breakout_entry(self):
        candle = CANDLE._replace(high=106.0, close=106.0)
        assert self.strategy.evaluate(candle, self.ready, None) == Signal(enter=True, side=Side.LONG)
        assert self.strategy.evaluate(CANDLE, self.ready, None) == HOLD

    def test_exit_channel(self):
        candle = CANDLE._replace(low=96.0, close=96.0)
        assert self.strategy.evaluate(candle, self.ready, position()).exit

    def test_warming_up(self):
        indicators = {'entry_channel': snap('entry_channel'), 'exit_channel': snap('exit_channel')}
        candle = CANDLE._replace(high=150.0, close=150.0)
        assert self.strategy.evaluate(candle, indicators, None) == HOLD
