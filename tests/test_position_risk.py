"""
Position Manager and Risk Controller tests

Validates:
- Position sizing from the cash balance
- Exact stop loss / take profit fill levels
- Stop loss priority over take profit
- Commission, slippage and short accounting
- Entry gating (warm-up, drawdown limit)
"""

import unittest

import pandas as pd

from backtest_engine.core.equity_tracker import EquityTracker
from backtest_engine.core.models import Candle, ExitReason, PositionState, Side
from backtest_engine.core.position_manager import (
    PositionManager,
    apply_slippage,
    calculate_position_quantity,
    calculate_stop_loss_price,
    calculate_take_profit_price,
)
from backtest_engine.risk import RiskController, RiskLimits

T0 = pd.Timestamp('2024-01-01', tz='UTC')


def bar(close, high=None, low=None, hours=0, open_=None):
    open_ = close if open_ is None else open_
    high = max(open_, close) if high is None else high
    low = min(open_, close) if low is None else low
    return Candle(T0 + pd.Timedelta(hours=hours), open_, high, low, close, 0.0)


class TestPriceLevels(unittest.TestCase):

    def test_stop_loss_price(self):
        self.assertAlmostEqual(calculate_stop_loss_price(105.0, 1, 0.05), 99.75, places=10)
        self.assertAlmostEqual(calculate_stop_loss_price(100.0, -1, 0.05), 105.0, places=10)

    def test_take_profit_price(self):
        self.assertAlmostEqual(calculate_take_profit_price(100.0, 1, 0.10), 110.0, places=10)
        self.assertAlmostEqual(calculate_take_profit_price(100.0, -1, 0.10), 90.0, places=10)

    def test_position_quantity(self):
        self.assertEqual(calculate_position_quantity(10000.0, 0.10, 100.0, 0.0), 10.0)
        self.assertEqual(calculate_position_quantity(10000.0, 0.10, 0.0, 0.0), 0.0)
        self.assertEqual(calculate_position_quantity(0.0, 0.10, 100.0, 0.0), 0.0)

    def test_quantity_capped_by_commission(self):
        quantity = calculate_position_quantity(10000.0, 1.0, 100.0, 0.01)
        self.assertAlmostEqual(quantity * 100.0 * 1.01, 10000.0, places=6)

    def test_slippage_direction(self):
        self.assertAlmostEqual(apply_slippage(100.0, 1, 0.001), 100.1, places=10)
        self.assertAlmostEqual(apply_slippage(100.0, -1, 0.001), 99.9, places=10)
        self.assertEqual(apply_slippage(100.0, 1, 0.0), 100.0)


class TestPositionManager(unittest.TestCase):

    def setUp(self):
        self.manager = PositionManager('BTCUSD', 10000.0, 0.10, stop_loss_fraction=0.05,
                                       take_profit_fraction=0.10)

    def test_entry_quantity_is_exact(self):
        position = self.manager.open_position(Side.LONG, bar(100.0))

        self.assertEqual(position.quantity, 10.0)
        self.assertEqual(self.manager.cash, 9000.0)
        self.assertEqual(self.manager.state, PositionState.OPEN)
        self.assertAlmostEqual(position.stop_price, 95.0, places=10)
        self.assertAlmostEqual(position.take_profit_price, 110.0, places=10)

    def test_only_one_position(self):
        self.manager.open_position(Side.LONG, bar(100.0))
        self.assertIsNone(self.manager.open_position(Side.LONG, bar(101.0, hours=1)))
        self.assertEqual(self.manager.cash, 9000.0)

    def test_zero_price_entry_is_skipped(self):
        self.assertIsNone(self.manager.open_position(Side.LONG, bar(0.0)))
        self.assertEqual(self.manager.state, PositionState.FLAT)
        self.assertEqual(self.manager.cash, 10000.0)

    def test_signal_exit_at_close(self):
        self.manager.open_position(Side.LONG, bar(100.0))
        trade = self.manager.close_position(bar(104.0, hours=3), ExitReason.SIGNAL)

        self.assertEqual(trade.exit_price, 104.0)
        self.assertAlmostEqual(trade.pnl, 40.0, places=10)
        self.assertAlmostEqual(trade.pnl_percent, 4.0, places=10)
        self.assertEqual(trade.duration_seconds, 3 * 3600)
        self.assertEqual(trade.trade_id, 1)
        self.assertAlmostEqual(self.manager.cash, 10040.0, places=10)
        self.assertEqual(self.manager.state, PositionState.FLAT)

    def test_risk_exit_at_exact_level(self):
        position = self.manager.open_position(Side.LONG, bar(100.0))
        trade = self.manager.close_position(bar(90.0, hours=1), ExitReason.STOP_LOSS,
                                            price=position.stop_price)

        self.assertEqual(trade.exit_price, position.stop_price)
        self.assertEqual(trade.exit_reason, ExitReason.STOP_LOSS)
        self.assertAlmostEqual(trade.pnl, -50.0, places=8)

    def test_close_when_flat(self):
        self.assertIsNone(self.manager.close_position(bar(100.0), ExitReason.SIGNAL))

    def test_commission_on_both_fills(self):
        manager = PositionManager('BTCUSD', 10000.0, 0.10, commission_rate=0.001)
        manager.open_position(Side.LONG, bar(100.0))
        self.assertAlmostEqual(manager.cash, 10000.0 - 1000.0 - 1.0, places=10)

        trade = manager.close_position(bar(110.0, hours=1), ExitReason.SIGNAL)
        # 100 gross - 1.0 entry fee - 1.1 exit fee
        self.assertAlmostEqual(trade.commission, 2.1, places=10)
        self.assertAlmostEqual(trade.pnl, 97.9, places=10)
        self.assertAlmostEqual(manager.cash, 10097.9, places=8)

    def test_slippage_only_on_signal_fills(self):
        manager = PositionManager('BTCUSD', 10000.0, 0.10, stop_loss_fraction=0.05, slippage=0.01)
        position = manager.open_position(Side.LONG, bar(100.0))
        self.assertAlmostEqual(position.entry_price, 101.0, places=10)

        trade = manager.close_position(bar(90.0, hours=1), ExitReason.STOP_LOSS, price=position.stop_price)
        self.assertEqual(trade.exit_price, position.stop_price)

        manager.open_position(Side.LONG, bar(100.0, hours=2))
        trade = manager.close_position(bar(100.0, hours=3), ExitReason.SIGNAL)
        self.assertAlmostEqual(trade.exit_price, 99.0, places=10)

    def test_short_accounting(self):
        manager = PositionManager('BTCUSD', 10000.0, 0.10)
        manager.open_position(Side.SHORT, bar(100.0))

        # Collateral reserved
        self.assertEqual(manager.cash, 9000.0)
        self.assertAlmostEqual(manager.equity(90.0), 10100.0, places=10)
        self.assertAlmostEqual(manager.equity(110.0), 9900.0, places=10)
        self.assertAlmostEqual(manager.unrealized_pnl(90.0), 100.0, places=10)

        trade = manager.close_position(bar(90.0, hours=1), ExitReason.SIGNAL)
        self.assertAlmostEqual(trade.pnl, 100.0, places=10)
        self.assertAlmostEqual(manager.cash, 10100.0, places=10)

    def test_cash_identity(self):
        manager = PositionManager('BTCUSD', 10000.0, 0.5, commission_rate=0.002, slippage=0.001)
        prices = [100.0, 103.0, 98.0, 105.0, 97.0, 101.0]
        for i in range(0, len(prices) - 1, 2):
            side = Side.LONG if i % 4 == 0 else Side.SHORT
            manager.open_position(side, bar(prices[i], hours=i))
            manager.close_position(bar(prices[i + 1], hours=i + 1), ExitReason.SIGNAL)

        self.assertEqual(len(manager.trades), 3)
        self.assertAlmostEqual(manager.cash, 10000.0 + manager.realized_pnl, places=8)


class TestRiskController(unittest.TestCase):

    def setUp(self):
        self.manager = PositionManager('BTCUSD', 10000.0, 0.10, stop_loss_fraction=0.05,
                                       take_profit_fraction=0.05)
        self.risk = RiskController()

    def test_no_position_no_exit(self):
        self.assertIsNone(self.risk.check_exit(bar(100.0), None))

    def test_stop_breach_on_low(self):
        position = self.manager.open_position(Side.LONG, bar(100.0))
        exit_ = self.risk.check_exit(bar(96.0, low=94.0, hours=1), position)

        self.assertEqual(exit_.reason, ExitReason.STOP_LOSS)
        self.assertEqual(exit_.price, position.stop_price)

    def test_take_profit_on_high(self):
        position = self.manager.open_position(Side.LONG, bar(100.0))
        exit_ = self.risk.check_exit(bar(102.0, high=106.0, hours=1), position)

        self.assertEqual(exit_.reason, ExitReason.TAKE_PROFIT)
        self.assertEqual(exit_.price, position.take_profit_price)

    def test_stop_loss_wins_when_both_breached(self):
        position = self.manager.open_position(Side.LONG, bar(100.0))
        exit_ = self.risk.check_exit(bar(100.0, high=120.0, low=80.0, hours=1), position)

        self.assertEqual(exit_.reason, ExitReason.STOP_LOSS)

    def test_short_levels_are_mirrored(self):
        position = self.manager.open_position(Side.SHORT, bar(100.0))
        self.assertAlmostEqual(position.stop_price, 105.0, places=10)

        self.assertEqual(self.risk.check_exit(bar(104.0, high=106.0, hours=1), position).reason,
                         ExitReason.STOP_LOSS)
        self.assertEqual(self.risk.check_exit(bar(96.0, low=94.0, hours=1), position).reason,
                         ExitReason.TAKE_PROFIT)
        self.assertIsNone(self.risk.check_exit(bar(100.0, high=104.0, low=96.0, hours=1), position))

    def test_touching_the_level_triggers(self):
        position = self.manager.open_position(Side.LONG, bar(100.0))
        candle = bar(position.stop_price, hours=1)
        self.assertEqual(self.risk.check_exit(candle, position).reason, ExitReason.STOP_LOSS)

    def test_entry_gates(self):
        risk = RiskController(RiskLimits(max_drawdown_percent=10.0, warmup_bars=3))

        self.assertFalse(risk.check_entry_allowed(2, 0.0)[0])
        self.assertTrue(risk.check_entry_allowed(3, 0.0)[0])
        self.assertFalse(risk.check_entry_allowed(5, 10.0)[0])
        self.assertTrue(risk.drawdown_limit_reached(12.0))
        self.assertFalse(RiskController().drawdown_limit_reached(99.0))


class TestEquityTracker(unittest.TestCase):

    def test_peak_and_drawdown(self):
        tracker = EquityTracker(1000.0)
        for i, equity in enumerate([1000.0, 1100.0, 990.0, 1200.0, 1140.0]):
            tracker.record(T0 + pd.Timedelta(hours=i), equity)

        self.assertEqual(tracker.peak_equity, 1200.0)
        self.assertAlmostEqual(tracker.max_drawdown_percent, 10.0, places=10)
        self.assertAlmostEqual(tracker.current_drawdown_percent, 5.0, places=10)
        self.assertEqual(len(tracker), 5)

        drawdown = tracker.drawdown_series()
        self.assertAlmostEqual(drawdown.max(), 10.0, places=10)
        self.assertEqual(drawdown.iloc[0], 0.0)

    def test_drawdown_starts_from_initial_balance(self):
        tracker = EquityTracker(1000.0)
        tracker.record(T0, 900.0)
        self.assertAlmostEqual(tracker.max_drawdown_percent, 10.0, places=10)


if __name__ == '__main__':
    unittest.main()
