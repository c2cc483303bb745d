"""
Backtest Runner - replay loop coordination

For every candle, strictly in order:
indicators -> risk controller -> strategy -> position manager -> equity tracker,
then progress reporting. Cancellation is checked at each candle boundary and
yields a partial result flagged as cancelled.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging
import threading

from ..config import get_settings
from ..errors import ConfigurationError
from ..indicators.base import Indicator
from ..risk import RiskController, RiskLimits
from ..statistics import ResultsAggregator
from ..strategies import Strategy, create_strategy
from .candles import ensure_series
from .equity_tracker import EquityTracker
from .models import BacktestConfig, BacktestProgress, BacktestResult, ExitReason, RunStatus
from .position_manager import PositionManager

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BacktestProgress], None]
CancelCheck = Callable[[], bool]


class BacktestRunner:
    """
    Deterministic single-symbol backtest runner

    Each call to `run` builds fresh indicator, position, risk and equity
    state, so a runner can be replayed and concurrent runs never share
    mutable state.
    """

    def __init__(self,
                 config: BacktestConfig,
                 strategy: Optional[Strategy] = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 cancel_check: Optional[CancelCheck] = None,
                 progress_interval: Optional[int] = None):
        """
        Initialize the runner

        Args:
            config: Run configuration, validated here
            strategy: Strategy instance; built from config.strategy_id when omitted
            progress_callback: Receives BacktestProgress every `progress_interval` candles
            cancel_check: Returns True to stop at the next candle boundary
            progress_interval: Candles between progress reports (settings default)

        Raises:
            ConfigurationError: invalid config, unknown strategy or bad parameters
        """
        self.config = config.validate()
        self.strategy = strategy or create_strategy(config.strategy_id, config.strategy_params)
        self.progress_callback = progress_callback
        self.cancel_check = cancel_check

        if progress_interval is None:
            progress_interval = get_settings().progress_interval
        if progress_interval < 1:
            raise ConfigurationError(f"progress_interval must be >= 1, got {progress_interval}")
        self.progress_interval = progress_interval

        self.aggregator = ResultsAggregator()
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Stop the current (or next) run at a candle boundary; safe to call from another thread"""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        if self._cancel_event.is_set():
            return True
        return bool(self.cancel_check and self.cancel_check())

    def run(self, candles: Any, force_close: bool = False) -> BacktestResult:
        """
        Replay candles through the strategy

        Args:
            candles: CandleSeries, OHLCV DataFrame or candle records
            force_close: Close a position still open after the last candle at
                its close, so the ledger is complete

        Returns:
            BacktestResult (status CANCELLED when stopped early)

        Raises:
            DataError: structurally invalid candles
        """
        config = self.config
        series = ensure_series(candles, symbol=config.symbol, timeframe=config.timeframe)
        window = series.slice(config.start_time, config.end_time)
        if len(window) != len(series):
            logger.warning(f"Dropped {len(series) - len(window)} candles outside "
                           f"{config.start_time} - {config.end_time}")

        total = len(window)
        started = datetime.now()
        logger.info(f"Starting backtest {config.strategy_id} on {config.symbol} {config.timeframe}: "
                    f"{total} candles")

        indicators: Dict[str, Indicator] = self.strategy.create_indicators()
        positions = PositionManager(
            symbol=config.symbol,
            initial_balance=config.initial_balance,
            position_size_fraction=config.position_size_fraction,
            stop_loss_fraction=config.stop_loss_fraction,
            take_profit_fraction=config.take_profit_fraction,
            commission_rate=config.commission_fraction,
            slippage=config.slippage_fraction,
        )
        risk = RiskController(RiskLimits(
            max_drawdown_percent=config.max_drawdown_limit_percent,
            warmup_bars=config.warmup_bars,
        ))
        tracker = EquityTracker(config.initial_balance)

        status = RunStatus.COMPLETED
        processed = 0
        bars_in_market = 0
        halted = False
        last_candle = None

        for i, candle in enumerate(window):
            if self.cancel_requested:
                status = RunStatus.CANCELLED
                logger.info(f"Backtest cancelled after {processed}/{total} candles")
                break

            snapshots = {name: indicator.update(candle) for name, indicator in indicators.items()}

            # One transition per candle: a closing candle never re-enters
            transitioned = False
            risk_exit = risk.check_exit(candle, positions.position)
            if risk_exit is not None:
                positions.close_position(candle, risk_exit.reason, price=risk_exit.price)
                transitioned = True

            if not transitioned:
                signal = self.strategy.evaluate(candle, snapshots, positions.position)
                if positions.position is not None:
                    if signal.exit:
                        positions.close_position(candle, ExitReason.SIGNAL)
                elif signal.enter:
                    allowed, reason = risk.check_entry_allowed(i, tracker.max_drawdown_percent)
                    if allowed:
                        positions.open_position(signal.side, candle)
                    else:
                        logger.debug(f"Entry blocked at {candle.timestamp}: {reason}")

            tracker.record(candle.timestamp, positions.equity(candle.close))
            if not halted and risk.drawdown_limit_reached(tracker.max_drawdown_percent):
                halted = True
                logger.warning(f"Max drawdown limit reached: {tracker.max_drawdown_percent:.2f}%, "
                               f"no new entries")

            if positions.is_open:
                bars_in_market += 1
            processed = i + 1
            last_candle = candle

            if processed % self.progress_interval == 0 or processed == total:
                self._report_progress(processed, total)

        # A cancel request applies to one run only
        self._cancel_event.clear()

        if total == 0:
            self._report_progress(0, 0)

        if force_close and last_candle is not None and positions.is_open:
            # Plain close, no slippage
            positions.close_position(last_candle, ExitReason.SIGNAL, price=last_candle.close)

        if last_candle is not None:
            final_balance = positions.equity(last_candle.close)
            unrealized = positions.unrealized_pnl(last_candle.close)
        else:
            final_balance = config.initial_balance
            unrealized = 0.0

        result = self.aggregator.aggregate(
            config,
            positions.trades,
            tracker.equity_curve,
            final_balance,
            tracker.max_drawdown_percent,
            status=status,
            candles_processed=processed,
            total_candles=total,
            open_position=positions.position,
            unrealized_pnl=unrealized,
            trading_halted=halted,
            bars_in_market=bars_in_market,
        )

        logger.info(f"Backtest {status.value} in {datetime.now() - started}: "
                    f"final balance {result.final_balance:.2f}, "
                    f"return {result.total_return_percent:.2f}%, {len(result.trades)} trades")
        return result

    def _report_progress(self, processed: int, total: int) -> None:
        if self.progress_callback is None:
            return
        fraction = processed / total if total else 1.0
        self.progress_callback(BacktestProgress(processed, total, fraction))


def run_backtest(config: BacktestConfig,
                 candles: Any,
                 strategy: Optional[Strategy] = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 cancel_check: Optional[CancelCheck] = None,
                 force_close: bool = False) -> BacktestResult:
    """Validate, replay and aggregate in one call"""
    runner = BacktestRunner(
        config,
        strategy=strategy,
        progress_callback=progress_callback,
        cancel_check=cancel_check,
    )
    return runner.run(candles, force_close=force_close)
