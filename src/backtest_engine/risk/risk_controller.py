"""
Risk Controller

Checks every candle's high/low against the open position's protective
levels, independent of the strategy, and gates new entries once the
drawdown limit is reached.

Priority when several exits are possible on one candle:
stop loss, then take profit, then the strategy's signal exit.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple
import logging

from ..core.models import Candle, ExitReason, Position, Side

logger = logging.getLogger(__name__)


class RiskExit(NamedTuple):
    """Forced exit at an exact protective price level"""
    reason: ExitReason
    price: float


@dataclass(frozen=True)
class RiskLimits:
    """Run-level risk limits"""
    max_drawdown_percent: Optional[float] = None  # None disables the limit
    warmup_bars: int = 0


class RiskController:
    """
    Stateless protective-level and entry gate checks

    The runner passes in everything needed (candle, position, drawdown) and
    keeps any resulting state itself.
    """

    def __init__(self, limits: Optional[RiskLimits] = None):
        self.limits = limits or RiskLimits()

    def check_exit(self, candle: Candle, position: Optional[Position]) -> Optional[RiskExit]:
        """
        Forced exit for this candle, if a protective level was breached

        Args:
            candle: Current candle
            position: Open position or None

        Returns:
            RiskExit at the stop / take profit level, or None
        """
        if position is None:
            return None

        stop_hit, target_hit = levels_breached(candle, position)
        # Stop loss wins when both levels fall inside the candle range
        if stop_hit:
            return RiskExit(ExitReason.STOP_LOSS, position.stop_price)
        if target_hit:
            return RiskExit(ExitReason.TAKE_PROFIT, position.take_profit_price)
        return None

    def drawdown_limit_reached(self, max_drawdown_percent: float) -> bool:
        limit = self.limits.max_drawdown_percent
        return limit is not None and max_drawdown_percent >= limit

    def check_entry_allowed(self, bar_index: int, max_drawdown_percent: float) -> Tuple[bool, str]:
        """
        Check whether a new position may be opened on this candle

        Returns:
            (is_allowed, reason) tuple
        """
        if bar_index < self.limits.warmup_bars:
            return False, f"Warm-up: bar {bar_index} < {self.limits.warmup_bars}"
        if self.drawdown_limit_reached(max_drawdown_percent):
            return False, (f"Maximum drawdown reached: {max_drawdown_percent:.2f}% >= "
                           f"{self.limits.max_drawdown_percent:.2f}%")
        return True, "Risk limits satisfied"


def levels_breached(candle: Candle, position: Position) -> Tuple[bool, bool]:
    """(stop_hit, take_profit_hit) for the candle's range"""
    stop = position.stop_price
    target = position.take_profit_price

    if position.side is Side.LONG:
        stop_hit = stop is not None and candle.low <= stop
        target_hit = target is not None and candle.high >= target
    else:
        stop_hit = stop is not None and candle.high >= stop
        target_hit = target is not None and candle.low <= target
    return stop_hit, target_hit
