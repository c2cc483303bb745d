"""
Position Manager - single-position FLAT / OPEN state machine

This module handles fills and cash accounting for one symbol:
- Position sizing from the cash balance
- Entry and exit fills with commission and slippage
- Stop loss / take profit level calculation
- Trade ledger
"""

from typing import List, Optional
import logging

from numba import njit

from .models import Candle, ExitReason, Position, PositionState, Side, Trade

logger = logging.getLogger(__name__)


class PositionManager:
    """
    Tracks cash, the open position and the closed-trade ledger

    Longs pay the notional out of cash on entry and receive quantity * exit
    price back. Shorts reserve the notional as collateral and receive it back
    plus the PnL. Commission is charged on the notional of every fill.
    """

    def __init__(self, symbol: str, initial_balance: float, position_size_fraction: float,
                 stop_loss_fraction: Optional[float] = None,
                 take_profit_fraction: Optional[float] = None,
                 commission_rate: float = 0.0, slippage: float = 0.0):
        self.symbol = symbol
        self.cash = initial_balance
        self.position_size_fraction = position_size_fraction
        self.stop_loss_fraction = stop_loss_fraction
        self.take_profit_fraction = take_profit_fraction
        self.commission_rate = commission_rate
        self.slippage = slippage

        self.position: Optional[Position] = None
        self.trades: List[Trade] = []
        self._next_trade_id = 1

    @property
    def state(self) -> PositionState:
        return PositionState.OPEN if self.position is not None else PositionState.FLAT

    @property
    def is_open(self) -> bool:
        return self.position is not None

    @property
    def realized_pnl(self) -> float:
        total = 0.0
        for trade in self.trades:
            total += trade.pnl
        return total

    def open_position(self, side: Side, candle: Candle) -> Optional[Position]:
        """
        FLAT -> OPEN at the candle close (plus slippage)

        Args:
            side: Position direction
            candle: Candle whose close is the reference price

        Returns:
            The new Position, or None when the entry was skipped
        """
        if self.position is not None:
            logger.debug(f"Entry ignored at {candle.timestamp}: position already open")
            return None

        fill_price = apply_slippage(candle.close, side.direction, self.slippage)
        if fill_price <= 0:
            logger.debug(f"Entry skipped at {candle.timestamp}: non-positive price {fill_price}")
            return None

        quantity = calculate_position_quantity(
            self.cash, self.position_size_fraction, fill_price, self.commission_rate
        )
        if quantity <= 0:
            logger.debug(f"Entry skipped at {candle.timestamp}: no cash available for sizing")
            return None

        notional = quantity * fill_price
        commission = notional * self.commission_rate

        stop_price = None
        if self.stop_loss_fraction is not None:
            stop_price = calculate_stop_loss_price(fill_price, side.direction, self.stop_loss_fraction)
        take_profit_price = None
        if self.take_profit_fraction is not None:
            take_profit_price = calculate_take_profit_price(fill_price, side.direction, self.take_profit_fraction)

        # Longs buy the asset, shorts post the notional as collateral
        self.cash -= notional + commission

        self.position = Position(
            symbol=self.symbol,
            side=side,
            entry_price=fill_price,
            quantity=quantity,
            entry_timestamp=candle.timestamp,
            stop_price=stop_price,
            take_profit_price=take_profit_price,
            entry_commission=commission,
        )
        logger.debug(f"Opened {side.value} {quantity:.6f} {self.symbol} @ {fill_price:.6f} at {candle.timestamp}")
        return self.position

    def close_position(self, candle: Candle, reason: ExitReason,
                       price: Optional[float] = None) -> Optional[Trade]:
        """
        OPEN -> FLAT

        Signal exits fill at the candle close worsened by slippage. Risk
        exits pass the exact protective level as `price` and are not slipped.

        Returns:
            The closed Trade, or None when no position was open
        """
        position = self.position
        if position is None:
            return None

        if price is None:
            exit_price = apply_slippage(candle.close, -position.side.direction, self.slippage)
        else:
            exit_price = price

        exit_commission = position.quantity * exit_price * self.commission_rate
        self.cash += position.market_value(exit_price) - exit_commission

        commission = position.entry_commission + exit_commission
        pnl = position.unrealized_pnl(exit_price) - commission
        notional = position.notional
        pnl_percent = pnl / notional * 100.0 if notional > 0 else 0.0

        trade = Trade(
            trade_id=self._next_trade_id,
            symbol=self.symbol,
            side=position.side,
            entry_timestamp=position.entry_timestamp,
            exit_timestamp=candle.timestamp,
            entry_price=position.entry_price,
            exit_price=exit_price,
            quantity=position.quantity,
            pnl=pnl,
            pnl_percent=pnl_percent,
            commission=commission,
            exit_reason=reason,
            duration_seconds=(candle.timestamp - position.entry_timestamp).total_seconds(),
        )
        self._next_trade_id += 1
        self.trades.append(trade)
        self.position = None

        logger.debug(f"Closed {trade.side.value} {self.symbol} @ {exit_price:.6f} "
                     f"({reason.value}) pnl={pnl:.2f}")
        return trade

    def market_value(self, price: float) -> float:
        return self.position.market_value(price) if self.position is not None else 0.0

    def equity(self, price: float) -> float:
        """Cash plus the open position marked at price"""
        return self.cash + self.market_value(price)

    def unrealized_pnl(self, price: float) -> float:
        """Open position PnL at price, net of the entry commission already paid"""
        if self.position is None:
            return 0.0
        return self.position.unrealized_pnl(price) - self.position.entry_commission


@njit
def calculate_stop_loss_price(entry_price: float, direction: int, stop_loss_pct: float) -> float:
    """
    Calculate stop loss price with numba optimization

    Args:
        entry_price: Entry price
        direction: 1 for long, -1 for short
        stop_loss_pct: Stop loss fraction (e.g., 0.05 for 5%)

    Returns:
        Stop loss price
    """
    if direction > 0:
        return entry_price * (1.0 - stop_loss_pct)
    return entry_price * (1.0 + stop_loss_pct)


@njit
def calculate_take_profit_price(entry_price: float, direction: int, take_profit_pct: float) -> float:
    """
    Calculate take profit price with numba optimization

    Args:
        entry_price: Entry price
        direction: 1 for long, -1 for short
        take_profit_pct: Take profit fraction (e.g., 0.10 for 10%)

    Returns:
        Take profit price
    """
    if direction > 0:
        return entry_price * (1.0 + take_profit_pct)
    return entry_price * (1.0 - take_profit_pct)


@njit
def calculate_position_quantity(cash: float, size_fraction: float, price: float,
                                commission_rate: float) -> float:
    """
    Quantity for an entry of `size_fraction` of cash at price

    Capped so that notional plus entry commission never exceeds cash.

    Returns:
        Quantity, 0.0 when the price or cash is not positive
    """
    if price <= 0.0 or cash <= 0.0:
        return 0.0

    quantity = (cash * size_fraction) / price
    if quantity * price * (1.0 + commission_rate) > cash:
        quantity = cash / (price * (1.0 + commission_rate))
    return quantity


@njit
def apply_slippage(price: float, direction: int, slippage: float) -> float:
    """Worsen a market fill: buys (direction 1) fill higher, sells (-1) lower"""
    return price * (1.0 + direction * slippage)
