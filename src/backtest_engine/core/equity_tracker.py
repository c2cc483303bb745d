"""
Equity Tracker - mark-to-market equity curve with running peak and drawdown
"""

from typing import List
import logging

import numpy as np
import pandas as pd

from .models import EquityPoint

logger = logging.getLogger(__name__)


class EquityTracker:
    """Equity curve and running drawdown tracking"""

    def __init__(self, initial_balance: float):
        self.initial_balance = initial_balance
        self.equity_curve: List[EquityPoint] = []

        self.peak_equity = initial_balance
        self.current_drawdown_percent = 0.0
        self.max_drawdown_percent = 0.0

    def record(self, timestamp: pd.Timestamp, equity: float) -> EquityPoint:
        """
        Append the equity after one candle and update peak / drawdown

        The peak is updated before the drawdown is measured, so the drawdown
        never comes from a stale peak.
        """
        point = EquityPoint(timestamp, equity)
        self.equity_curve.append(point)

        if equity > self.peak_equity:
            self.peak_equity = equity
        if self.peak_equity > 0:
            self.current_drawdown_percent = (self.peak_equity - equity) / self.peak_equity * 100.0
        else:
            self.current_drawdown_percent = 0.0
        if self.current_drawdown_percent > self.max_drawdown_percent:
            self.max_drawdown_percent = self.current_drawdown_percent

        return point

    def __len__(self) -> int:
        return len(self.equity_curve)

    def drawdown_series(self) -> pd.Series:
        """Per-candle drawdown percent from the running peak"""
        if not self.equity_curve:
            return pd.Series(dtype=float, name='drawdown_percent')
        equity = np.array([point.equity for point in self.equity_curve], dtype=float)
        peaks = np.maximum.accumulate(np.concatenate(([self.initial_balance], equity)))[1:]
        drawdown = np.where(peaks > 0, (peaks - equity) / np.where(peaks > 0, peaks, 1.0) * 100.0, 0.0)
        return pd.Series(
            drawdown,
            index=pd.DatetimeIndex([point.timestamp for point in self.equity_curve], name='timestamp'),
            name='drawdown_percent',
        )
