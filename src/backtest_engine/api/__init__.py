"""
API endpoints for the backtesting engine

This module provides FastAPI endpoints for:
- Running, monitoring and cancelling backtests
- Listing strategies and previewing indicators
- Health checks
"""

from .backtest_api import router as backtest_router
from .health_api import router as health_router

__all__ = ['backtest_router', 'health_router']
