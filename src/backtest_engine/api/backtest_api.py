"""
Backtesting API endpoints

Provides REST API access to the engine: submit backtests, follow their
progress, fetch or cancel them, and list strategies. Configuration and
candle data are validated before a job is queued.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
import numpy as np

from ..config import get_settings
from ..core.candles import CandleSeries
from ..core.models import BacktestConfig, Candle
from ..core.runner import BacktestRunner
from ..errors import BacktestError
from ..indicators import compute_indicator_frame
from ..strategies import available_strategies
from .jobs import FAILED, BacktestJobManager

router = APIRouter()

# In-memory job store, shared by all requests
job_manager = BacktestJobManager(max_workers=get_settings().max_workers)


class CandleData(BaseModel):
    """OHLCV candle"""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class BacktestRequest(BaseModel):
    """Backtest request model; percent fields are in percent units"""
    symbol: str
    timeframe: str
    start_time: datetime
    end_time: datetime
    strategy_id: str
    strategy_params: Dict[str, Any] = Field(default_factory=dict)
    initial_balance: Optional[float] = None
    position_size_percent: float = 10.0
    stop_loss_percent: Optional[float] = None
    take_profit_percent: Optional[float] = None
    commission_percent: float = 0.0
    slippage_percent: float = 0.0
    warmup_bars: int = 0
    max_drawdown_limit_percent: Optional[float] = None
    force_close: bool = False
    candles: List[CandleData]

    def to_config(self) -> BacktestConfig:
        initial_balance = self.initial_balance
        if initial_balance is None:
            initial_balance = get_settings().default_initial_balance
        return BacktestConfig(
            symbol=self.symbol,
            timeframe=self.timeframe,
            start_time=self.start_time,
            end_time=self.end_time,
            initial_balance=initial_balance,
            strategy_id=self.strategy_id,
            position_size_percent=self.position_size_percent,
            stop_loss_percent=self.stop_loss_percent,
            take_profit_percent=self.take_profit_percent,
            strategy_params=self.strategy_params,
            commission_percent=self.commission_percent,
            slippage_percent=self.slippage_percent,
            warmup_bars=self.warmup_bars,
            max_drawdown_limit_percent=self.max_drawdown_limit_percent,
        )

    def to_series(self) -> CandleSeries:
        return CandleSeries(
            [Candle(c.timestamp, c.open, c.high, c.low, c.close, c.volume) for c in self.candles],
            symbol=self.symbol,
            timeframe=self.timeframe,
        )


class BacktestStatus(BaseModel):
    """Backtest status model"""
    id: str
    status: str  # 'queued', 'running', 'completed', 'cancelled', 'failed'
    progress: float = 0.0
    candles_processed: int = 0
    total_candles: int = 0
    start_time: datetime
    end_time: Optional[datetime] = None
    message: str = ""


class IndicatorRequest(BaseModel):
    """Batch indicator preview request"""
    candles: List[CandleData]
    indicators: Dict[str, Dict[str, Any]]


def _get_job(backtest_id: str):
    try:
        return job_manager.get(backtest_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Backtest not found") from None


@router.post("/run", response_model=Dict[str, str])
async def run_backtest(request: BacktestRequest):
    """
    Start a new backtest

    Validates the configuration and candles, then runs the backtest on a
    background thread. Returns immediately with a backtest ID for status
    tracking.
    """
    try:
        runner = BacktestRunner(request.to_config())
        candles = request.to_series()
    except BacktestError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    job = job_manager.submit(runner, candles, force_close=request.force_close)
    return {
        'backtest_id': job.id,
        'status': 'started',
        'message': 'Backtest started successfully',
    }


@router.get("/status/{backtest_id}", response_model=BacktestStatus)
async def get_backtest_status(backtest_id: str):
    """Get the status of a running or finished backtest"""
    return BacktestStatus(**_get_job(backtest_id).status_dict())


@router.get("/result/{backtest_id}")
async def get_backtest_result(backtest_id: str):
    """Get the complete result of a finished (or cancelled) backtest"""
    job = _get_job(backtest_id)
    if not job.finished:
        raise HTTPException(status_code=202, detail="Backtest still running")
    if job.status == FAILED or job.result is None:
        raise HTTPException(status_code=500, detail=job.message)

    result = job.result.to_dict()
    result['id'] = job.id
    result['config'] = job.runner.config.to_dict()
    return result


@router.post("/cancel/{backtest_id}", response_model=BacktestStatus)
async def cancel_backtest(backtest_id: str):
    """Request cancellation; the run stops at the next candle boundary"""
    _get_job(backtest_id)
    return BacktestStatus(**job_manager.cancel(backtest_id).status_dict())


@router.get("/list")
async def list_backtests():
    """List all backtests with their status"""
    jobs = job_manager.list()
    return {
        'total_backtests': len(jobs),
        'backtests': [
            {
                'id': job.id,
                'status': job.status,
                'start_time': job.start_time,
                'progress': job.progress,
            }
            for job in jobs
        ],
    }


@router.delete("/{backtest_id}")
async def delete_backtest(backtest_id: str):
    """Delete a backtest and its results"""
    _get_job(backtest_id)
    job_manager.delete(backtest_id)
    return {'message': f'Backtest {backtest_id} deleted successfully'}


@router.get("/strategies")
async def list_available_strategies():
    """List registered strategies with their default parameters"""
    return {'strategies': available_strategies()}


@router.post("/indicators")
async def preview_indicators(request: IndicatorRequest):
    """
    Compute indicator series for charting

    Each entry of `indicators` is {'kind': 'sma'|'ema'|'rsi'|'macd'|'donchian', ...params}.
    Warm-up values are returned as null.
    """
    try:
        candles = CandleSeries(
            [Candle(c.timestamp, c.open, c.high, c.low, c.close, c.volume) for c in request.candles]
        )
        frame = compute_indicator_frame(candles, request.indicators)
    except (BacktestError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    columns = {}
    for column in frame.columns:
        values = frame[column].to_numpy(dtype=float)
        columns[column] = [None if np.isnan(v) else float(v) for v in values]

    return {
        'timestamps': [ts.isoformat() for ts in frame.index],
        'indicators': columns,
    }
