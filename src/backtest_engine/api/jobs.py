"""
In-memory backtest job management

Runs submitted backtests on a thread pool and keeps their status, progress
and results in memory. Nothing is persisted.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import threading
import uuid

from ..core.candles import CandleSeries
from ..core.models import BacktestProgress, BacktestResult, RunStatus
from ..core.runner import BacktestRunner

logger = logging.getLogger(__name__)

QUEUED = 'queued'
RUNNING = 'running'
COMPLETED = 'completed'
CANCELLED = 'cancelled'
FAILED = 'failed'

FINISHED_STATES = (COMPLETED, CANCELLED, FAILED)


@dataclass
class BacktestJob:
    """One submitted backtest"""
    id: str
    runner: BacktestRunner
    status: str = QUEUED
    progress: float = 0.0
    candles_processed: int = 0
    total_candles: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    message: str = "Backtest queued"
    result: Optional[BacktestResult] = None
    future: Optional[Future] = None

    @property
    def finished(self) -> bool:
        return self.status in FINISHED_STATES

    def status_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status,
            'progress': self.progress,
            'candles_processed': self.candles_processed,
            'total_candles': self.total_candles,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'message': self.message,
        }


class BacktestJobManager:
    """Thread pool backed store of backtest jobs"""

    def __init__(self, max_workers: int = 4):
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='backtest')
        self._jobs: Dict[str, BacktestJob] = {}
        self._lock = threading.Lock()

    def submit(self, runner: BacktestRunner, candles: CandleSeries, force_close: bool = False) -> BacktestJob:
        """Queue a validated runner; returns the job immediately"""
        job = BacktestJob(id=str(uuid.uuid4()), runner=runner, total_candles=len(candles))

        def on_progress(progress: BacktestProgress) -> None:
            job.progress = progress.fraction
            job.candles_processed = progress.processed

        runner.progress_callback = on_progress

        with self._lock:
            self._jobs[job.id] = job
        job.future = self.executor.submit(self._execute, job, candles, force_close)
        logger.info(f"Backtest {job.id} queued ({len(candles)} candles)")
        return job

    def _execute(self, job: BacktestJob, candles: CandleSeries, force_close: bool) -> None:
        job.status = RUNNING
        job.message = "Backtest running"
        try:
            result = job.runner.run(candles, force_close=force_close)
        except Exception as e:
            logger.exception(f"Backtest {job.id} failed")
            job.status = FAILED
            job.message = f"Backtest failed: {e}"
            job.end_time = datetime.now()
            return

        job.result = result
        job.candles_processed = result.candles_processed
        job.end_time = datetime.now()
        if result.status is RunStatus.CANCELLED:
            job.status = CANCELLED
            job.message = f"Backtest cancelled after {result.candles_processed}/{result.total_candles} candles"
        else:
            job.status = COMPLETED
            job.progress = 1.0
            job.message = "Backtest completed successfully"

    def get(self, job_id: str) -> BacktestJob:
        """Raises KeyError for unknown ids"""
        with self._lock:
            return self._jobs[job_id]

    def list(self) -> List[BacktestJob]:
        with self._lock:
            return list(self._jobs.values())

    def cancel(self, job_id: str) -> BacktestJob:
        """Ask a job to stop at the next candle boundary"""
        job = self.get(job_id)
        if not job.finished:
            job.runner.cancel()
            if job.future is not None and job.future.cancel():
                # Never started: empty partial result, nothing processed
                config = job.runner.config
                job.result = job.runner.aggregator.aggregate(
                    config,
                    [],
                    [],
                    config.initial_balance,
                    0.0,
                    status=RunStatus.CANCELLED,
                    total_candles=job.total_candles,
                )
                job.status = CANCELLED
                job.message = "Backtest cancelled before start"
                job.end_time = datetime.now()
        return job

    def delete(self, job_id: str) -> None:
        """Cancel if still running and forget the job"""
        self.cancel(job_id)
        with self._lock:
            del self._jobs[job_id]

    def cancel_all(self) -> None:
        for job in self.list():
            if not job.finished:
                self.cancel(job.id)
