"""
Main FastAPI application for the backtesting engine

REST interface for submitting backtests, following their progress and
retrieving results. Jobs run on a background thread pool and are kept in
memory only.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .. import __version__
from ..config import get_settings
from .backtest_api import job_manager, router as backtest_router
from .health_api import router as health_router

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Backtest Engine API {__version__} starting up")
    yield
    logger.info("Backtest Engine API shutting down, cancelling running backtests")
    job_manager.cancel_all()


app = FastAPI(
    title="Backtest Engine API",
    description="""
    Deterministic, event-driven strategy backtesting.

    * **Precise Execution**: stop loss and take profit fill at the exact protective level
    * **Pluggable Strategies**: EMA crossover, RSI mean reversion, MACD trend, Donchian breakout
    * **Progress and Cancellation**: poll running jobs, stop them at any candle
    """,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router, prefix="/health", tags=["Health"])
app.include_router(backtest_router, prefix="/backtest", tags=["Backtesting"])


@app.get("/", tags=["Root"])
async def root():
    """Welcome endpoint"""
    return {
        "message": "Backtest Engine API",
        "version": __version__,
        "status": "active",
    }


def run() -> None:
    uvicorn.run(
        "backtest_engine.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
