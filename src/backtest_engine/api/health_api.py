"""
Health check API endpoints

Provides system status and version information for the backtest service.
"""

from datetime import datetime
from typing import Any, Dict
import sys
import time

from fastapi import APIRouter
from pydantic import BaseModel
import psutil

from .. import __version__
from ..strategies import available_strategies

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model"""
    status: str
    timestamp: datetime
    uptime_seconds: float
    version: str
    system_info: Dict[str, Any]
    engine_status: Dict[str, Any]


# Track startup time
startup_time = time.time()


@router.get("/", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint

    Returns system status, uptime and the registered strategies.
    """
    memory = psutil.virtual_memory()
    system_info = {
        "cpu_percent": psutil.cpu_percent(interval=None),
        "memory_percent": memory.percent,
        "memory_available_gb": memory.available / (1024**3),
        "python_version": sys.version,
        "platform": sys.platform,
    }

    engine_status = {
        "strategies": [strategy['id'] for strategy in available_strategies()],
    }

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(),
        uptime_seconds=time.time() - startup_time,
        version=__version__,
        system_info=system_info,
        engine_status=engine_status,
    )


@router.get("/status")
async def simple_status():
    """Simple status check"""
    return {
        "status": "healthy",
        "message": "Backtest Engine API is running",
        "timestamp": datetime.now(),
    }
