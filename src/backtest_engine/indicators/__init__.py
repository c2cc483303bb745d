"""
Indicator Calculators

Incremental indicators consumed one candle at a time by the runner, plus
numba batch kernels for whole-series previews:
- SimpleMovingAverage / ExponentialMovingAverage
- RelativeStrengthIndex / MACD
- DonchianChannel
"""

from typing import Any, Dict, Type

from .base import Indicator, IndicatorSnapshot
from .moving_average import SimpleMovingAverage, ExponentialMovingAverage
from .momentum import RelativeStrengthIndex, MACD
from .channels import DonchianChannel
from .batch import (
    calculate_sma,
    calculate_ema,
    calculate_rsi,
    calculate_macd,
    calculate_donchian,
    compute_indicator_frame,
)

INDICATOR_TYPES: Dict[str, Type[Indicator]] = {
    'sma': SimpleMovingAverage,
    'ema': ExponentialMovingAverage,
    'rsi': RelativeStrengthIndex,
    'macd': MACD,
    'donchian': DonchianChannel,
}


def create_indicator(kind: str, **params: Any) -> Indicator:
    """Build an incremental indicator by kind ('sma', 'ema', 'rsi', 'macd', 'donchian')"""
    try:
        indicator_cls = INDICATOR_TYPES[kind.lower()]
    except KeyError:
        raise ValueError(f"Unknown indicator kind: {kind!r}") from None
    return indicator_cls(**params)


__all__ = [
    'Indicator',
    'IndicatorSnapshot',
    'SimpleMovingAverage',
    'ExponentialMovingAverage',
    'RelativeStrengthIndex',
    'MACD',
    'DonchianChannel',
    'INDICATOR_TYPES',
    'create_indicator',
    'calculate_sma',
    'calculate_ema',
    'calculate_rsi',
    'calculate_macd',
    'calculate_donchian',
    'compute_indicator_frame',
]
