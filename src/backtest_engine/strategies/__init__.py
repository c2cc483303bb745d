"""
Strategies

Pluggable strategy evaluators selected by identifier. Importing this package
registers the built-in strategies.
"""

from .base import HOLD, Signal, Strategy, crossed_above, crossed_below
from .registry import (
    available_strategies,
    create_strategy,
    get_strategy_class,
    register_strategy,
    unregister_strategy,
)
from .concrete_strategies import (
    DonchianBreakoutStrategy,
    EMACrossoverStrategy,
    MACDTrendStrategy,
    RSIMeanReversionStrategy,
)

__all__ = [
    'HOLD',
    'Signal',
    'Strategy',
    'crossed_above',
    'crossed_below',
    'available_strategies',
    'create_strategy',
    'get_strategy_class',
    'register_strategy',
    'unregister_strategy',
    'DonchianBreakoutStrategy',
    'EMACrossoverStrategy',
    'MACDTrendStrategy',
    'RSIMeanReversionStrategy',
]
