"""
Engine exceptions

Configuration and data problems are fatal and raised before the first candle
is replayed. Numeric degeneracies inside the loop are absorbed by the
components themselves and never surface here.
"""


class BacktestError(Exception):
    """Base class for all engine errors"""


class ConfigurationError(BacktestError, ValueError):
    """Invalid backtest configuration"""


class DataError(BacktestError, ValueError):
    """Structurally invalid candle data"""


class UnknownStrategyError(ConfigurationError, KeyError):
    """Strategy identifier is not registered"""

    def __init__(self, strategy_id: str):
        self.strategy_id = strategy_id
        super().__init__(f"Unknown strategy: {strategy_id!r}")

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]
