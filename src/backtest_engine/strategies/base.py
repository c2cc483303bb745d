"""
Strategy Evaluator contract

A strategy declares the indicators it needs and turns the latest indicator
snapshots into an entry/exit intent. Evaluation is a pure function of the
candle, the snapshots and the current position: all rolling state lives in
the indicator calculators, which the runner owns.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Mapping, NamedTuple, Optional
import logging

from ..core.models import Candle, Position, Side
from ..errors import ConfigurationError
from ..indicators.base import Indicator, IndicatorSnapshot

logger = logging.getLogger(__name__)


class Signal(NamedTuple):
    """Entry / exit intent for one candle"""
    enter: bool = False
    exit: bool = False
    side: Side = Side.LONG


HOLD = Signal()


class Strategy(ABC):
    """
    Base class for backtest strategies

    Subclasses set `strategy_id`, `description` and `default_params`, and
    implement `create_indicators` and `evaluate`. Parameters passed to the
    constructor are merged over the defaults and checked by `validate_params`.
    """

    strategy_id: ClassVar[str] = ""
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    default_params: ClassVar[Dict[str, Any]] = {}

    def __init__(self, params: Optional[Mapping[str, Any]] = None):
        params = dict(params or {})
        unknown = sorted(set(params) - set(self.default_params))
        if unknown:
            raise ConfigurationError(
                f"Unknown parameter(s) for strategy {self.strategy_id!r}: {', '.join(unknown)}"
            )

        merged = dict(self.default_params)
        merged.update(params)
        self.params: Dict[str, Any] = self._coerce(merged)
        self.validate_params()

    def _coerce(self, params: Dict[str, Any]) -> Dict[str, Any]:
        # Values take the type of their default so '12' or 12.0 become 12
        coerced = {}
        for key, value in params.items():
            default = self.default_params[key]
            try:
                if isinstance(default, bool):
                    if isinstance(value, str):
                        value = value.strip().lower() in ('1', 'true', 'yes', 'on')
                    else:
                        value = bool(value)
                elif isinstance(default, int):
                    if float(value) != int(float(value)):
                        raise ValueError(f"expected an integer, got {value!r}")
                    value = int(float(value))
                elif isinstance(default, float):
                    value = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid value for {self.strategy_id}.{key}: {e}"
                ) from e
            coerced[key] = value
        return coerced

    def validate_params(self) -> None:
        """Raise ConfigurationError for out-of-range parameters"""
        for key, value in self.params.items():
            if key.endswith('period') and value < 1:
                raise ConfigurationError(f"{self.strategy_id}.{key} must be >= 1, got {value}")

    @property
    def warmup_period(self) -> int:
        """Candles needed before every indicator is ready"""
        periods = [indicator.period for indicator in self.create_indicators().values()]
        return max(periods) if periods else 0

    @abstractmethod
    def create_indicators(self) -> Dict[str, Indicator]:
        """Fresh indicator calculators keyed by the name `evaluate` reads"""

    @abstractmethod
    def evaluate(self, candle: Candle, indicators: Mapping[str, IndicatorSnapshot],
                 position: Optional[Position]) -> Signal:
        """
        Decide the intent for this candle

        Args:
            candle: Current candle
            indicators: Latest snapshot of every indicator from create_indicators
            position: Open position, or None when flat

        Returns:
            Signal; HOLD when nothing should happen
        """

    def describe(self) -> Dict[str, Any]:
        return {
            'id': self.strategy_id,
            'name': self.name or self.strategy_id,
            'description': self.description,
            'parameters': dict(self.params),
        }

    def __repr__(self) -> str:
        params = ', '.join(f"{k}={v!r}" for k, v in self.params.items())
        return f"{type(self).__name__}({params})"


def crossed_above(current: Optional[float], current_ref: Optional[float],
                  previous: Optional[float], previous_ref: Optional[float]) -> bool:
    """True when current > current_ref and the previous pair was not above.

    A missing previous value counts as not above, so the first ready value
    already above the reference is a crossover.
    """
    if current is None or current_ref is None or current <= current_ref:
        return False
    was_above = previous is not None and previous_ref is not None and previous > previous_ref
    return not was_above


def crossed_below(current: Optional[float], current_ref: Optional[float],
                  previous: Optional[float], previous_ref: Optional[float]) -> bool:
    """Mirror of crossed_above"""
    if current is None or current_ref is None or current >= current_ref:
        return False
    was_below = previous is not None and previous_ref is not None and previous < previous_ref
    return not was_below
