"""
Incremental indicator contract

Every calculator consumes exactly one candle per call, in timestamp order,
keeps a bounded rolling buffer and returns a read-only snapshot. Until the
buffer is full the snapshot is "warming up" and carries no value.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..core.models import Candle


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Read-only view of an indicator after one update"""
    name: str
    value: Optional[float] = None
    previous: Optional[float] = None  # last valid value before this update
    components: Mapping[str, float] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.value is not None

    @property
    def warming_up(self) -> bool:
        return self.value is None

    def component(self, key: str) -> Optional[float]:
        return self.components.get(key)


class Indicator(ABC):
    """Base class for incremental indicator calculators"""

    kind: str = "indicator"

    def __init__(self, period: int, name: Optional[str] = None):
        if not isinstance(period, int) or period < 1:
            raise ValueError(f"{type(self).__name__} period must be a positive integer, got {period!r}")
        self.period = period
        self.name = name or f"{self.kind}_{period}"
        self._last_value: Optional[float] = None

    @property
    def params(self) -> Dict[str, Any]:
        """Constructor arguments, used to build an identical fresh instance"""
        return {'period': self.period, 'name': self.name}

    def fresh(self) -> 'Indicator':
        """New instance with the same parameters and empty state"""
        return type(self)(**self.params)

    def update(self, candle: Candle) -> IndicatorSnapshot:
        """Consume one candle and return the new snapshot"""
        return self._update(candle)

    @abstractmethod
    def _update(self, candle: Candle) -> IndicatorSnapshot:
        ...

    def _warming_up(self) -> IndicatorSnapshot:
        return IndicatorSnapshot(name=self.name)

    def _emit(self, value: float, components: Optional[Mapping[str, float]] = None) -> IndicatorSnapshot:
        snapshot = IndicatorSnapshot(
            name=self.name,
            value=value,
            previous=self._last_value,
            components=dict(components or {}),
        )
        self._last_value = value
        return snapshot

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(f'{k}={v!r}' for k, v in self.params.items())})"


def sequential_mean(values) -> float:
    """Left-to-right mean, matching the numba batch kernels bit for bit"""
    total = 0.0
    count = 0
    for v in values:
        total += v
        count += 1
    return total / count
