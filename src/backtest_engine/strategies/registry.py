"""
Strategy registry

Strategies are looked up by identifier, so new variants only need the
`register_strategy` decorator and never touch the runner.
"""

from typing import Any, Dict, List, Mapping, Optional, Type
import logging

from ..errors import UnknownStrategyError
from .base import Strategy

logger = logging.getLogger(__name__)

_REGISTRY: Dict[str, Type[Strategy]] = {}


def register_strategy(strategy_cls: Type[Strategy]) -> Type[Strategy]:
    """Class decorator adding a strategy under its `strategy_id`"""
    strategy_id = strategy_cls.strategy_id
    if not strategy_id:
        raise ValueError(f"{strategy_cls.__name__} has no strategy_id")
    existing = _REGISTRY.get(strategy_id)
    if existing is not None and existing is not strategy_cls:
        logger.warning(f"Strategy {strategy_id!r} re-registered: {existing.__name__} -> {strategy_cls.__name__}")
    _REGISTRY[strategy_id] = strategy_cls
    return strategy_cls


def unregister_strategy(strategy_id: str) -> None:
    _REGISTRY.pop(strategy_id, None)


def get_strategy_class(strategy_id: str) -> Type[Strategy]:
    try:
        return _REGISTRY[strategy_id]
    except KeyError:
        raise UnknownStrategyError(strategy_id) from None


def create_strategy(strategy_id: str, params: Optional[Mapping[str, Any]] = None) -> Strategy:
    """Instantiate a registered strategy with validated parameters"""
    return get_strategy_class(strategy_id)(params)


def available_strategies() -> List[Dict[str, Any]]:
    """Id, name, description and default parameters of every registered strategy"""
    return [
        {
            'id': strategy_id,
            'name': strategy_cls.name or strategy_id,
            'description': strategy_cls.description,
            'default_params': dict(strategy_cls.default_params),
        }
        for strategy_id, strategy_cls in sorted(_REGISTRY.items())
    ]
