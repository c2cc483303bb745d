"""
Risk management - protective exits and entry gating
"""

from .risk_controller import RiskController, RiskExit, RiskLimits, levels_breached

__all__ = [
    'RiskController',
    'RiskExit',
    'RiskLimits',
    'levels_breached',
]
