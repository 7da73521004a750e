"""
Mode Control - Prioritized Normal / Recovery / Emergency switching

Selects one mode per tick from sensor predicates and computes the mode's
actuation before rate limiting.
"""

from .controller import (
    ControlLaw,
    ModeController,
)

__all__ = [
    'ControlLaw',
    'ModeController',
]
