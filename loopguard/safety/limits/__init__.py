"""
Actuator Limits - Slew Rate Limiting and Saturation

Bounds each tick's commanded actuation by a maximum step and an absolute range.
"""

from .limiter import (
    limit,
    ramp_toward,
    ActuatorLimits,
    ActuatorLimiter,
)

__all__ = [
    'limit',
    'ramp_toward',
    'ActuatorLimits',
    'ActuatorLimiter',
]
