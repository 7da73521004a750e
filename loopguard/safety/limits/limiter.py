"""
Actuator Rate Limiter & Saturator

Bounds a proposed actuation in two stages:

    1. Slew:       previous + clip(desired - previous, -max_step, +max_step)
    2. Saturation: clip(result, lo, hi)

Rate limiting is applied first so that the absolute range is always the
last word, even when max_step comes from a mechanical constraint unrelated
to the range.
"""

import logging
from dataclasses import dataclass

import numpy as np

from ...core.config_loader import ActuatorLimitsConfig
from ...core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def limit(previous: float, desired: float, max_step: float, lo: float, hi: float) -> float:
    """Rate-limit ``desired`` relative to ``previous``, then saturate to [lo, hi]."""
    delta = float(np.clip(desired - previous, -max_step, max_step))
    return float(np.clip(previous + delta, lo, hi))


def ramp_toward(previous: float, target: float, step: float) -> float:
    """Move from ``previous`` toward ``target`` by at most ``step`` without overshoot."""
    if previous < target:
        return min(previous + step, target)
    if previous > target:
        return max(previous - step, target)
    return float(target)


@dataclass(frozen=True)
class ActuatorLimits:
    """Slew and range limits for one actuator."""
    max_step: float
    lo: float
    hi: float

    def __post_init__(self):
        if not np.isfinite(self.max_step) or self.max_step < 0:
            raise ConfigurationError(f"must be a non-negative number, got {self.max_step}", field_name="max_step")
        if self.lo > self.hi:
            raise ConfigurationError(f"lo ({self.lo}) exceeds hi ({self.hi})", field_name="limits")

    @classmethod
    def from_config(cls, config: ActuatorLimitsConfig) -> 'ActuatorLimits':
        return cls(max_step=config.max_step, lo=config.lo, hi=config.hi)

    def saturate(self, value: float) -> float:
        return float(np.clip(value, self.lo, self.hi))


class ActuatorLimiter:
    """
    Applies ActuatorLimits and keeps statistics on how often each stage bites.
    """

    def __init__(self, limits: ActuatorLimits):
        self.limits = limits

        # Statistics
        self.stats = {
            "total_limits": 0,
            "rate_limited": 0,
            "saturated": 0,
        }

    def apply(self, previous: float, desired: float, record: bool = True) -> float:
        """
        Return the bounded actuation for this tick.

        Args:
            previous: Actuation of the prior tick
            desired: Proposed actuation
            record: Update statistics (False when re-bounding the same tick)
        """
        lim = self.limits
        result = limit(previous, desired, lim.max_step, lim.lo, lim.hi)
        if not record:
            return result

        self.stats["total_limits"] += 1
        if abs(desired - previous) > lim.max_step:
            self.stats["rate_limited"] += 1

        rate_bounded = previous + float(np.clip(desired - previous, -lim.max_step, lim.max_step))
        if result != rate_bounded:
            self.stats["saturated"] += 1
            logger.debug(f"Actuation saturated: {rate_bounded:.3f} -> {result:.3f}")

        return result

    def reset(self):
        for key in self.stats:
            self.stats[key] = 0
