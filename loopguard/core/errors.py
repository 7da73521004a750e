"""
loopguard Error Taxonomy

Error Handling Philosophy:
=========================
1. A tick NEVER raises - sensor faults become hard triggers, invariant
   failures become verdict entries
2. Configuration errors are fatal and surface before the first tick
3. Catastrophic physical limits request a halt; the caller decides what
   halting means

Classification:
==============
    Domain violation     -> fail-safe actuation + instantaneous violation
    Invariant violation  -> verdict + running violation counter
    Catastrophic limit   -> verdict.halt_requested
    Configuration error  -> ConfigurationError at construction
"""

from enum import Enum


class ViolationKind(Enum):
    """Where in the evaluation order a violation was detected."""
    DOMAIN = "domain"                # Sensor value outside its declared range
    INSTANTANEOUS = "instantaneous"  # Single-tick predicate
    WINDOWED = "windowed"            # Predicate over a history window
    CATASTROPHIC = "catastrophic"    # Absolute physical limit crossed


class LoopGuardError(Exception):
    """Base class for all loopguard errors."""


class ConfigurationError(LoopGuardError, ValueError):
    """Invalid configuration detected at construction time."""

    def __init__(self, message: str, field_name: str = ""):
        self.field_name = field_name
        if field_name:
            message = f"{field_name}: {message}"
        super().__init__(message)


class UnknownSystemError(ConfigurationError):
    """Requested reference system is not registered."""

    def __init__(self, name: str, available=()):
        self.name = name
        self.available = tuple(sorted(available))
        super().__init__(
            f"unknown system '{name}' (available: {', '.join(self.available) or 'none'})"
        )
