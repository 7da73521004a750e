"""
Core Data Types

Per-tick values (SensorVector, Verdict, TickSnapshot) and the state that
persists across ticks (ControllerState).

Lifecycle:
    SensorVector  - created by the environment each tick, read-only after
    ControllerState - created once per run, mutated only by ModeController
    Verdict       - produced by SafetyMonitor, consumed within the tick
    TickSnapshot  - read-only telemetry view handed to the caller
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple

from .errors import ConfigurationError, ViolationKind


# =============================================================================
# Sensors
# =============================================================================

@dataclass(frozen=True)
class SignalDomain:
    """Declared valid range of a sensor signal (inclusive)."""
    name: str
    min: float
    max: float
    description: str = ""

    def __post_init__(self):
        if self.min > self.max:
            raise ConfigurationError(
                f"min ({self.min}) exceeds max ({self.max})", field_name=self.name
            )

    def contains(self, value: float) -> bool:
        return math.isfinite(value) and self.min <= value <= self.max


class SensorVector(Mapping):
    """
    Immutable mapping of signal name -> float for a single tick.

    Booleans are stored as 0.0 / 1.0. Declared signals that are missing,
    non-finite or outside their domain are listed in ``out_of_domain``;
    missing ones read as NaN.
    """

    __slots__ = ("_values", "_out_of_domain")

    def __init__(self, values: Dict[str, float], out_of_domain: FrozenSet[str] = frozenset()):
        self._values = MappingProxyType(dict(values))
        self._out_of_domain = frozenset(out_of_domain)

    @classmethod
    def from_readings(
        cls,
        readings: Mapping,
        domains: Mapping = None,
    ) -> 'SensorVector':
        """Build a vector from raw readings, checking declared domains."""
        domains = domains or {}
        values: Dict[str, float] = {}
        bad = set()

        for name, raw in readings.items():
            try:
                values[name] = float(raw)
            except (TypeError, ValueError):
                values[name] = float("nan")
                bad.add(name)

        for name, domain in domains.items():
            if name not in values:
                values[name] = float("nan")
                bad.add(name)
            elif not domain.contains(values[name]):
                bad.add(name)

        return cls(values, frozenset(bad))

    @property
    def out_of_domain(self) -> FrozenSet[str]:
        return self._out_of_domain

    @property
    def in_domain(self) -> bool:
        return not self._out_of_domain

    def flag(self, name: str) -> bool:
        """Read a boolean signal (non-zero and finite means True)."""
        value = self._values.get(name, 0.0)
        return math.isfinite(value) and value != 0.0

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SensorVector({dict(self._values)!r}, out_of_domain={sorted(self._out_of_domain)})"


# =============================================================================
# Modes and controller state
# =============================================================================

@dataclass(frozen=True)
class ModeSet:
    """Which member of a system's mode enum plays each role."""
    normal: Enum
    recovery: Enum
    emergency: Enum

    def __post_init__(self):
        members = (self.normal, self.recovery, self.emergency)
        if len(set(members)) != 3:
            raise ConfigurationError("normal, recovery and emergency modes must be distinct")
        if len({type(m) for m in members}) != 1:
            raise ConfigurationError("all modes must belong to the same enum")

    @property
    def enum(self) -> type:
        return type(self.normal)


@dataclass
class ControllerState:
    """State owned by the ModeController, persisted across ticks."""
    mode: Enum
    last_actuation: float
    counters: Dict[str, int] = field(default_factory=dict)

    # Run bookkeeping
    tick: int = 0  # Current tick number, 1-based once running
    violation_count: int = 0  # Ticks with an unsafe verdict
    recovery_direction: int = 0  # +1 ramping up, -1 ramping down, 0 not yet fixed

    def counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def copy(self) -> 'ControllerState':
        return ControllerState(
            mode=self.mode,
            last_actuation=self.last_actuation,
            counters=dict(self.counters),
            tick=self.tick,
            violation_count=self.violation_count,
            recovery_direction=self.recovery_direction,
        )


# =============================================================================
# Verdicts
# =============================================================================

class EscalationPolicy(Enum):
    """What the monitor does beyond reporting an instantaneous violation."""
    REPORT = "report"  # Verdict only
    LATCH = "latch"  # Request emergency mode for the next tick
    SELF_CORRECT = "self_correct"  # Latch, and drive this tick's output toward safe


@dataclass(frozen=True)
class Violation:
    """A single invariant failure."""
    invariant_id: str
    kind: ViolationKind
    message: str = ""
    indices: Tuple[int, ...] = ()  # Window indices involved, oldest = 0


@dataclass(frozen=True)
class Verdict:
    """Result of one SafetyMonitor evaluation."""
    safe: bool
    violations: FrozenSet[str] = frozenset()
    forced_mode: Optional[Enum] = None
    details: Tuple[Violation, ...] = ()
    halt_requested: bool = False

    @classmethod
    def from_violations(
        cls,
        details,
        forced_mode: Optional[Enum] = None,
        halt_requested: bool = False,
    ) -> 'Verdict':
        details = tuple(details)
        return cls(
            safe=not details,
            violations=frozenset(v.invariant_id for v in details),
            forced_mode=forced_mode,
            details=details,
            halt_requested=halt_requested,
        )

    def of_kind(self, kind: ViolationKind) -> Tuple[Violation, ...]:
        return tuple(v for v in self.details if v.kind == kind)


@dataclass(frozen=True)
class TickSnapshot:
    """Read-only telemetry for a completed tick."""
    tick: int
    mode: Enum
    actuation: float
    verdict: Verdict
    corrected: bool = False  # Actuation replaced by self-correction

    def as_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "mode": self.mode.name,
            "actuation": self.actuation,
            "safe": self.verdict.safe,
            "violations": sorted(self.verdict.violations),
            "forced_mode": self.verdict.forced_mode.name if self.verdict.forced_mode else None,
            "halt_requested": self.verdict.halt_requested,
            "corrected": self.corrected,
        }
