"""
Safety Invariants

Each invariant inspects a CheckContext and returns the violations it found
(empty list = satisfied).

Instantaneous (current tick only):
- DomainInvariant:         every sensor within its declared range
- InstantaneousInvariant:  boolean predicate over sensors and actuation

Windowed (history):
- SustainedConditionInvariant: condition held K consecutive ticks => requirement
- MonotonicTrendInvariant:     full-window trend => requirement
- ContiguousSegmentInvariant:  inside each run where A > threshold,
                               B ordered between adjacent indices
- WindowedPredicateInvariant:  arbitrary predicate over the windows
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from ...core.errors import ConfigurationError, ViolationKind
from ...core.types import ControllerState, ModeSet, SensorVector, Violation
from .history import Direction, HistoryWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckContext:
    """Everything an invariant may look at for one tick."""
    sensors: SensorVector
    state: ControllerState
    history: Mapping
    modes: ModeSet
    previous_actuation: float

    @property
    def actuation(self) -> float:
        return self.state.last_actuation

    @property
    def mode(self) -> Enum:
        return self.state.mode

    def flag(self, name: str) -> bool:
        return self.sensors.flag(name)

    def window(self, name: str) -> HistoryWindow:
        return self.history[name]

    def __getitem__(self, name: str) -> float:
        return self.sensors[name]


Predicate = Callable[[CheckContext], bool]


class Invariant(ABC):
    """Abstract base class for safety invariants."""

    kind: ViolationKind = ViolationKind.INSTANTANEOUS

    def __init__(self, invariant_id: str, description: str = ""):
        self.invariant_id = invariant_id
        self.description = description

    @abstractmethod
    def check(self, ctx: CheckContext) -> List[Violation]:
        """Evaluate against the current tick."""
        pass

    def required_signals(self) -> Tuple[str, ...]:
        """History windows this invariant reads."""
        return ()

    def bind(self, history: Mapping):
        """Validate against the history the monitor will supply."""
        missing = [s for s in self.required_signals() if s not in history]
        if missing:
            raise ConfigurationError(
                f"no history window for {', '.join(missing)}", field_name=self.invariant_id
            )

    def reset(self):
        """Clear any cross-tick state."""
        pass

    def _violation(self, message: str = "", indices: Iterable[int] = ()) -> Violation:
        return Violation(
            invariant_id=self.invariant_id,
            kind=self.kind,
            message=message or self.description,
            indices=tuple(indices),
        )


class DomainInvariant(Invariant):
    """Reports each out-of-domain signal as ``domain:<signal>``."""

    kind = ViolationKind.DOMAIN

    def __init__(self):
        super().__init__("domain", "sensor value outside declared domain")

    def check(self, ctx: CheckContext) -> List[Violation]:
        return [
            Violation(
                invariant_id=f"domain:{name}",
                kind=self.kind,
                message=f"{name}={ctx.sensors.get(name)} outside declared domain",
            )
            for name in sorted(ctx.sensors.out_of_domain)
        ]


class InstantaneousInvariant(Invariant):
    """Predicate over the current tick that must always hold."""

    kind = ViolationKind.INSTANTANEOUS

    def __init__(self, invariant_id: str, predicate: Predicate, description: str = ""):
        super().__init__(invariant_id, description)
        self.predicate = predicate

    def check(self, ctx: CheckContext) -> List[Violation]:
        if self.predicate(ctx):
            return []
        return [self._violation()]


class WindowedPredicateInvariant(InstantaneousInvariant):
    """Predicate that reads history windows; evaluated with the windowed class."""

    kind = ViolationKind.WINDOWED

    def __init__(
        self,
        invariant_id: str,
        predicate: Predicate,
        signals: Iterable[str],
        description: str = "",
    ):
        super().__init__(invariant_id, predicate, description)
        self.signals = tuple(signals)

    def required_signals(self) -> Tuple[str, ...]:
        return self.signals


class SustainedConditionInvariant(Invariant):
    """
    If ``condition`` has held for the last ``duration`` consecutive ticks,
    ``requirement`` must hold.

    The consecutive-tick counter resets to 0 on the first tick the condition
    is false.
    """

    kind = ViolationKind.WINDOWED

    def __init__(
        self,
        invariant_id: str,
        condition: Predicate,
        duration: int,
        requirement: Predicate,
        description: str = "",
    ):
        super().__init__(invariant_id, description)
        if duration < 1:
            raise ConfigurationError(f"duration must be at least 1, got {duration}", field_name=invariant_id)
        self.condition = condition
        self.duration = duration
        self.requirement = requirement
        self.counter = 0

    def check(self, ctx: CheckContext) -> List[Violation]:
        if self.condition(ctx):
            self.counter += 1
        else:
            self.counter = 0

        if self.counter >= self.duration and not self.requirement(ctx):
            return [self._violation(
                f"{self.description or self.invariant_id} (condition held {self.counter} ticks)"
            )]
        return []

    def reset(self):
        self.counter = 0


class MonotonicTrendInvariant(Invariant):
    """
    If ``signal`` follows ``direction`` across its full window (and the
    optional guard holds), ``requirement`` must hold.
    """

    kind = ViolationKind.WINDOWED

    def __init__(
        self,
        invariant_id: str,
        signal: str,
        direction: Direction,
        requirement: Predicate,
        guard: Optional[Predicate] = None,
        description: str = "",
    ):
        super().__init__(invariant_id, description)
        self.signal = signal
        self.direction = direction
        self.requirement = requirement
        self.guard = guard

    def required_signals(self) -> Tuple[str, ...]:
        return (self.signal,)

    def check(self, ctx: CheckContext) -> List[Violation]:
        window = ctx.window(self.signal)
        if not window.is_monotonic(self.direction):
            return []
        if self.guard is not None and not self.guard(ctx):
            return []
        if self.requirement(ctx):
            return []
        return [self._violation(
            f"{self.signal} {self.direction.value} over window {window.as_sequence().tolist()}",
            indices=range(len(window)),
        )]


class ContiguousSegmentInvariant(Invariant):
    """
    Within every maximal run where ``gate_signal`` > ``threshold``,
    ``tracked_signal`` must follow ``direction`` between adjacent indices.

    Pairs straddling the edge of a run are never compared; each offending
    pair inside a run is reported separately with its indices.
    """

    kind = ViolationKind.WINDOWED

    def __init__(
        self,
        invariant_id: str,
        gate_signal: str,
        threshold: float,
        tracked_signal: str,
        direction: Direction = Direction.NON_INCREASING,
        description: str = "",
    ):
        super().__init__(invariant_id, description)
        self.gate_signal = gate_signal
        self.threshold = threshold
        self.tracked_signal = tracked_signal
        self.direction = direction

    def required_signals(self) -> Tuple[str, ...]:
        return (self.gate_signal, self.tracked_signal)

    def bind(self, history: Mapping):
        super().bind(history)
        gate_cap = history[self.gate_signal].capacity
        tracked_cap = history[self.tracked_signal].capacity
        if gate_cap != tracked_cap:
            raise ConfigurationError(
                f"windows '{self.gate_signal}' ({gate_cap}) and "
                f"'{self.tracked_signal}' ({tracked_cap}) must have equal capacity",
                field_name=self.invariant_id,
            )

    def offending_pairs(self, gate: HistoryWindow, tracked: HistoryWindow) -> List[Tuple[int, int]]:
        values = tracked.as_sequence()
        pairs = []
        for start, end in gate.contiguous_segments_above(self.threshold):
            if end >= len(values):
                end = len(values) - 1
            if end <= start:
                continue
            idx = np.arange(start, end)
            ok = self.direction.holds(values[idx], values[idx + 1])
            pairs.extend((int(k), int(k) + 1) for k in idx[~ok])
        return pairs

    def check(self, ctx: CheckContext) -> List[Violation]:
        gate = ctx.window(self.gate_signal)
        tracked = ctx.window(self.tracked_signal)
        values = tracked.as_sequence()
        return [
            self._violation(
                f"{self.tracked_signal} {values[i]:.3f} -> {values[j]:.3f} not "
                f"{self.direction.value} while {self.gate_signal} > {self.threshold}",
                indices=(i, j),
            )
            for i, j in self.offending_pairs(gate, tracked)
        ]
