"""
Safety Monitor for Instantaneous and Windowed Invariants

Evaluates every registered invariant once per tick and produces a Verdict.

Evaluation order:
1. Instantaneous (domain checks, single-tick predicates)
2. Windowed (sustained counters, monotonic trends, contiguous segments)
3. Catastrophic halt conditions

Instantaneous checks always run first so a windowed check can never mask a
value that is already out of bounds.

Escalation:
- REPORT:       verdict only
- LATCH:        instantaneous violation => forced emergency mode next tick
- SELF_CORRECT: as LATCH; the executor also drives this tick's output safe
"""

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional

from ...core.errors import ViolationKind
from ...core.types import ControllerState, EscalationPolicy, ModeSet, SensorVector, Verdict, Violation
from .history import Direction
from .invariants import (
    CheckContext,
    ContiguousSegmentInvariant,
    DomainInvariant,
    InstantaneousInvariant,
    Invariant,
    MonotonicTrendInvariant,
    Predicate,
    SustainedConditionInvariant,
)

logger = logging.getLogger(__name__)


@dataclass
class MonitorConfig:
    """Configuration for SafetyMonitor."""
    escalation: EscalationPolicy = EscalationPolicy.REPORT
    check_domains: bool = True  # Report out-of-domain sensors


@dataclass
class HaltCondition:
    """Absolute physical limit; when crossed the caller is asked to halt."""
    reason: str
    predicate: Predicate


class SafetyMonitor:
    """
    Runtime monitor for one control loop.

    Owns the invariants (and their cross-tick counters). Never mutates
    sensor or controller data; its only feedback path is the forced-mode
    request carried by the Verdict.
    """

    def __init__(self, modes: ModeSet, config: Optional[MonitorConfig] = None):
        self.modes = modes
        self.config = config or MonitorConfig()

        self.instantaneous: List[Invariant] = []
        self.windowed: List[Invariant] = []
        self.halt_conditions: List[HaltCondition] = []

        if self.config.check_domains:
            self.instantaneous.append(DomainInvariant())

        # Stats
        self.stats = {
            "checks_performed": 0,
            "violations_detected": 0,
            "escalations": 0,
            "halt_requests": 0,
        }

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_invariant(self, invariant: Invariant) -> Invariant:
        """Register an invariant in the class matching its kind."""
        if invariant.kind == ViolationKind.WINDOWED:
            self.windowed.append(invariant)
        else:
            self.instantaneous.append(invariant)
        return invariant

    def add_always(self, invariant_id: str, predicate: Predicate, description: str = "") -> Invariant:
        """Add an instantaneous invariant: predicate must hold every tick."""
        return self.add_invariant(InstantaneousInvariant(invariant_id, predicate, description))

    def add_sustained(
        self,
        invariant_id: str,
        condition: Predicate,
        duration: int,
        requirement: Predicate,
        description: str = "",
    ) -> Invariant:
        """
        Add a sustained-condition invariant.

        Example: if air detected for 2 ticks, then pump stopped
        """
        return self.add_invariant(
            SustainedConditionInvariant(invariant_id, condition, duration, requirement, description)
        )

    def add_trend(
        self,
        invariant_id: str,
        signal: str,
        direction: Direction,
        requirement: Predicate,
        guard: Optional[Predicate] = None,
        description: str = "",
    ) -> Invariant:
        """Add a monotonic-trend invariant over ``signal``'s full window."""
        return self.add_invariant(
            MonotonicTrendInvariant(invariant_id, signal, direction, requirement, guard, description)
        )

    def add_segment(
        self,
        invariant_id: str,
        gate_signal: str,
        threshold: float,
        tracked_signal: str,
        direction: Direction = Direction.NON_INCREASING,
        description: str = "",
    ) -> Invariant:
        """Add a contiguous-segment invariant."""
        return self.add_invariant(
            ContiguousSegmentInvariant(invariant_id, gate_signal, threshold, tracked_signal, direction, description)
        )

    def halt_when(self, reason: str, predicate: Predicate):
        """Request a halt whenever ``predicate`` holds."""
        self.halt_conditions.append(HaltCondition(reason, predicate))

    def bind(self, history: Mapping):
        """Check every invariant has the history windows it needs."""
        for invariant in self.instantaneous + self.windowed:
            invariant.bind(history)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        state: ControllerState,
        history: Mapping,
        sensors: SensorVector,
        previous_actuation: Optional[float] = None,
    ) -> Verdict:
        """
        Evaluate all invariants for the tick just computed.

        Args:
            state: Controller state after this tick's step
            history: Signal windows, already containing this tick
            sensors: This tick's sensor vector
            previous_actuation: Actuation of the prior tick (defaults to current)

        Returns:
            Verdict for this tick
        """
        self.stats["checks_performed"] += 1
        if previous_actuation is None:
            previous_actuation = state.last_actuation

        ctx = CheckContext(
            sensors=sensors,
            state=state,
            history=history,
            modes=self.modes,
            previous_actuation=previous_actuation,
        )

        instant: List[Violation] = []
        for invariant in self.instantaneous:
            instant.extend(invariant.check(ctx))

        windowed: List[Violation] = []
        for invariant in self.windowed:
            windowed.extend(invariant.check(ctx))

        catastrophic = [
            Violation(f"halt:{cond.reason}", ViolationKind.CATASTROPHIC, cond.reason)
            for cond in self.halt_conditions
            if cond.predicate(ctx)
        ]

        forced_mode = None
        if instant and self.config.escalation in (EscalationPolicy.LATCH, EscalationPolicy.SELF_CORRECT):
            forced_mode = self.modes.emergency
            self.stats["escalations"] += 1

        details = instant + windowed + catastrophic
        verdict = Verdict.from_violations(
            details,
            forced_mode=forced_mode,
            halt_requested=bool(catastrophic),
        )

        if details:
            self.stats["violations_detected"] += 1
            logger.warning(
                f"Tick {state.tick}: invariant violations {sorted(verdict.violations)}"
            )
        if catastrophic:
            self.stats["halt_requests"] += 1
            logger.error(f"Tick {state.tick}: halt requested ({', '.join(c.message for c in catastrophic)})")

        return verdict

    def reset(self):
        """Reset cross-tick invariant state."""
        for invariant in self.instantaneous + self.windowed:
            invariant.reset()
