"""
Control Loop Executor - Deterministic Tick Driver

Runs one guarded control loop tick at a time:

    readings ─► SensorVector ─► ModeController.step ─► (self-correct)
                                     ▲                       │
                                     │ forced mode           ▼
                                     │ (next tick)   SignalHistory.record
                                     │                       │
                                SafetyMonitor.evaluate ◄─────┘
                                     │
                                     ▼
                               TickSnapshot

The executor never sleeps, reads the clock or draws random numbers:
identical reading sequences yield identical snapshot sequences.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..core.errors import ConfigurationError
from ..core.types import EscalationPolicy, SensorVector, SignalDomain, TickSnapshot
from .modes import ModeController
from .runtime_monitor import SafetyMonitor, SignalHistory

logger = logging.getLogger(__name__)


class ControlLoopExecutor:
    """
    Wires a ModeController, SafetyMonitor and SignalHistory into one loop.

    Usage:
        loop = ControlLoopExecutor(controller, monitor, history, domains)

        # Per tick:
        snapshot = loop.tick(environment.read())
        if snapshot.verdict.halt_requested:
            ...  # caller decides how to stop

        # Or replay a recorded trace:
        snapshots = loop.run(trace)
    """

    def __init__(
        self,
        controller: ModeController,
        monitor: SafetyMonitor,
        history: SignalHistory,
        domains: Optional[Dict[str, SignalDomain]] = None,
        name: str = "",
    ):
        if monitor.modes != controller.modes:
            raise ConfigurationError("monitor and controller use different mode sets")

        self.controller = controller
        self.monitor = monitor
        self.history = history
        self.domains = dict(domains or {})
        self.name = name or type(controller.law).__name__

        self.monitor.bind(self.history)

        self._pending_mode: Optional[Enum] = None
        self.halted = False
        self.last_snapshot: Optional[TickSnapshot] = None

        # Statistics
        self.stats = {
            "ticks": 0,
            "unsafe_ticks": 0,
            "corrections": 0,
        }

    @property
    def state(self):
        return self.controller.state

    @property
    def pending_mode(self) -> Optional[Enum]:
        """Mode requested by the monitor for the next tick."""
        return self._pending_mode

    def sensor_vector(self, readings) -> SensorVector:
        """Check readings against the declared domains, keeping any prior flags."""
        checked = SensorVector.from_readings(readings, self.domains)
        if isinstance(readings, SensorVector) and readings.out_of_domain:
            return SensorVector(dict(checked), checked.out_of_domain | readings.out_of_domain)
        return checked

    def tick(self, readings) -> TickSnapshot:
        """
        Run one tick.

        Args:
            readings: SensorVector or mapping of signal -> value

        Returns:
            TickSnapshot for this tick
        """
        if self.halted:
            logger.warning(f"[{self.name}] tick issued after halt request")

        sensors = self.sensor_vector(readings)
        state = self.controller.state
        state.tick += 1
        self.stats["ticks"] += 1

        previous = state.last_actuation
        actuation = self.controller.step(sensors, self._pending_mode)

        self.history.record(sensors, actuation)
        verdict = self.monitor.evaluate(state, self.history, sensors, previous_actuation=previous)

        corrected = False
        if (
            self.monitor.config.escalation is EscalationPolicy.SELF_CORRECT
            and verdict.forced_mode is not None
        ):
            actuation = self.controller.self_correct(previous)
            self.history.amend_actuation(actuation)
            corrected = True
            self.stats["corrections"] += 1

        if not verdict.safe:
            state.violation_count += 1
            self.stats["unsafe_ticks"] += 1

        self._pending_mode = verdict.forced_mode

        if verdict.halt_requested and not self.halted:
            self.halted = True
            logger.error(f"[{self.name}] halt requested at tick {state.tick}")

        snapshot = TickSnapshot(
            tick=state.tick,
            mode=state.mode,
            actuation=actuation,
            verdict=verdict,
            corrected=corrected,
        )
        self.last_snapshot = snapshot
        logger.debug(f"[{self.name}] {snapshot.as_dict()}")
        return snapshot

    def run(self, stream: Iterable, max_ticks: Optional[int] = None) -> List[TickSnapshot]:
        """
        Drive ticks from an iterable of readings.

        Stops at the end of the stream, after ``max_ticks`` ticks, or on the
        first tick whose verdict requests a halt.
        """
        snapshots: List[TickSnapshot] = []
        for readings in stream:
            if max_ticks is not None and len(snapshots) >= max_ticks:
                break
            snapshot = self.tick(readings)
            snapshots.append(snapshot)
            if snapshot.verdict.halt_requested:
                break
        return snapshots

    def reset(self):
        """Return to the initial state for a fresh run."""
        self.controller.reset()
        self.monitor.reset()
        self.history.clear()
        self._pending_mode = None
        self.halted = False
        self.last_snapshot = None
        for key in self.stats:
            self.stats[key] = 0
