"""
Mode Controller - Prioritized Normal / Recovery / Emergency State Machine

Each tick is split into two auditable phases:

    1. next_mode():  select the mode, in strict priority order
         a. hard trigger (or out-of-domain sensor)  -> EMERGENCY
         b. monitor requested emergency             -> EMERGENCY
         c. EMERGENCY and trigger cleared           -> RECOVERY (never NORMAL)
         d. RECOVERY and recovery complete          -> NORMAL
         e. otherwise                               -> unchanged

    2. desired_actuation(): compute the output for the selected mode
         EMERGENCY -> fixed safe actuation
         RECOVERY  -> ramp toward the recovery target, never away from it
         NORMAL    -> live feedback from the system's control law

The desired value is then bounded by the ActuatorLimiter.

    ┌──────────┐  trigger   ┌───────────┐  cleared  ┌──────────┐
    │  NORMAL  │──────────► │ EMERGENCY │─────────► │ RECOVERY │
    └──────────┘            └───────────┘           └──────────┘
         ▲                        ▲      trigger         │
         │                        └──────────────────────┤
         └────────────────── complete ───────────────────┘
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional

from ...core.config_loader import SystemConfig
from ...core.errors import ConfigurationError
from ...core.types import ControllerState, ModeSet, SensorVector
from ..limits import ActuatorLimiter, ActuatorLimits, ramp_toward

logger = logging.getLogger(__name__)


class ControlLaw(ABC):
    """
    System-specific behaviour plugged into the ModeController.

    Subclasses must supply ``modes``, ``safe_actuation``, ``hard_trigger``
    and ``normal_actuation``; the remaining hooks have neutral defaults.
    """

    modes: ModeSet
    safe_actuation: float

    def __init__(self, config: SystemConfig):
        self.config = config
        self.limits = ActuatorLimits.from_config(config.limits)
        # Default recovery ramp moves as fast as the actuator allows
        self.recovery_step = self.limits.max_step

    def initial_counters(self) -> Dict[str, int]:
        return {}

    def observe(self, sensors: SensorVector, counters: Dict[str, int]):
        """Pre-transition bookkeeping (e.g. alarm confirmation counters)."""
        pass

    @abstractmethod
    def hard_trigger(self, sensors: SensorVector, counters: Dict[str, int]) -> bool:
        """Condition that unconditionally forces the emergency mode."""
        pass

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        """Exit condition for the recovery mode."""
        return True

    def on_transition(self, old: Enum, new: Enum, counters: Dict[str, int]):
        pass

    def recovery_target(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.safe_actuation

    def update_recovery(self, counters: Dict[str, int]):
        """Per-tick counter update while in recovery."""
        pass

    @abstractmethod
    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        """Desired actuation from live feedback."""
        pass


class ModeController:
    """
    Owns ControllerState and advances it exactly once per tick.

    No method raises during a tick; out-of-domain sensors are treated as a
    hard trigger.
    """

    def __init__(
        self,
        law: ControlLaw,
        limiter: Optional[ActuatorLimiter] = None,
        initial_mode: Optional[Enum] = None,
        initial_actuation: Optional[float] = None,
    ):
        self.law = law
        self.modes = law.modes
        self.limiter = limiter or ActuatorLimiter(law.limits)

        self._initial_mode = initial_mode if initial_mode is not None else self.modes.normal
        if not isinstance(self._initial_mode, self.modes.enum):
            raise ConfigurationError(
                f"initial mode {self._initial_mode!r} is not a {self.modes.enum.__name__}",
                field_name="initial_mode",
            )

        self._initial_actuation = (
            initial_actuation if initial_actuation is not None else law.config.limits.initial
        )
        lim = self.limiter.limits
        if not lim.lo <= self._initial_actuation <= lim.hi:
            raise ConfigurationError(
                f"{self._initial_actuation} outside [{lim.lo}, {lim.hi}]",
                field_name="initial_actuation",
            )

        self.state = self._fresh_state()

        # Statistics
        self.stats = {
            "total_steps": 0,
            "transitions": 0,
            "emergency_entries": 0,
            "forced_entries": 0,
        }

    def _fresh_state(self) -> ControllerState:
        return ControllerState(
            mode=self._initial_mode,
            last_actuation=float(self._initial_actuation),
            counters=dict(self.law.initial_counters()),
        )

    # -------------------------------------------------------------------------
    # Phase 1: mode selection
    # -------------------------------------------------------------------------

    def triggered(self, sensors: SensorVector) -> bool:
        """Hard trigger, with out-of-domain sensors counted as one."""
        return not sensors.in_domain or self.law.hard_trigger(sensors, self.state.counters)

    def next_mode(self, sensors: SensorVector, requested_mode: Optional[Enum] = None) -> Enum:
        """Select this tick's mode from sensors and current state."""
        return self._select_mode(self.triggered(sensors), requested_mode, sensors)

    def _select_mode(self, triggered: bool, requested_mode: Optional[Enum], sensors: SensorVector) -> Enum:
        modes = self.modes
        current = self.state.mode

        if triggered:
            return modes.emergency

        if requested_mode is modes.emergency:
            return modes.emergency

        if current is modes.emergency:
            return modes.recovery

        if current is modes.recovery:
            if self.law.recovery_complete(self.state, sensors):
                return modes.normal
            return modes.recovery

        return current

    # -------------------------------------------------------------------------
    # Phase 2: actuation
    # -------------------------------------------------------------------------

    def desired_actuation(self, mode: Enum, sensors: SensorVector) -> float:
        """Unbounded actuation for ``mode``."""
        if mode is self.modes.emergency:
            return self.law.safe_actuation

        if mode is self.modes.recovery:
            target = self._monotonic_target(self.law.recovery_target(self.state, sensors))
            desired = ramp_toward(self.state.last_actuation, target, self.law.recovery_step)
            self.law.update_recovery(self.state.counters)
            return desired

        return self.law.normal_actuation(self.state, sensors)

    def _monotonic_target(self, target: float) -> float:
        """
        Clamp a recovery target so the ramp never reverses.

        The direction is fixed by the first target that differs from the
        current actuation; later targets on the other side hold the output.
        """
        state = self.state
        last = state.last_actuation

        if state.recovery_direction == 0:
            if target > last:
                state.recovery_direction = 1
            elif target < last:
                state.recovery_direction = -1

        if state.recovery_direction > 0:
            return max(target, last)
        if state.recovery_direction < 0:
            return min(target, last)
        return target

    def step(self, sensors: SensorVector, requested_mode: Optional[Enum] = None) -> float:
        """
        Advance one tick.

        Args:
            sensors: This tick's sensor vector
            requested_mode: Mode requested by the monitor on the previous tick

        Returns:
            Bounded actuation for this tick
        """
        self.stats["total_steps"] += 1
        self.law.observe(sensors, self.state.counters)

        triggered = self.triggered(sensors)
        mode = self._select_mode(triggered, requested_mode, sensors)
        if mode is not self.state.mode:
            self._transition(mode, forced=not triggered and mode is self.modes.emergency)

        desired = self.desired_actuation(mode, sensors)
        self.state.last_actuation = self.limiter.apply(self.state.last_actuation, desired)
        return self.state.last_actuation

    def self_correct(self, previous: float) -> float:
        """
        Replace this tick's output with the safe actuation, within limits.

        Limiter statistics already counted this tick in step() and are not
        updated again.
        """
        self.state.last_actuation = self.limiter.apply(previous, self.law.safe_actuation, record=False)
        return self.state.last_actuation

    def _transition(self, new_mode: Enum, forced: bool = False):
        old_mode = self.state.mode
        self.state.mode = new_mode
        self.state.recovery_direction = 0
        self.stats["transitions"] += 1
        self.law.on_transition(old_mode, new_mode, self.state.counters)

        if new_mode is self.modes.emergency:
            self.stats["emergency_entries"] += 1
            if forced:
                self.stats["forced_entries"] += 1
            logger.warning(
                f"Mode {old_mode.name} -> {new_mode.name}"
                + (" (requested by monitor)" if forced else "")
            )
        else:
            logger.info(f"Mode {old_mode.name} -> {new_mode.name}")

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> Enum:
        return self.state.mode

    @property
    def in_emergency(self) -> bool:
        return self.state.mode is self.modes.emergency

    @property
    def in_recovery(self) -> bool:
        return self.state.mode is self.modes.recovery

    def reset(self):
        """Restore the initial state."""
        self.state = self._fresh_state()
        self.limiter.reset()
