"""
HVAC Damper Controller

Damper position in percent open, driven by a proportional temperature
loop with a deadband.

Safety:
    MIN_OPEN <= position <= MAX_OPEN
    |position - previous| <= MAX_STEP
    fire alarm confirmed => damper closed
    system off => damper never opening

A fire alarm must be seen on FIRE_PREALARM_COUNT consecutive ticks before
the damper is locked closed; a single clear reading resets the count.
"""

from enum import Enum
from typing import Dict, Optional

from ..core.config_loader import SystemConfig, validate_model
from ..core.types import ControllerState, ModeSet, SensorVector
from ..safety import ControlLaw, ControlLoopExecutor, SafetyMonitor
from .base import assemble


class DamperMode(Enum):
    NORMAL = "normal"
    FIRE_RECOVERY = "fire_recovery"
    FIRE_LOCKDOWN = "fire_lockdown"


def default_config() -> SystemConfig:
    return validate_model(SystemConfig, {
        "name": "hvac_damper",
        "signals": {
            "current_temp": {"min": -40, "max": 150, "description": "return air, degrees F"},
            "target_temp": {"min": 40, "max": 100, "description": "setpoint, degrees F"},
            "fire_alarm": {"min": 0, "max": 1},
            "system_on": {"min": 0, "max": 1},
        },
        "limits": {"max_step": 15.0, "lo": 0.0, "hi": 100.0, "initial": 0.0},
        "constants": {
            "fire_prealarm_count": 3,
            "fire_safe_position": 0,
            "deadband": 1.0,
            "proportional_gain": 5,
            "recovery_hold_cycles": 3,
        },
    })


class HvacDamperLaw(ControlLaw):
    modes = ModeSet(
        normal=DamperMode.NORMAL,
        recovery=DamperMode.FIRE_RECOVERY,
        emergency=DamperMode.FIRE_LOCKDOWN,
    )

    def __init__(self, config: SystemConfig):
        super().__init__(config)
        self.safe_actuation = config.constant("fire_safe_position")
        self.prealarm_count = int(config.constant("fire_prealarm_count"))
        self.deadband = config.constant("deadband")
        self.gain = config.constant("proportional_gain")
        self.hold_cycles = int(config.constant("recovery_hold_cycles"))

    def initial_counters(self) -> Dict[str, int]:
        return {"fire_count": 0, "recovery_hold": 0}

    def observe(self, sensors: SensorVector, counters: Dict[str, int]):
        if sensors.flag("fire_alarm"):
            counters["fire_count"] = counters.get("fire_count", 0) + 1
        else:
            counters["fire_count"] = 0

    def hard_trigger(self, sensors, counters) -> bool:
        return counters.get("fire_count", 0) >= self.prealarm_count

    def on_transition(self, old, new, counters):
        if new is DamperMode.FIRE_RECOVERY:
            counters["recovery_hold"] = self.hold_cycles

    def update_recovery(self, counters: Dict[str, int]):
        counters["recovery_hold"] = max(counters.get("recovery_hold", 0) - 1, 0)

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        return state.counter("recovery_hold") <= 0

    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        if not sensors.flag("system_on"):
            return self.limits.lo

        error = sensors["current_temp"] - sensors["target_temp"]
        if abs(error) <= self.deadband:
            return state.last_actuation

        # Too warm opens, too cold closes
        correction = int(abs(error) * self.gain)
        if error > 0:
            return state.last_actuation + correction
        return state.last_actuation - correction


def install_invariants(monitor: SafetyMonitor, config: SystemConfig):
    lo, hi = config.limits.lo, config.limits.hi
    max_step = config.limits.max_step
    fire_safe = config.constant("fire_safe_position")

    monitor.add_always(
        "damper_range",
        lambda c: lo <= c.actuation <= hi,
        "damper position outside travel",
    )
    monitor.add_always(
        "damper_rate",
        lambda c: abs(c.actuation - c.previous_actuation) <= max_step + 1e-9,
        "damper moved faster than actuator slew limit",
    )
    monitor.add_always(
        "system_off_never_opens",
        lambda c: c.flag("system_on") or c.actuation <= c.previous_actuation,
        "damper opening while system is off",
    )
    monitor.add_sustained(
        "confirmed_fire_closes",
        condition=lambda c: c.flag("fire_alarm"),
        duration=int(config.constant("fire_prealarm_count")),
        requirement=lambda c: c.actuation == fire_safe,
        description="damper not closed after confirmed fire alarm",
    )


def build(config: Optional[SystemConfig] = None) -> ControlLoopExecutor:
    config = config or default_config()
    return assemble(HvacDamperLaw(config), config, install_invariants)
