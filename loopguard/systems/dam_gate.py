"""
Dam Spillway Gate Controller

Gate opening in percent (0 closed, 100 fully open).

Safety:
    0 <= opening <= 100
    flood => gate at EMERGENCY_OPENING
    post-flood recovery => opening never increases

After a flood clears the gate is lowered in RECOVERY_STEP increments
until it reaches the demand-driven opening, instead of snapping shut.
"""

from enum import Enum
from typing import Optional

from ..core.config_loader import SystemConfig, validate_model
from ..core.types import ControllerState, ModeSet, SensorVector
from ..safety import ControlLaw, ControlLoopExecutor, SafetyMonitor
from .base import assemble


class GateMode(Enum):
    NORMAL = "normal"
    POST_FLOOD_RECOVERY = "post_flood_recovery"
    EMERGENCY_OPEN = "emergency_open"


def default_config() -> SystemConfig:
    return validate_model(SystemConfig, {
        "name": "dam_gate",
        "signals": {
            "flood": {"min": 0, "max": 1, "description": "upstream flood warning"},
            "reservoir_level": {"min": 0, "max": 120, "description": "percent of design capacity"},
            "seasonal_demand": {"min": 0, "max": 100, "description": "downstream release demand"},
        },
        "limits": {"max_step": 100.0, "lo": 0.0, "hi": 100.0, "initial": 0.0},
        "constants": {
            "emergency_opening": 100,
            "high_reservoir_level": 95,
            "high_level_base_opening": 75,
            "recovery_step": 5,
        },
    })


class DamGateLaw(ControlLaw):
    modes = ModeSet(
        normal=GateMode.NORMAL,
        recovery=GateMode.POST_FLOOD_RECOVERY,
        emergency=GateMode.EMERGENCY_OPEN,
    )

    def __init__(self, config: SystemConfig):
        super().__init__(config)
        self.safe_actuation = config.constant("emergency_opening")
        self.high_level = config.constant("high_reservoir_level")
        self.high_level_base = config.constant("high_level_base_opening")
        self.recovery_step = config.constant("recovery_step")

    def hard_trigger(self, sensors, counters) -> bool:
        return sensors.flag("flood")

    def demand_opening(self, sensors: SensorVector) -> float:
        """Opening requested by reservoir level and seasonal demand."""
        demand = sensors["seasonal_demand"]
        if sensors["reservoir_level"] > self.high_level:
            return self.high_level_base + demand / 4.0
        return demand

    def recovery_target(self, state: ControllerState, sensors: SensorVector) -> float:
        # Only ever lower the gate while recovering
        return min(self.demand_opening(sensors), state.last_actuation)

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        return state.last_actuation <= self.demand_opening(sensors)

    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.demand_opening(sensors)


def install_invariants(monitor: SafetyMonitor, config: SystemConfig):
    lo, hi = config.limits.lo, config.limits.hi
    emergency_opening = config.constant("emergency_opening")

    monitor.add_always(
        "gate_range",
        lambda c: lo <= c.actuation <= hi,
        "gate opening outside mechanical range",
    )
    monitor.add_always(
        "flood_opens_gate",
        lambda c: not c.flag("flood") or c.actuation == emergency_opening,
        "gate not fully open during flood",
    )
    monitor.add_always(
        "recovery_never_raises",
        lambda c: c.mode is not GateMode.POST_FLOOD_RECOVERY or c.actuation <= c.previous_actuation,
        "gate opening increased during post-flood recovery",
    )


def build(config: Optional[SystemConfig] = None) -> ControlLoopExecutor:
    config = config or default_config()
    return assemble(DamGateLaw(config), config, install_invariants)
