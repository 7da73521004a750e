"""
Elevator Door Controller

Door motor force (positive opens, negative closes).

Safety:
    -MAX_DOOR_FORCE <= force <= MAX_DOOR_FORCE
    obstruction => force >= 0
    clearing latch => force >= 0

An obstruction forces the door open and latches it open for
OBSTRUCTION_HOLD_CYCLES further ticks after the obstruction clears.
"""

from enum import Enum
from typing import Dict, Optional

from ..core.config_loader import SystemConfig, validate_model
from ..core.types import ControllerState, ModeSet, SensorVector
from ..safety import ControlLaw, ControlLoopExecutor, SafetyMonitor
from .base import assemble


class DoorMode(Enum):
    NORMAL = "normal"
    OBSTRUCTION_CLEARING = "obstruction_clearing"
    OBSTRUCTED = "obstructed"


def default_config() -> SystemConfig:
    return validate_model(SystemConfig, {
        "name": "elevator_door",
        "signals": {
            "obstruction": {"min": 0, "max": 1, "description": "light curtain blocked"},
            "close_command": {"min": 0, "max": 1},
            "floor": {"min": 1, "max": 50},
        },
        "limits": {"max_step": 100.0, "lo": -50.0, "hi": 50.0, "initial": 0.0},
        "constants": {
            "max_door_force": 50,
            "max_close_force": -30,
            "soft_close_force": -15,
            "door_open_force": 35,
            "door_hold_force": 0,
            "lobby_floor": 1,
            "obstruction_hold_cycles": 5,
            "lobby_hold_cycles": 20,
            "standard_hold_cycles": 6,
        },
    })


class ElevatorDoorLaw(ControlLaw):
    modes = ModeSet(
        normal=DoorMode.NORMAL,
        recovery=DoorMode.OBSTRUCTION_CLEARING,
        emergency=DoorMode.OBSTRUCTED,
    )

    def __init__(self, config: SystemConfig):
        super().__init__(config)
        self.open_force = config.constant("door_open_force")
        self.hold_force = config.constant("door_hold_force")
        self.close_force = config.constant("max_close_force")
        self.soft_close_force = config.constant("soft_close_force")
        self.hold_cycles = int(config.constant("obstruction_hold_cycles"))
        self.lobby_floor = config.constant("lobby_floor")
        self.lobby_hold = int(config.constant("lobby_hold_cycles"))
        self.standard_hold = int(config.constant("standard_hold_cycles"))
        self.safe_actuation = self.open_force

    def initial_counters(self) -> Dict[str, int]:
        return {"obstruction_latch": 0, "hold_open": 0}

    def observe(self, sensors: SensorVector, counters: Dict[str, int]):
        # Every obstructed tick re-arms the full latch
        if sensors.flag("obstruction"):
            counters["obstruction_latch"] = self.hold_cycles

    def hard_trigger(self, sensors: SensorVector, counters: Dict[str, int]) -> bool:
        return sensors.flag("obstruction")

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        return state.counter("obstruction_latch") <= 0

    def recovery_target(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.open_force

    def update_recovery(self, counters: Dict[str, int]):
        counters["obstruction_latch"] = max(counters.get("obstruction_latch", 0) - 1, 0)

    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        counters = state.counters

        if counters.get("hold_open", 0) > 0:
            counters["hold_open"] -= 1
            return self.hold_force

        if sensors.flag("close_command"):
            # Soft-close right after opening
            if state.last_actuation > 0:
                return self.soft_close_force
            return self.close_force

        if sensors["floor"] == self.lobby_floor:
            counters["hold_open"] = self.lobby_hold
        else:
            counters["hold_open"] = self.standard_hold
        return self.open_force


def install_invariants(monitor: SafetyMonitor, config: SystemConfig):
    max_force = config.constant("max_door_force")

    monitor.add_always(
        "door_force_range",
        lambda c: -max_force <= c.actuation <= max_force,
        "door force outside motor limits",
    )
    monitor.add_always(
        "obstruction_never_closes",
        lambda c: not c.flag("obstruction") or c.actuation >= 0,
        "door closing onto an obstruction",
    )
    monitor.add_always(
        "clearing_never_closes",
        lambda c: c.mode is not DoorMode.OBSTRUCTION_CLEARING or c.actuation >= 0,
        "door closing during obstruction clearing window",
    )


def build(config: Optional[SystemConfig] = None) -> ControlLoopExecutor:
    config = config or default_config()
    return assemble(ElevatorDoorLaw(config), config, install_invariants)
