"""
Infusion Pump Flow Controller

Flow rate in ml/hr.

Safety:
    air in line for AIR_CONFIRM_TICKS ticks => flow stopped
    downstream pressure > PRESSURE_THRESHOLD => flow stopped
    dose delivered >= PRESCRIBED_LIMIT => flow stopped
    while dose > DOSE_LIMIT_FRACTION * PRESCRIBED_LIMIT => flow never increases

Instantaneous violations latch the pump into HALTED on the next tick.
"""

from enum import Enum
from typing import Dict, Optional

from ..core.config_loader import SystemConfig, validate_model
from ..core.types import ControllerState, ModeSet, SensorVector
from ..safety import ACTUATION, ControlLaw, ControlLoopExecutor, Direction, SafetyMonitor
from .base import assemble


class PumpMode(Enum):
    INFUSING = "infusing"
    RESUMING = "resuming"
    HALTED = "halted"


def default_config() -> SystemConfig:
    return validate_model(SystemConfig, {
        "name": "infusion_pump",
        "signals": {
            "air_bubble": {"min": 0, "max": 1, "description": "ultrasonic air-in-line"},
            "downstream_pressure": {"min": 0, "max": 40, "description": "PSI"},
            "dose_delivered": {"min": 0, "max": 1000, "description": "ml"},
        },
        "limits": {"max_step": 10.0, "lo": 0.0, "hi": 50.0, "initial": 0.0},
        "windows": {"dose_delivered": 12, ACTUATION: 12},
        "escalation": "latch",
        "constants": {
            "pressure_threshold": 15,
            "prescribed_limit": 100,
            "dose_limit_fraction": 0.95,
            "base_rate": 10,
            "taper_rate": 2,
            "resume_step": 2,
            "clear_ticks_to_resume": 2,
            "air_confirm_ticks": 2,
        },
    })


class InfusionPumpLaw(ControlLaw):
    modes = ModeSet(
        normal=PumpMode.INFUSING,
        recovery=PumpMode.RESUMING,
        emergency=PumpMode.HALTED,
    )
    safe_actuation = 0.0

    def __init__(self, config: SystemConfig):
        super().__init__(config)
        self.pressure_threshold = config.constant("pressure_threshold")
        self.prescribed_limit = config.constant("prescribed_limit")
        self.taper_level = config.constant("dose_limit_fraction") * self.prescribed_limit
        self.base_rate = config.constant("base_rate")
        self.taper_rate = config.constant("taper_rate")
        self.recovery_step = config.constant("resume_step")
        self.clear_ticks = int(config.constant("clear_ticks_to_resume"))

    def initial_counters(self) -> Dict[str, int]:
        return {"clear_ticks": 0}

    def observe(self, sensors: SensorVector, counters: Dict[str, int]):
        if self.hard_trigger(sensors, counters):
            counters["clear_ticks"] = 0
        else:
            counters["clear_ticks"] = counters.get("clear_ticks", 0) + 1

    def hard_trigger(self, sensors, counters) -> bool:
        return sensors.flag("air_bubble") or sensors["downstream_pressure"] > self.pressure_threshold

    def scheduled_rate(self, state: ControllerState, sensors: SensorVector) -> float:
        dose = sensors["dose_delivered"]
        if dose >= self.prescribed_limit:
            return 0.0
        if dose > self.taper_level:
            return min(state.last_actuation, self.taper_rate)
        return self.base_rate

    def recovery_target(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.scheduled_rate(state, sensors)

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        return state.counter("clear_ticks") >= self.clear_ticks

    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.scheduled_rate(state, sensors)


def install_invariants(monitor: SafetyMonitor, config: SystemConfig):
    pressure_threshold = config.constant("pressure_threshold")
    prescribed_limit = config.constant("prescribed_limit")
    taper_level = config.constant("dose_limit_fraction") * prescribed_limit

    monitor.add_always(
        "occlusion_stops_flow",
        lambda c: not c["downstream_pressure"] > pressure_threshold or c.actuation == 0,
        "flow continuing against downstream occlusion",
    )
    monitor.add_always(
        "dose_limit_stops_flow",
        lambda c: not c["dose_delivered"] >= prescribed_limit or c.actuation == 0,
        "flow continuing after prescribed dose delivered",
    )
    monitor.add_sustained(
        "air_in_line_stops_flow",
        condition=lambda c: c.flag("air_bubble"),
        duration=int(config.constant("air_confirm_ticks")),
        requirement=lambda c: c.actuation == 0,
        description="flow continuing with air in line",
    )
    monitor.add_segment(
        "high_dose_rate_non_increasing",
        gate_signal="dose_delivered",
        threshold=taper_level,
        tracked_signal=ACTUATION,
        direction=Direction.NON_INCREASING,
        description="flow rate increased near dose limit",
    )


def build(config: Optional[SystemConfig] = None) -> ControlLoopExecutor:
    config = config or default_config()
    return assemble(InfusionPumpLaw(config), config, install_invariants)
