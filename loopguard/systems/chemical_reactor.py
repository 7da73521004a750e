"""
Chemical Reactor Cooling Controller

Cooling pump power in percent.

Safety:
    pressure > CRITICAL_PRESSURE => relief vent open
    concentration > HIGH_CONCENTRATION => temperature rise per tick < MAX_TEMP_DELTA
    pump at full power for WINDOW ticks => temperature not strictly rising

Catastrophic (halt requested):
    temperature > HALT_TEMPERATURE or pressure > HALT_PRESSURE

Pressure above VENT_PRESSURE drives the pump to full power; cooldown then
ramps the pump down to the temperature-scheduled power.
"""

from enum import Enum
from typing import Optional

from ..core.config_loader import SystemConfig, validate_model
from ..core.types import ControllerState, ModeSet, SensorVector
from ..safety import (
    ControlLaw,
    ControlLoopExecutor,
    Direction,
    SafetyMonitor,
    WindowedPredicateInvariant,
)
from .base import assemble


class ReactorMode(Enum):
    NORMAL = "normal"
    COOLDOWN = "cooldown"
    PRESSURE_RELIEF = "pressure_relief"


def default_config() -> SystemConfig:
    return validate_model(SystemConfig, {
        "name": "chemical_reactor",
        "signals": {
            "temperature": {"min": 200, "max": 1000, "description": "K"},
            "pressure": {"min": 0, "max": 500, "description": "PSI"},
            "concentration": {"min": 0, "max": 100, "description": "percent"},
            "vent_open": {"min": 0, "max": 1},
        },
        "limits": {"max_step": 50.0, "lo": 0.0, "hi": 100.0, "initial": 0.0},
        "windows": {"temperature": 5},
        "escalation": "self_correct",
        "constants": {
            "vent_pressure": 148,
            "critical_pressure": 150,
            "high_concentration": 80,
            "max_temp_delta": 8,
            "cooling_threshold": 340,
            "warm_threshold": 315,
            "full_power": 100,
            "warm_power": 50,
            "cooldown_step": 10,
            "halt_temperature": 550,
            "halt_pressure": 250,
        },
    })


class ChemicalReactorLaw(ControlLaw):
    modes = ModeSet(
        normal=ReactorMode.NORMAL,
        recovery=ReactorMode.COOLDOWN,
        emergency=ReactorMode.PRESSURE_RELIEF,
    )

    def __init__(self, config: SystemConfig):
        super().__init__(config)
        self.vent_pressure = config.constant("vent_pressure")
        self.cooling_threshold = config.constant("cooling_threshold")
        self.warm_threshold = config.constant("warm_threshold")
        self.full_power = config.constant("full_power")
        self.warm_power = config.constant("warm_power")
        self.safe_actuation = self.full_power
        self.recovery_step = config.constant("cooldown_step")

    def hard_trigger(self, sensors, counters) -> bool:
        return sensors["pressure"] > self.vent_pressure

    def scheduled_power(self, sensors: SensorVector) -> float:
        temperature = sensors["temperature"]
        if temperature > self.cooling_threshold:
            return self.full_power
        if temperature > self.warm_threshold:
            return self.warm_power
        return 0.0

    def recovery_target(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.scheduled_power(sensors)

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        # Cooldown only ramps down from full power
        return state.last_actuation <= self.scheduled_power(sensors)

    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.scheduled_power(sensors)


def _temperature_rise(ctx) -> float:
    window = ctx.window("temperature")
    if len(window) < 2:
        return 0.0
    return window[-1] - window[-2]


def install_invariants(monitor: SafetyMonitor, config: SystemConfig):
    critical_pressure = config.constant("critical_pressure")
    high_concentration = config.constant("high_concentration")
    max_temp_delta = config.constant("max_temp_delta")
    full_power = config.constant("full_power")
    halt_temperature = config.constant("halt_temperature")
    halt_pressure = config.constant("halt_pressure")

    monitor.add_always(
        "vent_open_above_critical",
        lambda c: not c["pressure"] > critical_pressure or c.flag("vent_open"),
        "relief vent closed above critical pressure",
    )
    monitor.add_invariant(WindowedPredicateInvariant(
        "concentration_heating_rate",
        lambda c: not c["concentration"] > high_concentration or _temperature_rise(c) < max_temp_delta,
        signals=("temperature",),
        description="temperature rising too fast at high concentration",
    ))
    monitor.add_sustained(
        "cooling_effective",
        condition=lambda c: c.actuation >= full_power,
        duration=config.window("temperature"),
        requirement=lambda c: not c.window("temperature").is_monotonic(Direction.STRICTLY_INCREASING),
        description="temperature still rising under full cooling",
    )

    monitor.halt_when("temperature limit", lambda c: c["temperature"] > halt_temperature)
    monitor.halt_when("pressure limit", lambda c: c["pressure"] > halt_pressure)


def build(config: Optional[SystemConfig] = None) -> ControlLoopExecutor:
    config = config or default_config()
    return assemble(ChemicalReactorLaw(config), config, install_invariants)
