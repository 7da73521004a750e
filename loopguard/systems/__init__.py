"""
Reference Systems - Guarded Control Loops Built on loopguard.safety

Each module supplies a mode enum, a ControlLaw, default SystemConfig
constants and the system's invariants:

- elevator_door:    obstruction latch holds the door open
- dam_gate:         flood opens the spillway, recovery lowers it stepwise
- hvac_damper:      confirmed fire alarm locks the damper closed
- warehouse_robot:  collision stop, loaded-turn torque cap, brake trend check
- chemical_reactor: pressure relief cooling, catastrophic halt limits
- infusion_pump:    air/occlusion stop, taper near the prescribed dose

Usage:
    from loopguard.systems import build_system

    loop = build_system("elevator_door")
    snapshot = loop.tick({"obstruction": 1, "close_command": 0, "floor": 3})
"""

from typing import Optional, Union

from ..core.config_loader import AppConfig, SystemConfig
from ..core.errors import UnknownSystemError
from ..safety import ControlLoopExecutor
from . import (
    chemical_reactor,
    dam_gate,
    elevator_door,
    hvac_damper,
    infusion_pump,
    warehouse_robot,
)

SYSTEMS = {
    "elevator_door": elevator_door,
    "dam_gate": dam_gate,
    "hvac_damper": hvac_damper,
    "warehouse_robot": warehouse_robot,
    "chemical_reactor": chemical_reactor,
    "infusion_pump": infusion_pump,
}


def available_systems():
    return sorted(SYSTEMS)


def system_config(name: str, config: Optional[Union[SystemConfig, AppConfig]] = None) -> SystemConfig:
    """
    Resolve the SystemConfig for ``name``.

    Args:
        name: Registered system name
        config: Full SystemConfig, or AppConfig whose overrides are merged
            onto the system defaults

    Raises:
        UnknownSystemError: ``name`` is not registered
    """
    if name not in SYSTEMS:
        raise UnknownSystemError(name, available_systems())

    if isinstance(config, SystemConfig):
        return config

    defaults = SYSTEMS[name].default_config()
    if isinstance(config, AppConfig):
        return defaults.merged(config.system_overrides(name))
    return defaults


def build_system(name: str, config: Optional[Union[SystemConfig, AppConfig]] = None) -> ControlLoopExecutor:
    """Build a ready-to-tick ControlLoopExecutor for a registered system."""
    resolved = system_config(name, config)
    return SYSTEMS[name].build(resolved)


__all__ = [
    'SYSTEMS',
    'available_systems',
    'system_config',
    'build_system',
]
