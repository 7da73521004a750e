"""
Warehouse Robot Drive Controller

Drive motor torque (Nm) for an autonomous warehouse robot.

Safety:
    dist_to_obstacle < OBSTACLE_THRESHOLD => speed < SPEED_LIMIT_NEAR_OBSTACLE
    load > CRITICAL_LOAD and steering != 0 => torque <= MAX_STABILITY_TORQUE
    speed strictly decreasing over the window (and still moving) => brakes engaged
    stopped => zero torque

The robot stops dead inside COLLISION_DISTANCE and resumes gently, ramping
toward approach torque until the slow zone is clear.
"""

from enum import Enum
from typing import Optional

from ..core.config_loader import SystemConfig, validate_model
from ..core.types import ControllerState, ModeSet, SensorVector
from ..safety import ControlLaw, ControlLoopExecutor, Direction, SafetyMonitor
from .base import assemble


class RobotMode(Enum):
    CRUISE = "cruise"
    RESUME = "resume"
    STOPPED = "stopped"


def default_config() -> SystemConfig:
    return validate_model(SystemConfig, {
        "name": "warehouse_robot",
        "signals": {
            "speed": {"min": 0, "max": 5, "description": "m/s"},
            "brake_pressure": {"min": 0, "max": 100, "description": "bar"},
            "dist_to_obstacle": {"min": 0, "max": 100, "description": "m, lidar"},
            "load_kg": {"min": 0, "max": 1000},
            "steering_angle": {"min": -45, "max": 45, "description": "degrees"},
        },
        "limits": {"max_step": 50.0, "lo": 0.0, "hi": 50.0, "initial": 0.0},
        "windows": {"speed": 4},
        "constants": {
            "collision_distance": 1.0,
            "slow_zone_distance": 6.0,
            "cruise_torque": 50,
            "approach_torque": 5,
            "critical_load": 500,
            "max_stability_torque": 40,
            "obstacle_threshold": 5.0,
            "speed_limit_near_obstacle": 2.0,
            "moving_speed": 0.1,
            "resume_step": 10,
        },
    })


class WarehouseRobotLaw(ControlLaw):
    modes = ModeSet(
        normal=RobotMode.CRUISE,
        recovery=RobotMode.RESUME,
        emergency=RobotMode.STOPPED,
    )
    safe_actuation = 0.0

    def __init__(self, config: SystemConfig):
        super().__init__(config)
        self.collision_distance = config.constant("collision_distance")
        self.slow_zone = config.constant("slow_zone_distance")
        self.cruise_torque = config.constant("cruise_torque")
        self.approach_torque = config.constant("approach_torque")
        self.critical_load = config.constant("critical_load")
        self.max_stability_torque = config.constant("max_stability_torque")
        self.recovery_step = config.constant("resume_step")

    def hard_trigger(self, sensors, counters) -> bool:
        return sensors["dist_to_obstacle"] < self.collision_distance

    def recovery_target(self, state: ControllerState, sensors: SensorVector) -> float:
        return self.approach_torque

    def recovery_complete(self, state: ControllerState, sensors: SensorVector) -> bool:
        return sensors["dist_to_obstacle"] >= self.slow_zone

    def normal_actuation(self, state: ControllerState, sensors: SensorVector) -> float:
        if sensors["dist_to_obstacle"] < self.slow_zone:
            torque = self.approach_torque
        else:
            torque = self.cruise_torque

        # Heavy load while turning risks tipping
        if sensors["load_kg"] > self.critical_load and sensors["steering_angle"] != 0:
            torque = min(torque, self.max_stability_torque)
        return torque


def install_invariants(monitor: SafetyMonitor, config: SystemConfig):
    obstacle_threshold = config.constant("obstacle_threshold")
    speed_limit = config.constant("speed_limit_near_obstacle")
    critical_load = config.constant("critical_load")
    max_stability_torque = config.constant("max_stability_torque")
    moving_speed = config.constant("moving_speed")

    monitor.add_always(
        "proximity_speed",
        lambda c: not c["dist_to_obstacle"] < obstacle_threshold or c["speed"] < speed_limit,
        "too fast near obstacle",
    )
    monitor.add_always(
        "load_stability",
        lambda c: not (c["load_kg"] > critical_load and c["steering_angle"] != 0)
        or c.actuation <= max_stability_torque,
        "torque too high for loaded turn",
    )
    monitor.add_always(
        "stopped_zero_torque",
        lambda c: c.mode is not RobotMode.STOPPED or c.actuation == 0,
        "torque applied while stopped",
    )
    monitor.add_trend(
        "deceleration_uses_brakes",
        signal="speed",
        direction=Direction.STRICTLY_DECREASING,
        requirement=lambda c: c["brake_pressure"] > 0,
        guard=lambda c: c["speed"] > moving_speed,
        description="sustained deceleration without brake pressure",
    )


def build(config: Optional[SystemConfig] = None) -> ControlLoopExecutor:
    config = config or default_config()
    return assemble(WarehouseRobotLaw(config), config, install_invariants)
