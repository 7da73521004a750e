"""
Tests for the Mode Controller

Tests verify that:
1. Hard triggers pre-empt every other transition
2. Emergency always passes through Recovery before Normal
3. Monitor-requested emergencies are honoured
4. Every output is rate-limited and saturated
"""

import sys
import os
from enum import Enum

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loopguard.core.config_loader import SystemConfig
from loopguard.core.errors import ConfigurationError
from loopguard.core.types import ModeSet, SensorVector
from loopguard.safety.modes import ControlLaw, ModeController


class Mode(Enum):
    RUN = "run"
    RECOVER = "recover"
    STOP = "stop"


class OtherMode(Enum):
    A = "a"


class SimpleLaw(ControlLaw):
    """Follows ``command``; ``hazard`` stops; recovery lasts a fixed number of ticks."""

    modes = ModeSet(normal=Mode.RUN, recovery=Mode.RECOVER, emergency=Mode.STOP)
    safe_actuation = 0.0

    def __init__(self, config, recovery_ticks=2):
        super().__init__(config)
        self.recovery_ticks = recovery_ticks

    def initial_counters(self):
        return {"recovering": 0}

    def on_transition(self, old, new, counters):
        if new is Mode.RECOVER:
            counters["recovering"] = self.recovery_ticks

    def update_recovery(self, counters):
        counters["recovering"] = max(counters["recovering"] - 1, 0)

    def recovery_complete(self, state, sensors):
        return state.counter("recovering") <= 0

    def hard_trigger(self, sensors, counters):
        return sensors.flag("hazard")

    def normal_actuation(self, state, sensors):
        return sensors["command"]


class TrackingRecoveryLaw(SimpleLaw):
    """Recovery ramps toward the live ``command``, so its target can move."""

    def recovery_target(self, state, sensors):
        return sensors["command"]


@pytest.fixture
def config():
    return SystemConfig(
        name="simple",
        signals={
            "hazard": {"min": 0, "max": 1},
            "command": {"min": -1000, "max": 1000},
        },
        limits={"max_step": 10.0, "lo": -100.0, "hi": 100.0, "initial": 0.0},
    )


@pytest.fixture
def controller(config):
    return ModeController(SimpleLaw(config))


def sensors(config, hazard=0, command=0.0):
    return SensorVector.from_readings({"hazard": hazard, "command": command}, config.domains())


class TestModeSelection:
    """Tests for prioritized mode selection."""

    def test_starts_in_normal(self, controller):
        """Test default initial mode and actuation."""
        assert controller.mode is Mode.RUN
        assert controller.state.last_actuation == 0.0

    def test_hazard_forces_emergency(self, config, controller):
        """Test that a hard trigger selects emergency from any mode."""
        controller.step(sensors(config, command=50))
        controller.step(sensors(config, hazard=1, command=50))

        assert controller.mode is Mode.STOP
        assert controller.in_emergency
        assert controller.stats["emergency_entries"] == 1

    def test_emergency_goes_through_recovery(self, config, controller):
        """Test that emergency never exits straight to normal."""
        controller.step(sensors(config, hazard=1))
        controller.step(sensors(config))

        assert controller.mode is Mode.RECOVER
        assert controller.in_recovery

    def test_recovery_completes_to_normal(self, config, controller):
        """Test that recovery exits once complete."""
        modes = []
        for hazard in [1, 0, 0, 0]:
            controller.step(sensors(config, hazard=hazard))
            modes.append(controller.mode)

        assert modes == [Mode.STOP, Mode.RECOVER, Mode.RECOVER, Mode.RUN]

    def test_hazard_beats_recovery_exit(self, config, controller):
        """Test that a hazard on the tick recovery would complete wins."""
        for hazard in [1, 0, 0]:
            controller.step(sensors(config, hazard=hazard))
        assert controller.law.recovery_complete(controller.state, sensors(config))

        controller.step(sensors(config, hazard=1))
        assert controller.mode is Mode.STOP

    def test_next_mode_is_pure_selection(self, config, controller):
        """Test next_mode reports without changing state."""
        assert controller.next_mode(sensors(config, hazard=1)) is Mode.STOP
        assert controller.mode is Mode.RUN

    def test_requested_emergency(self, config, controller):
        """Test a monitor-requested emergency is honoured and counted as forced."""
        controller.step(sensors(config), requested_mode=Mode.STOP)

        assert controller.mode is Mode.STOP
        assert controller.stats["forced_entries"] == 1

    def test_requested_emergency_while_triggered_not_forced(self, config, controller):
        """Test a hard trigger is not counted as a forced entry."""
        controller.step(sensors(config, hazard=1), requested_mode=Mode.STOP)

        assert controller.stats["forced_entries"] == 0
        assert controller.stats["emergency_entries"] == 1

    def test_out_of_domain_is_hard_trigger(self, config, controller):
        """Test that an out-of-domain sensor selects emergency."""
        controller.step(sensors(config, command=5000))
        assert controller.mode is Mode.STOP

    def test_missing_signal_is_hard_trigger(self, config, controller):
        """Test that a missing declared signal selects emergency."""
        vector = SensorVector.from_readings({"command": 1.0}, config.domains())
        controller.step(vector)
        assert controller.mode is Mode.STOP


class TestActuation:
    """Tests for per-mode actuation."""

    def test_normal_is_rate_limited(self, config, controller):
        """Test that normal output follows the command within max_step."""
        outputs = [controller.step(sensors(config, command=50)) for _ in range(6)]
        assert outputs == [10.0, 20.0, 30.0, 40.0, 50.0, 50.0]

    def test_emergency_ramps_to_safe(self, config, controller):
        """Test that emergency heads to the safe actuation within limits."""
        for _ in range(3):
            controller.step(sensors(config, command=50))
        assert controller.step(sensors(config, hazard=1)) == 20.0
        assert controller.step(sensors(config, hazard=1)) == 10.0
        assert controller.step(sensors(config, hazard=1)) == 0.0

    def test_saturation(self, config, controller):
        """Test that output never leaves [lo, hi]."""
        for _ in range(20):
            value = controller.step(sensors(config, command=900))
        assert value == 100.0

    def test_recovery_ramp_never_reverses(self, config):
        """Test a recovery target that moves back is clamped to hold the output."""
        controller = ModeController(TrackingRecoveryLaw(config, recovery_ticks=10), initial_actuation=50.0)

        assert controller.step(sensors(config, hazard=1)) == 40.0
        outputs = []
        for command in [0, 100, 10, 60]:
            outputs.append(controller.step(sensors(config, command=command)))
            assert controller.mode is Mode.RECOVER

        assert outputs == [30.0, 30.0, 20.0, 20.0]
        assert controller.state.recovery_direction == -1

    def test_recovery_direction_reset_on_entry(self, config):
        """Test each recovery entry fixes its own ramp direction."""
        controller = ModeController(TrackingRecoveryLaw(config, recovery_ticks=10), initial_actuation=-50.0)

        controller.step(sensors(config, hazard=1))
        assert controller.step(sensors(config, command=100)) == -30.0
        assert controller.state.recovery_direction == 1

        controller.step(sensors(config, hazard=1))
        assert controller.state.recovery_direction == 0

    def test_self_correct(self, config, controller):
        """Test self_correct replaces the output with a bounded step to safe."""
        for _ in range(3):
            controller.step(sensors(config, command=50))
        assert controller.self_correct(30.0) == 20.0
        assert controller.state.last_actuation == 20.0


class TestConstruction:
    """Tests for construction-time validation."""

    def test_initial_mode_wrong_enum(self, config):
        """Test that an initial mode from another enum is rejected."""
        with pytest.raises(ConfigurationError):
            ModeController(SimpleLaw(config), initial_mode=OtherMode.A)

    def test_initial_actuation_out_of_range(self, config):
        """Test that an initial actuation outside the range is rejected."""
        with pytest.raises(ConfigurationError):
            ModeController(SimpleLaw(config), initial_actuation=500.0)

    def test_custom_initial_state(self, config):
        """Test starting in emergency with a given actuation."""
        controller = ModeController(SimpleLaw(config), initial_mode=Mode.STOP, initial_actuation=40.0)
        assert controller.mode is Mode.STOP
        assert controller.state.last_actuation == 40.0

    def test_mode_set_must_be_distinct(self):
        """Test that ModeSet rejects repeated roles."""
        with pytest.raises(ConfigurationError):
            ModeSet(normal=Mode.RUN, recovery=Mode.RUN, emergency=Mode.STOP)

    def test_reset(self, config, controller):
        """Test reset restores the initial state."""
        controller.step(sensors(config, hazard=1, command=50))
        controller.reset()

        assert controller.mode is Mode.RUN
        assert controller.state.last_actuation == 0.0
        assert controller.state.counters == {"recovering": 0}
