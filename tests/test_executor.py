"""
Tests for the Control Loop Executor

Tests verify that:
1. Every tick's actuation respects the range and rate limits, under every
   escalation policy
2. A forced mode takes effect on the following tick, never the current one
3. Self-correction replaces the output and the recorded history
4. Catastrophic verdicts stop run()
5. Identical traces give identical snapshots
"""

import sys
import os
from enum import Enum

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loopguard.core.config_loader import SystemConfig
from loopguard.core.errors import ConfigurationError
from loopguard.core.types import EscalationPolicy, ModeSet, SensorVector
from loopguard.safety import (
    ACTUATION,
    ControlLaw,
    ControlLoopExecutor,
    ModeController,
    MonitorConfig,
    SafetyMonitor,
    SignalHistory,
)

LO, HI, MAX_STEP = -100.0, 100.0, 10.0


class Mode(Enum):
    NORMAL = "normal"
    RECOVERY = "recovery"
    EMERGENCY = "emergency"


class FollowLaw(ControlLaw):
    modes = ModeSet(normal=Mode.NORMAL, recovery=Mode.RECOVERY, emergency=Mode.EMERGENCY)
    safe_actuation = 0.0

    def hard_trigger(self, sensors, counters):
        return sensors.flag("hazard")

    def normal_actuation(self, state, sensors):
        return sensors["command"]


def make_loop(escalation=EscalationPolicy.REPORT, windows=None, install=None):
    config = SystemConfig(
        name="follow",
        signals={
            "hazard": {"min": 0, "max": 1},
            "command": {"min": -1000, "max": 1000},
        },
        limits={"max_step": MAX_STEP, "lo": LO, "hi": HI, "initial": 0.0},
        windows=windows or {},
        escalation=escalation,
    )
    law = FollowLaw(config)
    monitor = SafetyMonitor(law.modes, MonitorConfig(escalation=config.escalation))
    if install is not None:
        install(monitor)
    return ControlLoopExecutor(
        ModeController(law), monitor, SignalHistory(config.windows), config.domains(), name="follow"
    )


def random_trace(seed, length=300):
    rng = np.random.default_rng(seed)
    trace = []
    for _ in range(length):
        command = rng.uniform(-1000, 1000)
        if rng.random() < 0.02:
            command = 5000.0  # out of domain
        trace.append({"hazard": int(rng.random() < 0.05), "command": command})
    return trace


class TestTick:
    """Tests for single-tick behaviour."""

    def test_tick_numbering(self):
        """Test ticks are numbered from 1."""
        loop = make_loop()
        snapshots = [loop.tick({"hazard": 0, "command": 5}) for _ in range(3)]

        assert [s.tick for s in snapshots] == [1, 2, 3]
        assert loop.stats["ticks"] == 3

    def test_snapshot_as_dict(self):
        """Test the telemetry view of a snapshot."""
        loop = make_loop()
        data = loop.tick({"hazard": 0, "command": 5}).as_dict()

        assert data["tick"] == 1
        assert data["mode"] == "NORMAL"
        assert data["actuation"] == 5.0
        assert data["safe"] is True
        assert data["violations"] == []
        assert data["forced_mode"] is None

    def test_forced_mode_applies_next_tick(self):
        """Test a latched emergency is entered on the following tick only."""
        loop = make_loop(
            EscalationPolicy.LATCH,
            install=lambda m: m.add_always("command_small", lambda c: c["command"] < 50),
        )

        first = loop.tick({"hazard": 0, "command": 80})
        assert first.mode is Mode.NORMAL
        assert first.verdict.forced_mode is Mode.EMERGENCY
        assert loop.pending_mode is Mode.EMERGENCY

        second = loop.tick({"hazard": 0, "command": 0})
        assert second.mode is Mode.EMERGENCY
        assert second.verdict.forced_mode is None

        assert loop.tick({"hazard": 0, "command": 0}).mode is Mode.RECOVERY
        assert loop.tick({"hazard": 0, "command": 0}).mode is Mode.NORMAL

    def test_violation_count(self):
        """Test the running violation counter."""
        loop = make_loop(install=lambda m: m.add_always("non_negative", lambda c: c.actuation >= 0))
        for command in [5, -5, -5, 5]:
            loop.tick({"hazard": 0, "command": command})

        assert loop.state.violation_count == 2
        assert loop.stats["unsafe_ticks"] == 2

    def test_out_of_domain_fails_safe(self):
        """Test an out-of-domain reading selects emergency and is reported."""
        loop = make_loop()
        loop.tick({"hazard": 0, "command": 50})
        snapshot = loop.tick({"hazard": 0, "command": 5000})

        assert snapshot.mode is Mode.EMERGENCY
        assert "domain:command" in snapshot.verdict.violations
        assert snapshot.actuation == 0.0

    def test_prebuilt_vector_is_domain_checked(self):
        """Test a caller-built SensorVector is still checked against the domains."""
        loop = make_loop()
        loop.tick({"hazard": 0, "command": 50})
        snapshot = loop.tick(SensorVector({"hazard": 0.0, "command": 5000.0}))

        assert snapshot.mode is Mode.EMERGENCY
        assert "domain:command" in snapshot.verdict.violations
        assert snapshot.actuation == 0.0

    def test_prebuilt_vector_keeps_existing_flags(self):
        """Test out-of-domain flags already on a vector are preserved."""
        loop = make_loop()
        vector = SensorVector({"hazard": 0.0, "command": 1.0}, out_of_domain=frozenset({"command"}))
        snapshot = loop.tick(vector)

        assert snapshot.mode is Mode.EMERGENCY
        assert snapshot.verdict.violations == {"domain:command"}

    def test_mismatched_modes_rejected(self):
        """Test the monitor and controller must share a ModeSet."""

        class Other(Enum):
            A = 1
            B = 2
            C = 3

        loop = make_loop()
        monitor = SafetyMonitor(ModeSet(normal=Other.A, recovery=Other.B, emergency=Other.C))
        with pytest.raises(ConfigurationError):
            ControlLoopExecutor(loop.controller, monitor, SignalHistory({}))


class TestSelfCorrect:
    """Tests for the SELF_CORRECT escalation policy."""

    def test_output_and_history_corrected(self):
        """Test a violating tick is replaced by a bounded step to safe."""
        loop = make_loop(
            EscalationPolicy.SELF_CORRECT,
            windows={ACTUATION: 3},
            install=lambda m: m.add_always("cap", lambda c: c.actuation <= 15),
        )
        assert loop.tick({"hazard": 0, "command": 50}).actuation == 10.0

        snapshot = loop.tick({"hazard": 0, "command": 50})
        assert snapshot.corrected
        assert snapshot.actuation == 0.0
        assert snapshot.verdict.violations == {"cap"}
        assert loop.history[ACTUATION].as_sequence().tolist() == [10.0, 0.0]
        assert loop.state.last_actuation == 0.0
        assert loop.stats["corrections"] == 1
        # The corrected tick is counted once by the limiter
        assert loop.controller.limiter.stats["total_limits"] == 2
        assert loop.controller.limiter.stats["rate_limited"] == 2

        assert loop.tick({"hazard": 0, "command": 50}).mode is Mode.EMERGENCY


class TestRun:
    """Tests for run() and reset()."""

    def test_halt_stops_run(self):
        """Test run stops on the first halt request."""
        loop = make_loop(install=lambda m: m.halt_when("runaway", lambda c: c["command"] > 900))
        trace = [{"hazard": 0, "command": c} for c in [0, 0, 950, 0, 0]]
        snapshots = loop.run(trace)

        assert len(snapshots) == 3
        assert snapshots[-1].verdict.halt_requested
        assert loop.halted

    def test_max_ticks(self):
        """Test run honours max_ticks."""
        loop = make_loop()
        snapshots = loop.run(random_trace(0, 50), max_ticks=10)
        assert len(snapshots) == 10

    def test_reset(self):
        """Test reset returns to the initial state."""
        loop = make_loop(EscalationPolicy.LATCH, install=lambda m: m.add_always("x", lambda c: False))
        loop.run(random_trace(1, 20))
        loop.reset()

        assert loop.state.tick == 0
        assert loop.state.mode is Mode.NORMAL
        assert loop.state.last_actuation == 0.0
        assert loop.pending_mode is None
        assert not loop.halted
        assert loop.stats["ticks"] == 0

    def test_deterministic(self):
        """Test identical traces give identical snapshot sequences."""
        trace = random_trace(42)
        a = [s.as_dict() for s in make_loop(EscalationPolicy.LATCH).run(trace)]
        b = [s.as_dict() for s in make_loop(EscalationPolicy.LATCH).run(trace)]
        assert a == b


class TestLimitProperties:
    """Randomized checks of the actuator bounds."""

    @pytest.mark.parametrize("policy", list(EscalationPolicy))
    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_range_and_rate(self, policy, seed):
        """Test every tick stays in [lo, hi] and moves at most max_step."""
        loop = make_loop(
            policy,
            install=lambda m: m.add_always("above_minus_fifty", lambda c: c.actuation > -50),
        )
        previous = 0.0
        for snapshot in loop.run(random_trace(seed)):
            assert LO <= snapshot.actuation <= HI
            assert abs(snapshot.actuation - previous) <= MAX_STEP + 1e-9
            previous = snapshot.actuation
