"""
Safety Module - Guarded Control Loop Stack

This module bounds each tick's commanded output through:

1. **Mode Control**: Prioritized state machine
   - Hard triggers pre-empt everything
   - Emergency always passes through Recovery before Normal
   - Per-mode actuation (safe value, monotonic ramp, live feedback)

2. **Actuator Limits**: Slew rate limiting, then absolute saturation

3. **Runtime Monitor**: Instantaneous and temporal invariants
   - Domain and single-tick predicates
   - Sustained-condition counters
   - Monotonic trends and contiguous-segment checks over history windows
   - Escalation to a latched emergency on the next tick

Usage:
    from loopguard.safety import ControlLoopExecutor, ModeController, SafetyMonitor

    loop = ControlLoopExecutor(controller, monitor, history, domains)
    snapshot = loop.tick(readings)
"""

from .limits import (
    limit,
    ramp_toward,
    ActuatorLimits,
    ActuatorLimiter,
)

from .modes import (
    ControlLaw,
    ModeController,
)

from .runtime_monitor import (
    ACTUATION,
    Direction,
    HistoryWindow,
    SignalHistory,
    CheckContext,
    Invariant,
    DomainInvariant,
    InstantaneousInvariant,
    WindowedPredicateInvariant,
    SustainedConditionInvariant,
    MonotonicTrendInvariant,
    ContiguousSegmentInvariant,
    SafetyMonitor,
    MonitorConfig,
    HaltCondition,
)

from .executor import ControlLoopExecutor

__all__ = [
    # Limits
    'limit',
    'ramp_toward',
    'ActuatorLimits',
    'ActuatorLimiter',

    # Modes
    'ControlLaw',
    'ModeController',

    # Runtime Monitor
    'ACTUATION',
    'Direction',
    'HistoryWindow',
    'SignalHistory',
    'CheckContext',
    'Invariant',
    'DomainInvariant',
    'InstantaneousInvariant',
    'WindowedPredicateInvariant',
    'SustainedConditionInvariant',
    'MonotonicTrendInvariant',
    'ContiguousSegmentInvariant',
    'SafetyMonitor',
    'MonitorConfig',
    'HaltCondition',

    # Executor
    'ControlLoopExecutor',
]
