"""
Runtime Monitor - Instantaneous and Temporal Invariant Checking

Evaluates safety invariants over the current tick and sliding history
windows, producing a Verdict per tick.
"""

from .history import (
    ACTUATION,
    Direction,
    HistoryWindow,
    SignalHistory,
)

from .invariants import (
    CheckContext,
    Invariant,
    DomainInvariant,
    InstantaneousInvariant,
    WindowedPredicateInvariant,
    SustainedConditionInvariant,
    MonotonicTrendInvariant,
    ContiguousSegmentInvariant,
)

from .monitor import (
    SafetyMonitor,
    MonitorConfig,
    HaltCondition,
)

__all__ = [
    # History
    'ACTUATION',
    'Direction',
    'HistoryWindow',
    'SignalHistory',

    # Invariants
    'CheckContext',
    'Invariant',
    'DomainInvariant',
    'InstantaneousInvariant',
    'WindowedPredicateInvariant',
    'SustainedConditionInvariant',
    'MonotonicTrendInvariant',
    'ContiguousSegmentInvariant',

    # Monitor
    'SafetyMonitor',
    'MonitorConfig',
    'HaltCondition',
]
