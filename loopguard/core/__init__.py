"""
Core Module - Shared types, configuration and error taxonomy

Primary Components:
    - SensorVector / SignalDomain: per-tick sensor readings with domain checks
    - ControllerState: mode, last actuation and counters persisted across ticks
    - Verdict / Violation / TickSnapshot: per-tick monitor results and telemetry
    - SystemConfig / AppConfig: validated, immutable configuration
    - ConfigurationError: fatal construction-time errors

Usage:
    from loopguard.core import (
        SensorVector,
        load_and_validate_config,
        ConfigurationError,
    )
"""

# Configuration
from .config_loader import (
    AppConfig,
    SystemConfig,
    SignalDomainConfig,
    ActuatorLimitsConfig,
    LoggingConfig,
    load_and_validate_config,
    validate_model,
)

# Errors
from .errors import (
    ViolationKind,
    LoopGuardError,
    ConfigurationError,
    UnknownSystemError,
)

# Logging
from .logging_utils import configure_logging, get_logger, setup_logger

# Data types
from .types import (
    SignalDomain,
    SensorVector,
    ModeSet,
    ControllerState,
    EscalationPolicy,
    Violation,
    Verdict,
    TickSnapshot,
)

__all__ = [
    # Configuration
    'AppConfig',
    'SystemConfig',
    'SignalDomainConfig',
    'ActuatorLimitsConfig',
    'LoggingConfig',
    'load_and_validate_config',
    'validate_model',

    # Errors
    'ViolationKind',
    'LoopGuardError',
    'ConfigurationError',
    'UnknownSystemError',

    # Logging
    'configure_logging',
    'get_logger',
    'setup_logger',

    # Data types
    'SignalDomain',
    'SensorVector',
    'ModeSet',
    'ControllerState',
    'EscalationPolicy',
    'Violation',
    'Verdict',
    'TickSnapshot',
]
