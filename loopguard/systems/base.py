"""
Shared assembly for reference systems.
"""

import logging
from typing import Callable

from ..core.config_loader import SystemConfig
from ..safety import (
    ControlLaw,
    ControlLoopExecutor,
    ModeController,
    MonitorConfig,
    SafetyMonitor,
    SignalHistory,
)

logger = logging.getLogger(__name__)

InvariantInstaller = Callable[[SafetyMonitor, SystemConfig], None]


def assemble(law: ControlLaw, config: SystemConfig, install: InvariantInstaller) -> ControlLoopExecutor:
    """Wire controller, monitor and history for one system."""
    controller = ModeController(law)
    monitor = SafetyMonitor(law.modes, MonitorConfig(escalation=config.escalation))
    install(monitor, config)
    history = SignalHistory(config.windows)

    loop = ControlLoopExecutor(controller, monitor, history, config.domains(), name=config.name)
    logger.info(
        f"Assembled {config.name}: {len(monitor.instantaneous)} instantaneous, "
        f"{len(monitor.windowed)} windowed invariants, escalation={config.escalation.value}"
    )
    return loop
