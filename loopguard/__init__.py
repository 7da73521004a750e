"""
loopguard - Guarded discrete-time control loops.

Mode state machine, actuator rate limiting and runtime safety monitoring
for fixed-step control loops.

Usage:
    from loopguard.systems import build_system

    loop = build_system("elevator_door")
    snapshot = loop.tick({"obstruction": 1, "close_command": 0, "floor": 3})
"""

from .version import __version__

__all__ = ["__version__"]
