"""
loopguard Version

v0.3.0 Changes:
- Contiguous-segment invariants report every offending pair
- Escalation policy (report / latch / self-correct) per system
- Catastrophic halt requests surfaced through the verdict
"""

__version__ = "0.3.0"
__author__ = "loopguard contributors"
__status__ = "Beta"
