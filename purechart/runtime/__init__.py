"""
Runtime package: optional caller-side helpers built on the pure interpreter.
"""

from .session import MachineSession

__all__ = ["MachineSession"]
