"""
Persistence package: snapshot formats for storing configurations.
"""

from .serializer import dumps_snapshot, from_snapshot, loads_snapshot, to_snapshot

__all__ = ["dumps_snapshot", "from_snapshot", "loads_snapshot", "to_snapshot"]
