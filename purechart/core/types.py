# purechart/core/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Type definitions and enums for the statechart interpreter.

Shared by the definition model, the resolver and the configuration builder.
No runtime dependencies on other modules.
"""

from enum import Enum
from typing import Any, Callable, Dict, Mapping, Union


class StateKind(Enum):
    """Kinds of nodes in a compiled machine.

    Values match the ``type`` strings accepted in a machine description.
    """

    ATOMIC = "atomic"  # Leaf state with no substates
    COMPOUND = "compound"  # Exactly one child active at a time
    PARALLEL = "parallel"  # Every child (region) active at once
    FINAL = "final"  # Leaf that completes its parent
    HISTORY = "history"  # Pseudostate restoring a previous configuration


class HistoryType(Enum):
    """Depth of the configuration a history pseudostate restores."""

    SHALLOW = "shallow"  # Remembers only the direct child
    DEEP = "deep"  # Remembers the full leaf configuration


StateId = str
EventName = str

# Extended state supplied by the caller; never interpreted by the engine
Context = Any
Payload = Any

GuardFunction = Callable[[Context, Payload], bool]
StateValue = Union[str, Dict[str, Any]]
ActionParams = Mapping[str, Any]
