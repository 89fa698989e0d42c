"""
Core package providing the statechart interpreter.

Architecture:
- Definition model: immutable, id-indexed state tree compiled once
- Guard evaluator: pure predicates over context and event payload
- Transition resolver: innermost-wins selection per active region
- Configuration builder: exit/entry sets, default descent, history
- Action collector: exit, transition and entry actions in order
- Interpreter facade: ``initial_state``, ``transition``, ``send``
"""

# Import order matters to avoid circular dependencies
from .types import HistoryType, StateKind
from .errors import (
    UNCHANGED,
    ActionDispatchError,
    DefinitionError,
    GuardEvaluationError,
    InvalidConfigurationError,
    InvalidEventError,
    PureChartError,
    UnknownEventIgnored,
)
from .events import Event
from .actions import Action, ActionCollector
from .guards import Guard, GuardEvaluator, GuardRegistry
from .state import StateNode, Transition
from .definition import MachineDefinition, compile_machine
from .configuration import Configuration
from .builder import ConfigurationBuilder
from .resolver import TransitionResolver
from .interpreter import (
    Interpreter,
    InterpreterResult,
    apply_transition,
    initial_state,
    send,
    transition,
)

__all__ = [
    # Types
    "HistoryType",
    "StateKind",
    # Errors
    "UNCHANGED",
    "ActionDispatchError",
    "DefinitionError",
    "GuardEvaluationError",
    "InvalidConfigurationError",
    "InvalidEventError",
    "PureChartError",
    "UnknownEventIgnored",
    # Definition model
    "Action",
    "Event",
    "Guard",
    "GuardRegistry",
    "MachineDefinition",
    "StateNode",
    "Transition",
    "compile_machine",
    # Engine
    "ActionCollector",
    "Configuration",
    "ConfigurationBuilder",
    "GuardEvaluator",
    "Interpreter",
    "InterpreterResult",
    "TransitionResolver",
    "apply_transition",
    "initial_state",
    "send",
    "transition",
]
