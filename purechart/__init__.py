"""purechart: a pure, side-effect-free statechart interpreter

Given a compiled machine definition, the current configuration and an event,
the interpreter computes the next configuration and the ordered actions the
caller should run. It never runs actions, performs I/O or keeps state of its
own; the caller stores the returned configuration for the next call.

Responsibilities:
    - Compilation of declarative machine descriptions
    - Guard evaluation with loud failures
    - Innermost-wins transition resolution, per parallel region
    - Exit/entry computation bounded by the least common compound ancestor
    - History recording and restoration
    - Ordered action reporting

Interactions:
    - Callers raise named events and render from the returned state
    - Callers persist configurations between calls (see ``persistence``)
    - ``runtime.MachineSession`` is an optional caller-side holder

Cross-cutting Concerns:
    Thread Safety:
        - Compiled definitions are immutable and shared without locks
        - Interpreter calls touch no shared mutable state

    Error Handling:
        - ``DefinitionError`` at compile time, nothing partial is returned
        - ``GuardEvaluationError`` and ``InvalidConfigurationError`` per call

    Logging:
        - Standard ``logging`` loggers named after each module
        - No handlers installed by the library
"""

from purechart.core import (
    UNCHANGED,
    Action,
    ActionDispatchError,
    Configuration,
    DefinitionError,
    Event,
    Guard,
    GuardEvaluationError,
    InterpreterResult,
    InvalidConfigurationError,
    InvalidEventError,
    MachineDefinition,
    PureChartError,
    UnknownEventIgnored,
    apply_transition,
    compile_machine,
    initial_state,
    send,
    transition,
)

__version__ = "0.1.0"

__all__ = [
    "UNCHANGED",
    "Action",
    "ActionDispatchError",
    "Configuration",
    "DefinitionError",
    "Event",
    "Guard",
    "GuardEvaluationError",
    "InterpreterResult",
    "InvalidConfigurationError",
    "InvalidEventError",
    "MachineDefinition",
    "PureChartError",
    "UnknownEventIgnored",
    "apply_transition",
    "compile_machine",
    "initial_state",
    "send",
    "transition",
]
