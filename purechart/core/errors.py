# purechart/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Optional


class PureChartError(Exception):
    """
    Base exception class for errors raised by the statechart interpreter.
    """


class DefinitionError(PureChartError):
    """
    Raised at compile time when a machine description is malformed or
    inconsistent. Compilation is aborted; no partial machine is produced.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        """
        :param message: Description of the problem.
        :param path: Dotted location in the description where it was found.
        """
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class GuardEvaluationError(PureChartError):
    """
    Raised when a guard predicate fails during evaluation. The transition is
    not taken and the call produces no result.
    """

    def __init__(self, guard_name: str, state_id: str, event_name: str, error: Exception) -> None:
        self.guard_name = guard_name
        self.state_id = state_id
        self.event_name = event_name
        self.error = error
        super().__init__(
            f"Guard '{guard_name}' on state '{state_id}' failed for event '{event_name}': {error}"
        )


class InvalidConfigurationError(PureChartError):
    """
    Raised when a caller supplies a configuration or state value that cannot
    be derived from the given machine definition.
    """


class InvalidEventError(PureChartError):
    """
    Raised when a value cannot be interpreted as an event.
    """


class ActionDispatchError(PureChartError):
    """
    Raised by a session when a reported action has no handler or its handler
    fails. The engine itself never executes actions and never raises this.
    """


class UnknownEventIgnored:
    """
    Not an error. Documents the no-op outcome for an event that matches no
    transition anywhere in the active configuration: the interpreter returns
    the ``UNCHANGED`` marker instead of raising.
    """

    __slots__ = ()

    actions = ()
    changed = False
    done = False

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNCHANGED"

    def __copy__(self) -> "UnknownEventIgnored":
        return self

    def __deepcopy__(self, memo) -> "UnknownEventIgnored":
        return self

    def __reduce__(self):
        return "UNCHANGED"


UNCHANGED = UnknownEventIgnored()
