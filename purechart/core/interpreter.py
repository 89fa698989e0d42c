# purechart/core/interpreter.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Public entry points of the statechart interpreter.

Every function here is pure: the result depends only on the arguments, no
module state is read or written, and actions are reported, never run. The
caller keeps the returned configuration and passes it back on the next call::

    machine = compile_machine(description)
    state = initial_state(machine)
    result = transition(machine, state.configuration, context, "TOGGLE")
    if result:
        run(result.actions)
        state = result
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from purechart.core.actions import Action
from purechart.core.builder import ConfigurationBuilder
from purechart.core.configuration import Configuration
from purechart.core.definition import MachineDefinition
from purechart.core.errors import UNCHANGED, UnknownEventIgnored
from purechart.core.events import Event
from purechart.core.guards import GuardEvaluator
from purechart.core.resolver import TransitionResolver
from purechart.core.state import StateNode, Transition
from purechart.core.types import Context, StateValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterpreterResult:
    """
    Outcome of one interpreter call.

    :ivar configuration: The new active configuration.
    :ivar actions: Actions for the caller to run, in order.
    :ivar changed: Whether the active configuration differs from the previous one.
    """

    configuration: Configuration
    actions: Tuple[Action, ...] = ()
    changed: bool = True

    @property
    def value(self) -> StateValue:
        return self.configuration.value

    @property
    def done(self) -> bool:
        """True once the machine has reached a top-level final state."""
        definition = self.configuration.definition
        return _complete(definition, definition.root, self.configuration)

    def matches(self, path: str) -> bool:
        return self.configuration.matches(path)

    def __bool__(self) -> bool:
        return True


TransitionOutcome = Union[InterpreterResult, UnknownEventIgnored]


class Interpreter:
    """
    Composes the resolver and the configuration builder. Holds no state of
    its own beyond those stateless collaborators, so one instance can serve
    any number of machines and threads.
    """

    def __init__(
        self,
        resolver: Optional[TransitionResolver] = None,
        builder: Optional[ConfigurationBuilder] = None,
    ) -> None:
        self._resolver = resolver or TransitionResolver(GuardEvaluator())
        self._builder = builder or ConfigurationBuilder()

    def initial_state(self, definition: MachineDefinition, context: Context = None) -> InterpreterResult:
        """
        Enter the machine: descend from the root through default substates.

        ``context`` is accepted for symmetry with ``transition``; the initial
        descent involves no guards.
        """
        configuration, actions = self._builder.initial(definition)
        logger.debug("Machine %s starts in %s", definition.id, configuration.paths)
        return InterpreterResult(configuration, actions, changed=True)

    def transition(
        self,
        definition: MachineDefinition,
        configuration: Configuration,
        context: Context,
        event: Any,
    ) -> TransitionOutcome:
        """
        Compute the next configuration for ``event``.

        :param configuration: Current configuration, as returned by an earlier call.
        :param context: Caller-owned extended state handed to guards.
        :param event: An ``Event``, an event name, or a mapping with a ``name``.
        :return: The new result, or ``UNCHANGED`` when no transition matches.
        :raises InvalidConfigurationError: If the configuration is not of this machine.
        :raises GuardEvaluationError: If a guard fails.
        """
        configuration = Configuration.from_value(definition, configuration)
        event = Event.coerce(event)

        selected = self._resolver.resolve(definition, configuration, event, context)
        if not selected:
            return UNCHANGED

        next_configuration, actions = self._builder.apply(definition, configuration, selected)
        logger.debug(
            "Machine %s: %s on %s -> %s", definition.id, configuration.paths, event.name, next_configuration.paths
        )
        return InterpreterResult(next_configuration, actions, changed=next_configuration != configuration)

    def send(self, definition: MachineDefinition, state: Any, context: Context, event: Any) -> TransitionOutcome:
        """
        Like ``transition`` but ``state`` may also be a state value, a dotted
        path, a previous ``InterpreterResult``, or a ``{"value": ..., "history": ...}``
        state object.
        """
        if isinstance(state, InterpreterResult):
            state = state.configuration
        elif _is_state_object(definition, state):
            state = Configuration.from_value(definition, state["value"], state.get("history"))
        return self.transition(definition, Configuration.from_value(definition, state), context, event)

    def apply_transition(
        self, definition: MachineDefinition, configuration: Configuration, transition: Transition
    ) -> InterpreterResult:
        """Take one given transition, bypassing event resolution and guards."""
        configuration = Configuration.from_value(definition, configuration)
        next_configuration, actions = self._builder.apply(definition, configuration, [transition])
        return InterpreterResult(next_configuration, actions, changed=next_configuration != configuration)


def _is_state_object(definition: MachineDefinition, state: Any) -> bool:
    # A root substate named "value" makes the mapping a plain state value
    return (
        isinstance(state, Mapping)
        and "value" in state
        and definition.child_by_key(definition.root.id, "value") is None
    )


def _complete(definition: MachineDefinition, node: StateNode, configuration: Configuration) -> bool:
    if node.is_parallel:
        return all(_complete(definition, region, configuration) for region in definition.regions(node.id))
    if node.is_compound:
        return any(
            child.is_final and child.id in configuration for child in definition.children(node.id)
        )
    return node.is_final


_interpreter = Interpreter()


def initial_state(definition: MachineDefinition, context: Context = None) -> InterpreterResult:
    return _interpreter.initial_state(definition, context)


def transition(
    definition: MachineDefinition, configuration: Configuration, context: Context, event: Any
) -> TransitionOutcome:
    return _interpreter.transition(definition, configuration, context, event)


def send(definition: MachineDefinition, state: Any, context: Context, event: Any) -> TransitionOutcome:
    return _interpreter.send(definition, state, context, event)


def apply_transition(
    definition: MachineDefinition, configuration: Configuration, transition: Transition
) -> InterpreterResult:
    return _interpreter.apply_transition(definition, configuration, transition)
