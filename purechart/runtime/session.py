# purechart/runtime/session.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Caller-side holder for one running machine.

The interpreter is stateless; a session is the piece of caller code that
keeps the current configuration and context between events and runs the
actions the interpreter reports. It is optional: anything that stores the
returned configuration can drive the interpreter directly.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from purechart.core.actions import Action
from purechart.core.configuration import Configuration
from purechart.core.definition import MachineDefinition
from purechart.core.errors import ActionDispatchError, PureChartError
from purechart.core.events import Event
from purechart.core.interpreter import Interpreter, InterpreterResult, TransitionOutcome

logger = logging.getLogger(__name__)

ActionHandler = Callable[[Action, Any, Optional[Event]], None]


class MachineSession:
    """
    Keeps the current configuration of one machine and dispatches reported
    actions to registered handlers.

    Events are processed one at a time under a lock, so a session may be
    shared between threads. Handlers run while the lock is held and must not
    send events to the same session.
    """

    def __init__(
        self,
        definition: MachineDefinition,
        context: Any = None,
        handlers: Optional[Dict[str, ActionHandler]] = None,
        hooks: Optional[List[Any]] = None,
        ignore_unhandled: bool = False,
        interpreter: Optional[Interpreter] = None,
    ) -> None:
        """
        :param definition: Compiled machine to run.
        :param context: Extended state handed to guards and action handlers.
        :param handlers: Action type to handler ``(action, context, event)``.
        :param hooks: Objects with optional ``on_transition(previous, result, event)``
            and ``on_error(error)`` methods.
        :param ignore_unhandled: Skip actions without a handler instead of raising.
        :param interpreter: Interpreter to use; a default one if omitted.
        """
        self._definition = definition
        self._context = context
        self._handlers: Dict[str, ActionHandler] = dict(handlers or {})
        self._hooks = list(hooks or [])
        self._ignore_unhandled = ignore_unhandled
        self._interpreter = interpreter or Interpreter()
        self._configuration: Optional[Configuration] = None
        self._lock = threading.RLock()

    @property
    def definition(self) -> MachineDefinition:
        return self._definition

    @property
    def context(self) -> Any:
        return self._context

    @property
    def configuration(self) -> Optional[Configuration]:
        return self._configuration

    @property
    def started(self) -> bool:
        return self._configuration is not None

    @property
    def value(self) -> Any:
        if self._configuration is None:
            return None
        return self._configuration.value

    def register_action(self, action_type: str, handler: ActionHandler) -> None:
        """Register (or replace) the handler for an action type."""
        if not callable(handler):
            raise ValueError("Action handler must be callable")
        with self._lock:
            self._handlers[action_type] = handler

    def add_hook(self, hook: Any) -> None:
        with self._lock:
            self._hooks.append(hook)

    def start(self, configuration: Any = None) -> InterpreterResult:
        """
        Enter the machine, or resume from a stored configuration.

        Resuming runs no actions: the states are already considered entered.
        """
        with self._lock:
            if configuration is not None:
                self._configuration = Configuration.from_value(self._definition, configuration)
                result = InterpreterResult(self._configuration, (), changed=False)
                logger.debug("Session for %s resumed in %s", self._definition.id, self._configuration.paths)
                return result

            result = self._interpreter.initial_state(self._definition, self._context)
            self._configuration = result.configuration
            self._notify_transition(None, result, None)
            self._dispatch(result.actions, None)
            return result

    def send(self, event: Any) -> TransitionOutcome:
        """
        Process one event.

        :return: The interpreter result, or ``UNCHANGED`` when nothing matched.
        :raises PureChartError: If the session is not started, a guard fails,
            or an action cannot be dispatched.
        """
        with self._lock:
            if self._configuration is None:
                raise PureChartError("Session has not been started")
            event = Event.coerce(event)
            previous = self._configuration
            try:
                result = self._interpreter.transition(self._definition, previous, self._context, event)
            except PureChartError as e:
                self._notify_error(e)
                raise
            if not result:
                return result

            self._configuration = result.configuration
            self._notify_transition(previous, result, event)
            self._dispatch(result.actions, event)
            return result

    def matches(self, path: str) -> bool:
        return self._configuration is not None and self._configuration.matches(path)

    def _dispatch(self, actions: Iterable[Action], event: Optional[Event]) -> None:
        for action in actions:
            handler = self._handlers.get(action.type)
            if handler is None:
                if self._ignore_unhandled:
                    logger.debug("No handler for action %s, skipping", action.type)
                    continue
                error = ActionDispatchError(f"No handler registered for action '{action.type}'")
                self._notify_error(error)
                raise error
            try:
                handler(action, self._context, event)
            except Exception as e:
                logger.exception("Action %s failed", action.type)
                error = ActionDispatchError(f"Action '{action.type}' failed: {e}")
                self._notify_error(error)
                raise error from e

    def _notify_transition(
        self, previous: Optional[Configuration], result: InterpreterResult, event: Optional[Event]
    ) -> None:
        for hook in self._hooks:
            if hasattr(hook, "on_transition"):
                hook.on_transition(previous, result, event)

    def _notify_error(self, error: Exception) -> None:
        for hook in self._hooks:
            if hasattr(hook, "on_error"):
                hook.on_error(error)
