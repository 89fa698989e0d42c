# purechart/core/guards.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Guard conditions and their evaluation.

A guard is a named, side-effect free predicate over ``(context, payload)``.
Guards compose with ``&``, ``|`` and ``~``. Evaluation never swallows a
failing predicate: the error is surfaced as ``GuardEvaluationError``.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, MutableMapping, Optional, Union

from purechart.core.errors import DefinitionError, GuardEvaluationError
from purechart.core.types import Context, GuardFunction, Payload

logger = logging.getLogger(__name__)


class Guard:
    """
    A named pure predicate gating a transition.

    :param condition: Callable taking ``(context, payload)`` and returning a bool.
    :param name: Name used in error reports; defaults to the callable's name.
    """

    __slots__ = ("_condition", "_name")

    def __init__(self, condition: GuardFunction, name: Optional[str] = None) -> None:
        if not callable(condition):
            raise DefinitionError(f"Guard {name or condition!r} must be callable.")
        self._condition = condition
        self._name = name or getattr(condition, "__name__", None) or repr(condition)

    @property
    def name(self) -> str:
        return self._name

    def __call__(self, context: Context, payload: Payload) -> bool:
        return bool(self._condition(context, payload))

    def __and__(self, other: "Guard") -> "Guard":
        return Guard(lambda ctx, data: self(ctx, data) and other(ctx, data), f"({self.name} & {other.name})")

    def __or__(self, other: "Guard") -> "Guard":
        return Guard(lambda ctx, data: self(ctx, data) or other(ctx, data), f"({self.name} | {other.name})")

    def __invert__(self) -> "Guard":
        return Guard(lambda ctx, data: not self(ctx, data), f"~{self.name}")

    def __repr__(self) -> str:
        return f"Guard({self._name!r})"


class GuardRegistry:
    """
    Maps guard names used in a machine description (``cond``/``guard``) to
    their predicates. Lookup happens once, at compile time.
    """

    def __init__(self, guards: Optional[Mapping[str, Union[Guard, GuardFunction]]] = None) -> None:
        self._guards: Dict[str, Guard] = {}
        for name, guard in (guards or {}).items():
            self.register(name, guard)

    def register(self, name: str, guard: Union[Guard, GuardFunction]) -> None:
        """
        Register a predicate under ``name``.

        :raises DefinitionError: If the name is already taken or the guard is not callable.
        """
        if name in self._guards:
            raise DefinitionError(f"Guard '{name}' is already registered.")
        self._guards[name] = guard if isinstance(guard, Guard) else Guard(guard, name)

    def __contains__(self, name: str) -> bool:
        return name in self._guards

    def resolve(self, spec: Any, path: str) -> Guard:
        """
        Turn a guard reference from a description into a ``Guard``.

        :param spec: A registered name, a ``Guard`` or a plain callable.
        :param path: Location in the description, for error messages.
        :raises DefinitionError: If a name is unknown or the value is not a guard.
        """
        if isinstance(spec, Guard):
            return spec
        if isinstance(spec, str):
            if spec not in self._guards:
                raise DefinitionError(f"Unknown guard '{spec}'.", path)
            return self._guards[spec]
        if callable(spec):
            return Guard(spec)
        raise DefinitionError(f"Cannot interpret {spec!r} as a guard.", path)


def _read_only(context: Context) -> Context:
    """
    Wrap a mutable mapping context in a read-only proxy.

    The proxy is shallow: nested containers and non-mapping contexts are
    passed through as-is, so guards must still leave them untouched.
    """
    if isinstance(context, MutableMapping):
        return MappingProxyType(context)
    return context


class GuardEvaluator:
    """
    Evaluates guards against the caller's context and the event payload.
    Stateless; a single instance may be shared across threads.
    """

    def evaluate(
        self,
        guard: Optional[Guard],
        context: Context,
        payload: Payload,
        state_id: str = "",
        event_name: str = "",
    ) -> bool:
        """
        :param guard: The guard to check; ``None`` always passes.
        :param context: Caller-supplied extended state.
        :param payload: Payload of the triggering event.
        :param state_id: Source state, for error reports.
        :param event_name: Triggering event, for error reports.
        :return: True if the guard passes.
        :raises GuardEvaluationError: If the predicate raises.
        """
        if guard is None:
            return True
        try:
            result = guard(_read_only(context), payload)
        except Exception as e:
            raise GuardEvaluationError(guard.name, state_id, event_name, e) from e
        logger.debug("Guard %s on %s for %s -> %s", guard.name, state_id, event_name, result)
        return result


def evaluate(guard: Optional[Guard], context: Context, payload: Payload) -> bool:
    """Module-level shortcut for ``GuardEvaluator().evaluate``."""
    return _default_evaluator.evaluate(guard, context, payload)


_default_evaluator = GuardEvaluator()
