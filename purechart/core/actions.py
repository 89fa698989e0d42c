# purechart/core/actions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Tuple

from purechart.core.errors import DefinitionError


@dataclass(frozen=True)
class Action:
    """
    An effect descriptor reported to the caller. The engine never executes
    actions; ``type`` names what to do and ``params`` carries its data.
    """

    type: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Action):
            return NotImplemented
        return self.type == other.type and dict(self.params) == dict(other.params)

    def __hash__(self) -> int:
        return hash(self.type)

    def to_dict(self) -> dict:
        return {"type": self.type, **self.params}


def parse_action(spec: Any, path: str) -> Action:
    """
    Build an ``Action`` from its declarative form: a bare type string, a
    mapping with a ``type`` key (other keys become params), or an ``Action``.
    """
    if isinstance(spec, Action):
        return spec
    if isinstance(spec, str) and spec:
        return Action(spec)
    if isinstance(spec, Mapping):
        data = dict(spec)
        action_type = data.pop("type", None)
        if not action_type or not isinstance(action_type, str):
            raise DefinitionError("Action must declare a string 'type'.", path)
        params = data.pop("params", None)
        if params is not None:
            if not isinstance(params, Mapping):
                raise DefinitionError("Action 'params' must be a mapping.", path)
            data = {**params, **data}
        return Action(action_type, data)
    raise DefinitionError(f"Cannot interpret {spec!r} as an action.", path)


def parse_actions(spec: Any, path: str) -> Tuple[Action, ...]:
    """Parse a single action spec or a list of them, keeping declaration order."""
    if spec is None:
        return ()
    if isinstance(spec, (list, tuple)):
        return tuple(parse_action(item, f"{path}[{i}]") for i, item in enumerate(spec))
    return (parse_action(spec, path),)


class ActionCollector:
    """
    Gathers the actions of one interpreter call in their reporting order:
    exit actions (innermost first), transition actions (declaration order),
    entry actions (outermost first).
    """

    def __init__(self) -> None:
        self._exits: List[Action] = []
        self._transitions: List[Action] = []
        self._entries: List[Action] = []

    def exited(self, actions: Iterable[Action]) -> None:
        self._exits.extend(actions)

    def transitioned(self, actions: Iterable[Action]) -> None:
        self._transitions.extend(actions)

    def entered(self, actions: Iterable[Action]) -> None:
        self._entries.extend(actions)

    def collect(self) -> Tuple[Action, ...]:
        """Return the ordered action list."""
        ordered: List[Action] = list(self._exits)
        ordered.extend(self._transitions)
        ordered.extend(self._entries)
        return tuple(ordered)
