# purechart/core/state.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Immutable nodes of a compiled machine.

Nodes reference each other by id only: each node stores its parent id and
the ids of its children, and the owning ``MachineDefinition`` indexes all of
them in one flat mapping. No node is mutated after compilation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from purechart.core.actions import Action
from purechart.core.guards import Guard
from purechart.core.types import EventName, HistoryType, StateId, StateKind

_EMPTY: Mapping = MappingProxyType({})


@dataclass(frozen=True, eq=False)
class Transition:
    """
    A candidate path out of ``source`` for ``event``.

    An empty ``targets`` tuple makes the transition targetless: its actions
    are reported but no state is exited or entered. ``internal`` transitions
    to the source itself behave the same way; internal transitions to
    descendants do not exit the source.
    """

    source: StateId
    event: EventName
    targets: Tuple[StateId, ...] = ()
    guard: Optional[Guard] = None
    actions: Tuple[Action, ...] = ()
    internal: bool = False
    index: int = 0

    @property
    def targetless(self) -> bool:
        return not self.targets or (self.internal and self.targets == (self.source,))

    def __repr__(self) -> str:
        guard = f" [{self.guard.name}]" if self.guard else ""
        targets = ", ".join(self.targets) or "-"
        return f"<Transition {self.source} --{self.event}{guard}--> {targets}>"


@dataclass(frozen=True, eq=False)
class StateNode:
    """
    One state of a compiled machine.

    :ivar id: Machine-wide unique id (dotted key path unless declared).
    :ivar key: Name of the state within its parent.
    :ivar order: Position in document (depth-first declaration) order.
    :ivar initial: Id of the default child of a compound state.
    :ivar on: Event name to ordered candidate transitions.
    """

    id: StateId
    key: str
    kind: StateKind
    parent: Optional[StateId] = None
    depth: int = 0
    order: int = 0
    children: Tuple[StateId, ...] = ()
    initial: Optional[StateId] = None
    on: Mapping[EventName, Tuple[Transition, ...]] = field(default_factory=lambda: _EMPTY)
    entry: Tuple[Action, ...] = ()
    exit: Tuple[Action, ...] = ()
    history: Optional[HistoryType] = None
    default_targets: Tuple[StateId, ...] = ()
    meta: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @property
    def is_atomic(self) -> bool:
        return self.kind in (StateKind.ATOMIC, StateKind.FINAL)

    @property
    def is_compound(self) -> bool:
        return self.kind is StateKind.COMPOUND

    @property
    def is_parallel(self) -> bool:
        return self.kind is StateKind.PARALLEL

    @property
    def is_final(self) -> bool:
        return self.kind is StateKind.FINAL

    @property
    def is_history(self) -> bool:
        return self.kind is StateKind.HISTORY

    @property
    def events(self) -> Tuple[EventName, ...]:
        return tuple(self.on)

    def transitions_for(self, event_name: EventName) -> Tuple[Transition, ...]:
        return self.on.get(event_name, ())

    def __repr__(self) -> str:
        return f"<StateNode {self.id} ({self.kind.value})>"
