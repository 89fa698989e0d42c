# purechart/core/definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Machine definitions and their compilation from declarative descriptions.

A description is a JSON-like mapping::

    {
        "id": "toggle",
        "initial": "off",
        "states": {
            "off": {"on": {"TOGGLE": "on"}},
            "on": {"on": {"TOGGLE": "off"}},
        },
    }

``compile_machine`` turns it into a ``MachineDefinition`` in two passes: the
first lays out the state tree and assigns ids, the second resolves initial
children, transition targets, guards and actions against that tree. Any
inconsistency raises ``DefinitionError`` and nothing is returned.

Target references inside ``on``:

- ``"#some.id"`` names a state by id;
- ``".child.grandchild"`` names a descendant of the source state;
- ``"sibling"`` or ``"sibling.child"`` is resolved from the source's parent
  (from the root itself for transitions declared on the root).
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from purechart.core.actions import parse_actions
from purechart.core.errors import DefinitionError, InvalidConfigurationError
from purechart.core.guards import Guard, GuardRegistry
from purechart.core.state import StateNode, Transition
from purechart.core.types import EventName, HistoryType, StateId, StateKind

if TYPE_CHECKING:
    from purechart.core.configuration import Configuration
    from purechart.core.interpreter import InterpreterResult

logger = logging.getLogger(__name__)

DEFAULT_MACHINE_ID = "machine"

_STATE_KEYS = frozenset(
    {"id", "type", "initial", "states", "on", "entry", "exit", "history", "target", "meta", "description"}
)
_ROOT_KEYS = _STATE_KEYS | {"version"}
_TRANSITION_KEYS = frozenset({"target", "cond", "guard", "actions", "internal", "description"})


class MachineDefinition:
    """
    An immutable, compiled statechart.

    Nodes are held in one flat id-indexed mapping; hierarchy is expressed by
    parent and child ids. Instances are never mutated after compilation and
    may be shared freely across threads and calls.
    """

    __slots__ = ("_id", "_root", "_states", "_events", "_document_order")

    def __init__(self, machine_id: str, root: StateId, states: Mapping[StateId, StateNode]) -> None:
        self._id = machine_id
        self._root = root
        self._states = MappingProxyType(dict(states))
        self._events: FrozenSet[EventName] = frozenset(
            name for node in self._states.values() for name in node.on
        )
        self._document_order: Tuple[StateId, ...] = tuple(
            sorted(self._states, key=lambda state_id: self._states[state_id].order)
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def root(self) -> StateNode:
        return self._states[self._root]

    @property
    def states(self) -> Mapping[StateId, StateNode]:
        """Read-only mapping of every node by id."""
        return self._states

    @property
    def events(self) -> FrozenSet[EventName]:
        """Every event name some state declares a transition for."""
        return self._events

    @property
    def document_order(self) -> Tuple[StateId, ...]:
        return self._document_order

    def __contains__(self, state_id: object) -> bool:
        return state_id in self._states

    def __repr__(self) -> str:
        return f"<MachineDefinition {self._id} ({len(self._states)} states)>"

    def node(self, state_id: StateId) -> StateNode:
        """
        Look up a node by id.

        :raises InvalidConfigurationError: If no such state exists.
        """
        try:
            return self._states[state_id]
        except KeyError:
            raise InvalidConfigurationError(f"Machine '{self._id}' has no state '{state_id}'.") from None

    def parent(self, state_id: StateId) -> Optional[StateNode]:
        parent_id = self.node(state_id).parent
        return self._states[parent_id] if parent_id is not None else None

    def children(self, state_id: StateId) -> Tuple[StateNode, ...]:
        return tuple(self._states[child] for child in self.node(state_id).children)

    def regions(self, state_id: StateId) -> Tuple[StateNode, ...]:
        """Children entered together when a parallel state is entered."""
        return tuple(child for child in self.children(state_id) if not child.is_history)

    def child_by_key(self, state_id: StateId, key: str) -> Optional[StateNode]:
        for child in self.children(state_id):
            if child.key == key:
                return child
        return None

    def ancestors(self, state_id: StateId, upto: Optional[StateId] = None) -> List[StateNode]:
        """
        Proper ancestors of a state, innermost first.

        :param upto: Stop before this ancestor (exclusive).
        """
        result = []
        current = self.node(state_id).parent
        while current is not None and current != upto:
            node = self._states[current]
            result.append(node)
            current = node.parent
        return result

    def is_descendant(self, state_id: StateId, ancestor_id: StateId) -> bool:
        """True if ``state_id`` is a proper descendant of ``ancestor_id``."""
        current = self.node(state_id).parent
        while current is not None:
            if current == ancestor_id:
                return True
            current = self._states[current].parent
        return False

    def path(self, state_id: StateId) -> Tuple[str, ...]:
        """Keys from just below the root down to the state."""
        keys = [self.node(state_id).key]
        keys.extend(node.key for node in self.ancestors(state_id))
        keys.pop()  # root
        return tuple(reversed(keys))

    def lcca(self, state_ids: List[StateId]) -> StateNode:
        """
        Least common compound ancestor: the innermost compound state (or the
        root) that is a proper ancestor of every given state.
        """
        head, tail = state_ids[0], state_ids[1:]
        for ancestor in self.ancestors(head):
            if not (ancestor.is_compound or ancestor.id == self._root):
                continue
            if all(self.is_descendant(other, ancestor.id) for other in tail):
                return ancestor
        return self.root

    # Interpreter facade shortcuts

    def initial_state(self, context: Any = None) -> "InterpreterResult":
        from purechart.core.interpreter import initial_state

        return initial_state(self, context)

    def transition(self, configuration: "Configuration", context: Any, event: Any) -> Any:
        from purechart.core.interpreter import transition

        return transition(self, configuration, context, event)

    def send(self, state: Any, event: Any, context: Any = None) -> Any:
        from purechart.core.interpreter import send

        return send(self, state, context, event)


class _Draft:
    """Mutable scratch record for one state while the tree is being compiled."""

    __slots__ = ("id", "key", "kind", "parent", "depth", "order", "children", "spec", "path")

    def __init__(self, state_id: StateId, key: str, kind: StateKind, parent: Optional["_Draft"],
                 order: int, spec: Mapping[str, Any], path: str) -> None:
        self.id = state_id
        self.key = key
        self.kind = kind
        self.parent = parent
        self.depth = parent.depth + 1 if parent else 0
        self.order = order
        self.children: List["_Draft"] = []
        self.spec = spec
        self.path = path


class _Compiler:
    def __init__(self, description: Mapping[str, Any], guards: GuardRegistry, strict: bool) -> None:
        self._description = description
        self._guards = guards
        self._strict = strict
        self._drafts: Dict[StateId, _Draft] = {}
        self._order = 0

    def compile(self) -> MachineDefinition:
        description = self._description
        if not isinstance(description, Mapping):
            raise DefinitionError("Machine description must be a mapping.")
        machine_id = description.get("id", DEFAULT_MACHINE_ID)
        if not isinstance(machine_id, str) or not machine_id:
            raise DefinitionError("Machine 'id' must be a non-empty string.")

        root = self._layout(machine_id, description, None, machine_id, machine_id)
        if root.kind in (StateKind.FINAL, StateKind.HISTORY):
            raise DefinitionError(f"Root state cannot be of type '{root.kind.value}'.", root.path)

        states = {draft.id: self._freeze(draft) for draft in self._drafts.values()}
        definition = MachineDefinition(machine_id, root.id, states)
        logger.debug("Compiled machine %s with %d states", machine_id, len(states))
        return definition

    # Pass 1: tree layout

    def _layout(self, key: str, spec: Any, parent: Optional[_Draft], path: str, default_id: str) -> _Draft:
        if not isinstance(spec, Mapping):
            raise DefinitionError("State description must be a mapping.", path)
        allowed = _ROOT_KEYS if parent is None else _STATE_KEYS
        if self._strict:
            unknown = sorted(set(spec) - allowed)
            if unknown:
                raise DefinitionError(f"Unknown keys {unknown}.", path)

        state_id = spec.get("id", default_id)
        if not isinstance(state_id, str) or not state_id:
            raise DefinitionError("State 'id' must be a non-empty string.", path)
        if state_id in self._drafts:
            raise DefinitionError(f"Duplicate state id '{state_id}'.", path)

        children_spec = spec.get("states") or {}
        if not isinstance(children_spec, Mapping):
            raise DefinitionError("'states' must be a mapping of state names.", path)

        draft = _Draft(state_id, key, self._kind(spec, bool(children_spec), path), parent, self._order, spec, path)
        self._order += 1
        self._drafts[state_id] = draft

        for child_key, child_spec in children_spec.items():
            if not isinstance(child_key, str) or not child_key or "." in child_key or child_key.startswith("#"):
                raise DefinitionError(f"Invalid state name {child_key!r}.", path)
            child_path = f"{path}.{child_key}"
            child_default_id = f"{default_id}.{child_key}"
            draft.children.append(self._layout(child_key, child_spec, draft, child_path, child_default_id))
        return draft

    @staticmethod
    def _kind(spec: Mapping[str, Any], has_children: bool, path: str) -> StateKind:
        declared = spec.get("type")
        if declared is None:
            if "history" in spec:
                return StateKind.HISTORY
            return StateKind.COMPOUND if has_children else StateKind.ATOMIC
        try:
            kind = StateKind(declared)
        except ValueError:
            raise DefinitionError(f"Unknown state type {declared!r}.", path) from None

        if kind in (StateKind.ATOMIC, StateKind.FINAL, StateKind.HISTORY) and has_children:
            raise DefinitionError(f"A state of type '{kind.value}' cannot have substates.", path)
        if kind in (StateKind.COMPOUND, StateKind.PARALLEL) and not has_children:
            raise DefinitionError(f"A state of type '{kind.value}' needs substates.", path)
        return kind

    # Pass 2: references

    def _freeze(self, draft: _Draft) -> StateNode:
        spec = draft.spec
        kind = draft.kind

        if kind in (StateKind.FINAL, StateKind.HISTORY) and spec.get("on"):
            raise DefinitionError(f"A state of type '{kind.value}' cannot declare transitions.", draft.path)
        if kind is StateKind.HISTORY and (spec.get("entry") or spec.get("exit")):
            raise DefinitionError("History states cannot declare entry or exit actions.", draft.path)
        if kind is StateKind.HISTORY and draft.parent is None:
            raise DefinitionError("History states must belong to a compound or parallel state.", draft.path)

        history = None
        default_targets: Tuple[StateId, ...] = ()
        if kind is StateKind.HISTORY:
            history = self._history_type(spec.get("history", HistoryType.SHALLOW.value), draft.path)
            if spec.get("target") is not None:
                default_targets = self._targets(draft, spec["target"], f"{draft.path}.target")
                for target in default_targets:
                    if self._drafts[target].kind is StateKind.HISTORY:
                        raise DefinitionError("History default target cannot be a history state.", draft.path)
                    if not self._is_descendant(target, draft.parent.id):
                        raise DefinitionError(
                            f"History default target '{target}' is outside '{draft.parent.id}'.", draft.path
                        )
        elif "history" in spec:
            raise DefinitionError("'history' is only valid on history states.", draft.path)
        elif "target" in spec:
            raise DefinitionError("'target' is only valid on history states.", draft.path)

        meta = spec.get("meta") or {}
        if not isinstance(meta, Mapping):
            raise DefinitionError("'meta' must be a mapping.", draft.path)

        return StateNode(
            id=draft.id,
            key=draft.key,
            kind=kind,
            parent=draft.parent.id if draft.parent else None,
            depth=draft.depth,
            order=draft.order,
            children=tuple(child.id for child in draft.children),
            initial=self._initial(draft),
            on=MappingProxyType(self._transitions(draft)),
            entry=parse_actions(spec.get("entry"), f"{draft.path}.entry"),
            exit=parse_actions(spec.get("exit"), f"{draft.path}.exit"),
            history=history,
            default_targets=default_targets,
            meta=MappingProxyType(dict(meta)),
        )

    @staticmethod
    def _history_type(value: Any, path: str) -> HistoryType:
        try:
            return HistoryType(value)
        except ValueError:
            raise DefinitionError(f"History must be 'shallow' or 'deep', not {value!r}.", path) from None

    def _initial(self, draft: _Draft) -> Optional[StateId]:
        initial = draft.spec.get("initial")
        if draft.kind is not StateKind.COMPOUND:
            if initial is not None:
                raise DefinitionError(
                    f"Only compound states declare 'initial'; this state is '{draft.kind.value}'.", draft.path
                )
            return None
        if initial is None:
            raise DefinitionError("Compound state must declare an 'initial' substate.", draft.path)
        for child in draft.children:
            if child.key == initial:
                if child.kind is StateKind.HISTORY:
                    raise DefinitionError(f"Initial state '{initial}' cannot be a history state.", draft.path)
                return child.id
        raise DefinitionError(f"Initial state '{initial}' is not a substate.", draft.path)

    def _transitions(self, draft: _Draft) -> Dict[EventName, Tuple[Transition, ...]]:
        on = draft.spec.get("on") or {}
        if not isinstance(on, Mapping):
            raise DefinitionError("'on' must be a mapping of event names.", draft.path)

        result: Dict[EventName, Tuple[Transition, ...]] = {}
        for event, specs in on.items():
            if not isinstance(event, str) or not event:
                raise DefinitionError(f"Invalid event name {event!r}.", draft.path)
            path = f"{draft.path}.on.{event}"
            if not isinstance(specs, (list, tuple)):
                specs = [specs]
            result[event] = tuple(
                self._transition(draft, event, spec, index, f"{path}[{index}]" if len(specs) > 1 else path)
                for index, spec in enumerate(specs)
            )
        return result

    def _transition(self, draft: _Draft, event: EventName, spec: Any, index: int, path: str) -> Transition:
        if spec is None or isinstance(spec, str):
            spec = {"target": spec}
        if not isinstance(spec, Mapping):
            raise DefinitionError(f"Cannot interpret {spec!r} as a transition.", path)
        if self._strict:
            unknown = sorted(set(spec) - _TRANSITION_KEYS)
            if unknown:
                raise DefinitionError(f"Unknown keys {unknown}.", path)
        if "cond" in spec and "guard" in spec:
            raise DefinitionError("Declare either 'cond' or 'guard', not both.", path)

        guard_spec = spec.get("cond", spec.get("guard"))
        guard: Optional[Guard] = self._guards.resolve(guard_spec, path) if guard_spec is not None else None

        targets = self._targets(draft, spec.get("target"), path)
        internal = bool(spec.get("internal", False))
        if internal:
            for target in targets:
                if target != draft.id and not self._is_descendant(target, draft.id):
                    raise DefinitionError(
                        f"Internal transition target '{target}' is not '{draft.id}' or one of its substates.",
                        path,
                    )
                if target != draft.id and draft.kind is StateKind.PARALLEL:
                    raise DefinitionError("Parallel states cannot take internal transitions into a region.", path)

        return Transition(
            source=draft.id,
            event=event,
            targets=targets,
            guard=guard,
            actions=parse_actions(spec.get("actions"), f"{path}.actions"),
            internal=internal,
            index=index,
        )

    def _targets(self, draft: _Draft, spec: Any, path: str) -> Tuple[StateId, ...]:
        if spec is None:
            return ()
        if isinstance(spec, str):
            spec = [spec]
        if not isinstance(spec, (list, tuple)):
            raise DefinitionError(f"Cannot interpret {spec!r} as a target.", path)
        targets = tuple(self._resolve_target(draft, ref, path) for ref in spec)
        if len(targets) > 1:
            self._check_compatible(targets, path)
        return targets

    def _resolve_target(self, draft: _Draft, ref: Any, path: str) -> StateId:
        state_id = self._lookup_target(draft, ref, path)
        if self._drafts[state_id].parent is None:
            raise DefinitionError(f"Target '{ref}' names the root state, which cannot be re-entered.", path)
        return state_id

    def _lookup_target(self, draft: _Draft, ref: Any, path: str) -> StateId:
        if not isinstance(ref, str) or not ref:
            raise DefinitionError(f"Invalid target {ref!r}.", path)
        if ref.startswith("#"):
            if ref[1:] not in self._drafts:
                raise DefinitionError(f"Target '{ref}' does not name any state.", path)
            return ref[1:]
        if ref.startswith("."):
            start, keys = draft, ref[1:].split(".")
        else:
            start, keys = draft.parent or draft, ref.split(".")

        current = start
        for key in keys:
            current = next((child for child in current.children if child.key == key), None)
            if current is None:
                raise DefinitionError(f"Target '{ref}' does not resolve from '{draft.id}'.", path)
        return current.id

    def _check_compatible(self, targets: Tuple[StateId, ...], path: str) -> None:
        # Several targets may only be entered together when they sit in distinct parallel regions
        for i, first in enumerate(targets):
            for second in targets[i + 1:]:
                if first == second or self._is_descendant(first, second) or self._is_descendant(second, first):
                    raise DefinitionError(f"Targets '{first}' and '{second}' overlap.", path)
                common = self._common_ancestor(first, second)
                if common.kind is not StateKind.PARALLEL:
                    raise DefinitionError(
                        f"Targets '{first}' and '{second}' are not in parallel regions.", path
                    )

    def _is_descendant(self, state_id: StateId, ancestor_id: StateId) -> bool:
        current = self._drafts[state_id].parent
        while current is not None:
            if current.id == ancestor_id:
                return True
            current = current.parent
        return False

    def _common_ancestor(self, first: StateId, second: StateId) -> _Draft:
        current = self._drafts[first].parent
        while current is not None and not self._is_descendant(second, current.id):
            current = current.parent
        return current


def compile_machine(
    description: Mapping[str, Any],
    guards: Optional[Mapping[str, Any]] = None,
    strict: bool = False,
) -> MachineDefinition:
    """
    Compile a declarative description into an immutable ``MachineDefinition``.

    :param description: JSON-like machine description.
    :param guards: Predicates referenced by name from ``cond``/``guard``.
    :param strict: Reject unknown keys in state and transition descriptions.
    :raises DefinitionError: If the description is malformed or inconsistent.
    """
    registry = guards if isinstance(guards, GuardRegistry) else GuardRegistry(guards)
    return _Compiler(description, registry, strict).compile()
