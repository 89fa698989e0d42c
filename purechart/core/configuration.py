# purechart/core/configuration.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Active-state configurations and their ``StateValue`` rendering.

A configuration is the set of active atomic states of one machine; their
ancestors are implied. For a hierarchical machine this is a single path from
the root to a leaf, for parallel regions one path per region. Configurations
are immutable values: the interpreter returns new ones and the caller stores
them between calls.

State values use the familiar nested form::

    "off"                                  # flat machine
    {"edit": "empty"}                      # hierarchical
    {"player": {"audio": "on", "video": "paused"}}   # parallel regions

Dotted paths (``"edit.empty"``) and lists of them are accepted as input.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from purechart.core.errors import InvalidConfigurationError
from purechart.core.types import HistoryType, StateId, StateValue

if TYPE_CHECKING:
    from purechart.core.definition import MachineDefinition
    from purechart.core.state import StateNode

HistoryRecord = Mapping[StateId, Tuple[StateId, ...]]


class Configuration:
    """
    Immutable set of active leaf states, plus the history recorded so far.

    Equality and hashing consider the active leaves only; two configurations
    with the same leaves but different history compare equal.
    """

    __slots__ = ("_definition", "_leaves", "_active", "_history")

    def __init__(
        self,
        definition: "MachineDefinition",
        leaves: Iterable[StateId],
        history: Optional[HistoryRecord] = None,
        validate: bool = True,
    ) -> None:
        """
        :param definition: The machine the configuration belongs to.
        :param leaves: Ids of the active atomic states.
        :param history: Recorded history, by history state id.
        :param validate: Check consistency against the definition.
        :raises InvalidConfigurationError: If validation fails.
        """
        self._definition = definition
        self._leaves: FrozenSet[StateId] = frozenset(leaves)
        self._history: HistoryRecord = MappingProxyType(
            {state_id: tuple(recorded) for state_id, recorded in (history or {}).items()}
        )
        if validate:
            _check(definition, self._leaves, self._history)
        active = set(self._leaves)
        for leaf in self._leaves:
            active.update(node.id for node in definition.ancestors(leaf))
        self._active: FrozenSet[StateId] = frozenset(active)

    @classmethod
    def from_value(
        cls,
        definition: "MachineDefinition",
        value: Any,
        history: Optional[HistoryRecord] = None,
    ) -> "Configuration":
        """
        Build a configuration from a state value, a dotted path, a list of
        dotted paths, or an existing configuration of the same machine.

        :raises InvalidConfigurationError: If the value does not describe a
            complete, consistent configuration of ``definition``.
        """
        if isinstance(value, Configuration):
            if value.definition is not definition:
                raise InvalidConfigurationError(
                    f"Configuration belongs to machine '{value.definition.id}', not '{definition.id}'."
                )
            return value
        if isinstance(value, str):
            leaves = [_leaf_from_path(definition, value)]
        elif isinstance(value, (list, tuple, set, frozenset)):
            leaves = [_leaf_from_path(definition, path) for path in value]
        elif isinstance(value, Mapping):
            leaves = _leaves_from_value(definition, definition.root, value, definition.root.id)
        else:
            raise InvalidConfigurationError(f"Cannot interpret {value!r} as a state value.")
        return cls(definition, leaves, history)

    @property
    def definition(self) -> "MachineDefinition":
        return self._definition

    @property
    def leaves(self) -> FrozenSet[StateId]:
        """Ids of the active atomic states."""
        return self._leaves

    @property
    def active(self) -> FrozenSet[StateId]:
        """Ids of every active state, leaves and ancestors alike."""
        return self._active

    @property
    def history(self) -> HistoryRecord:
        return self._history

    @property
    def value(self) -> StateValue:
        return _render(self._definition, self._definition.root, self._active)

    @property
    def paths(self) -> Tuple[str, ...]:
        """Dotted key paths of the active leaves, in document order."""
        return tuple(".".join(self._definition.path(leaf)) for leaf in self.ordered_leaves())

    def ordered_leaves(self) -> List[StateId]:
        order = self._definition.states
        return sorted(self._leaves, key=lambda leaf: order[leaf].order)

    def matches(self, path: str) -> bool:
        """
        True if the state named by ``path`` is active. ``path`` is a dotted
        key path from the root or ``#`` followed by a state id.
        """
        if path.startswith("#"):
            return path[1:] in self._active
        node = self._definition.root
        for key in path.split("."):
            node = self._definition.child_by_key(node.id, key)
            if node is None:
                return False
        return node.id in self._active

    def with_history(self, history: HistoryRecord) -> "Configuration":
        return Configuration(self._definition, self._leaves, history, validate=False)

    def __contains__(self, state_id: object) -> bool:
        return state_id in self._active

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return self._leaves == other._leaves

    def __hash__(self) -> int:
        return hash(self._leaves)

    def __repr__(self) -> str:
        return f"Configuration({self.value!r})"


def _check(definition: "MachineDefinition", leaves: FrozenSet[StateId], history: HistoryRecord) -> None:
    if not leaves:
        raise InvalidConfigurationError("A configuration needs at least one active state.")
    for leaf in leaves:
        if leaf not in definition:
            raise InvalidConfigurationError(f"Machine '{definition.id}' has no state '{leaf}'.")
        if not definition.states[leaf].is_atomic:
            raise InvalidConfigurationError(f"State '{leaf}' is not an atomic state.")

    active = set(leaves)
    for leaf in leaves:
        active.update(node.id for node in definition.ancestors(leaf))
    _check_nesting(definition, active, active)

    for state_id, recorded in history.items():
        if state_id not in definition or not definition.states[state_id].is_history:
            raise InvalidConfigurationError(f"History refers to unknown history state '{state_id}'.")
        if recorded:
            _check_record(definition, definition.states[state_id], recorded)


def _check_nesting(definition: "MachineDefinition", active: Iterable[StateId], scope: Iterable[StateId]) -> None:
    active = set(active)
    for state_id in scope:
        node = definition.states[state_id]
        if node.is_compound:
            on = [child for child in node.children if child in active]
            if len(on) != 1:
                raise InvalidConfigurationError(
                    f"Compound state '{state_id}' must have exactly one active substate, found {sorted(on)}."
                )
        elif node.is_parallel:
            missing = [region.id for region in definition.regions(state_id) if region.id not in active]
            if missing:
                raise InvalidConfigurationError(f"Parallel state '{state_id}' is missing regions {missing}.")


def _check_record(definition: "MachineDefinition", node: "StateNode", recorded: Tuple[StateId, ...]) -> None:
    """
    A shallow record holds the owner's active direct children; a deep record
    holds atomic descendants forming one consistent sub-configuration.
    """
    owner = node.parent
    for recorded_id in recorded:
        if (
            not isinstance(recorded_id, str)
            or recorded_id not in definition
            or not definition.is_descendant(recorded_id, owner)
        ):
            raise InvalidConfigurationError(
                f"History '{node.id}' refers to '{recorded_id}', which is not inside '{owner}'."
            )
        recorded_node = definition.states[recorded_id]
        if recorded_node.is_history:
            raise InvalidConfigurationError(f"History '{node.id}' cannot record history state '{recorded_id}'.")
        if node.history is HistoryType.DEEP:
            if not recorded_node.is_atomic:
                raise InvalidConfigurationError(
                    f"Deep history '{node.id}' must record atomic states, not '{recorded_id}'."
                )
        elif recorded_node.parent != owner:
            raise InvalidConfigurationError(
                f"Shallow history '{node.id}' must record direct substates of '{owner}', not '{recorded_id}'."
            )

    active = {owner}
    for recorded_id in recorded:
        active.add(recorded_id)
        active.update(ancestor.id for ancestor in definition.ancestors(recorded_id, upto=owner))
    scope = active if node.history is HistoryType.DEEP else {owner}
    try:
        _check_nesting(definition, active, scope)
    except InvalidConfigurationError as exc:
        raise InvalidConfigurationError(f"History '{node.id}' is inconsistent: {exc}") from None


def _leaf_from_path(definition: "MachineDefinition", path: Any) -> StateId:
    if not isinstance(path, str) or not path:
        raise InvalidConfigurationError(f"Invalid state path {path!r}.")
    if path.startswith("#"):
        node = definition.node(path[1:])
    else:
        node = definition.root
        for key in path.split("."):
            child = definition.child_by_key(node.id, key)
            if child is None:
                raise InvalidConfigurationError(f"State path '{path}' does not exist in '{definition.id}'.")
            node = child
    if not node.is_atomic:
        raise InvalidConfigurationError(f"State path '{path}' does not end at an atomic state.")
    return node.id


def _leaves_from_value(
    definition: "MachineDefinition", node: "StateNode", value: Any, where: str
) -> List[StateId]:
    if node.is_atomic:
        if value not in (None, {}):
            raise InvalidConfigurationError(f"Atomic state '{where}' cannot have a substate value {value!r}.")
        return [node.id]

    if node.is_compound:
        if isinstance(value, str):
            child = definition.child_by_key(node.id, value)
            if child is None or not child.is_atomic:
                raise InvalidConfigurationError(f"'{value}' is not an atomic substate of '{where}'.")
            return [child.id]
        if not isinstance(value, Mapping) or len(value) != 1:
            raise InvalidConfigurationError(f"Compound state '{where}' needs exactly one active substate.")
        (key, sub_value), = value.items()
        child = definition.child_by_key(node.id, key)
        if child is None or child.is_history:
            raise InvalidConfigurationError(f"'{key}' is not a substate of '{where}'.")
        return _leaves_from_value(definition, child, sub_value, child.id)

    if node.is_parallel:
        if not isinstance(value, Mapping):
            raise InvalidConfigurationError(f"Parallel state '{where}' needs a value for each region.")
        regions = {region.key: region for region in definition.regions(node.id)}
        if set(value) != set(regions):
            raise InvalidConfigurationError(
                f"Parallel state '{where}' expects regions {sorted(regions)}, got {sorted(value)}."
            )
        leaves: List[StateId] = []
        for key, region in regions.items():
            leaves.extend(_leaves_from_value(definition, region, value[key], region.id))
        return leaves

    raise InvalidConfigurationError(f"State '{where}' cannot be active.")


def _render(definition: "MachineDefinition", node: "StateNode", active: FrozenSet[StateId]) -> Any:
    if node.is_parallel:
        rendered: Dict[str, Any] = {}
        for region in definition.regions(node.id):
            rendered[region.key] = {} if region.is_atomic else _render(definition, region, active)
        return rendered
    child = next((definition.states[c] for c in node.children if c in active), None)
    if child is None:
        return {}
    if child.is_atomic:
        return child.key
    return {child.key: _render(definition, child, active)}
