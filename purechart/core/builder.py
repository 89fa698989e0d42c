# purechart/core/builder.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Computes the configuration that results from taking transitions.

Each transition has a *domain*: the least common compound ancestor of its
source and targets, or the source itself for an internal transition into
its own substates. Every active state below the domain is exited (innermost
first), the states between the domain and the targets are entered (outermost
first), and entered compound and parallel states descend into their default
substates until every branch ends in an atomic state.

Exiting a state that owns history pseudostates records its active substates
in the configuration's history. Entering a history pseudostate restores that
record, or falls back to the history state's default target, or to the
parent's default entry.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from purechart.core.actions import Action, ActionCollector
from purechart.core.configuration import Configuration, HistoryRecord
from purechart.core.definition import MachineDefinition
from purechart.core.state import StateNode, Transition
from purechart.core.types import HistoryType, StateId

logger = logging.getLogger(__name__)


def transition_domain(definition: MachineDefinition, transition: Transition) -> Optional[StateNode]:
    """
    The state whose proper descendants a transition may exit and enter.

    :return: ``None`` for targetless transitions, which exit and enter nothing.
    """
    if transition.targetless:
        return None
    source = definition.node(transition.source)
    if (
        transition.internal
        and source.is_compound
        and all(definition.is_descendant(target, source.id) for target in transition.targets)
    ):
        return source
    return definition.lcca([source.id, *transition.targets])


def exit_set(
    definition: MachineDefinition, configuration: Configuration, transition: Transition
) -> List[StateId]:
    """Active states a transition exits, innermost first."""
    domain = transition_domain(definition, transition)
    if domain is None:
        return []
    exited = [state_id for state_id in configuration.active if definition.is_descendant(state_id, domain.id)]
    return _exit_order(definition, exited)


def _exit_order(definition: MachineDefinition, state_ids: Iterable[StateId]) -> List[StateId]:
    # Reverse document order puts every child ahead of its parent
    return sorted(state_ids, key=lambda state_id: definition.states[state_id].order, reverse=True)


def _entry_order(definition: MachineDefinition, state_ids: Iterable[StateId]) -> List[StateId]:
    return sorted(state_ids, key=lambda state_id: definition.states[state_id].order)


class ConfigurationBuilder:
    """
    Applies already-selected transitions to a configuration, reporting the
    actions of every exited state, taken transition and entered state.
    """

    def initial(self, definition: MachineDefinition) -> Tuple[Configuration, Tuple[Action, ...]]:
        """Default descent from the empty configuration into the root."""
        entering = _EntrySet(definition, {})
        entering.add_descendants(definition.root.id)
        collector = ActionCollector()
        leaves = self._enter(definition, entering.states, collector)
        configuration = Configuration(definition, leaves, validate=False)
        return configuration, collector.collect()

    def apply(
        self,
        definition: MachineDefinition,
        configuration: Configuration,
        transitions: Sequence[Transition],
    ) -> Tuple[Configuration, Tuple[Action, ...]]:
        """
        Take ``transitions`` together as one step.

        :param transitions: Non-conflicting transitions, in selection order.
        :return: The resulting configuration and the ordered actions.
        """
        collector = ActionCollector()
        history: Dict[StateId, Tuple[StateId, ...]] = dict(configuration.history)

        exiting: Set[StateId] = set()
        for transition in transitions:
            exiting.update(exit_set(definition, configuration, transition))
        exited = _exit_order(definition, exiting)
        self._record_history(definition, configuration, exited, history)
        for state_id in exited:
            collector.exited(definition.states[state_id].exit)

        for transition in transitions:
            collector.transitioned(transition.actions)

        entering = _EntrySet(definition, history)
        domains: List[StateNode] = []
        for transition in transitions:
            domain = transition_domain(definition, transition)
            if domain is None:
                continue
            domains.append(domain)
            for target in transition.targets:
                entering.add_descendants(target)
            for target in entering.effective_targets(transition.targets):
                entering.add_ancestors(target, domain.id)
        for domain in domains:
            # Only a parallel root can be a domain; regions no target reached restart
            if domain.is_parallel:
                entering.add_regions(domain.id)

        remaining = configuration.active - exiting
        entered = [state_id for state_id in entering.states if state_id not in remaining]
        new_leaves = {state_id for state_id in remaining if definition.states[state_id].is_atomic}
        new_leaves.update(self._enter(definition, entered, collector))

        result = Configuration(definition, new_leaves, history, validate=False)
        logger.debug("Exited %s, entered %s", exited, _entry_order(definition, entered))
        return result, collector.collect()

    @staticmethod
    def _enter(definition: MachineDefinition, state_ids: Iterable[StateId], collector: ActionCollector) -> List[StateId]:
        leaves = []
        for state_id in _entry_order(definition, state_ids):
            node = definition.states[state_id]
            collector.entered(node.entry)
            if node.is_atomic:
                leaves.append(state_id)
        return leaves

    @staticmethod
    def _record_history(
        definition: MachineDefinition,
        configuration: Configuration,
        exited: Sequence[StateId],
        history: Dict[StateId, Tuple[StateId, ...]],
    ) -> None:
        for state_id in exited:
            for child in definition.children(state_id):
                if not child.is_history:
                    continue
                if child.history is HistoryType.DEEP:
                    recorded = [
                        leaf for leaf in configuration.leaves if definition.is_descendant(leaf, state_id)
                    ]
                else:
                    recorded = [c for c in definition.states[state_id].children if c in configuration.active]
                history[child.id] = tuple(_entry_order(definition, recorded))


class _EntrySet:
    """
    Accumulates the states to enter for one step, following default
    initial substates, parallel regions and recorded history.
    """

    def __init__(self, definition: MachineDefinition, history: HistoryRecord) -> None:
        self._definition = definition
        self._history = history
        self.states: Set[StateId] = set()

    def history_targets(self, node: StateNode) -> Tuple[StateId, ...]:
        recorded = self._history.get(node.id)
        if recorded:
            return tuple(recorded)
        if node.default_targets:
            return node.default_targets
        parent = self._definition.node(node.parent)
        if parent.is_compound:
            return (parent.initial,)
        return tuple(region.id for region in self._definition.regions(parent.id))

    def effective_targets(self, targets: Iterable[StateId]) -> List[StateId]:
        result: List[StateId] = []
        for target in targets:
            node = self._definition.states[target]
            if node.is_history:
                result.extend(self.effective_targets(self.history_targets(node)))
            else:
                result.append(target)
        return result

    def add_descendants(self, state_id: StateId) -> None:
        definition = self._definition
        node = definition.states[state_id]
        if node.is_history:
            targets = self.history_targets(node)
            for target in targets:
                self.add_descendants(target)
            for target in self.effective_targets(targets):
                self.add_ancestors(target, node.parent)
            return

        self.states.add(state_id)
        if node.is_compound:
            self.add_descendants(node.initial)
        elif node.is_parallel:
            self.add_regions(state_id)

    def add_ancestors(self, state_id: StateId, upto: StateId) -> None:
        for ancestor in self._definition.ancestors(state_id, upto=upto):
            self.states.add(ancestor.id)
            if ancestor.is_parallel:
                self.add_regions(ancestor.id)

    def add_regions(self, state_id: StateId) -> None:
        for region in self._definition.regions(state_id):
            if not self._has_descendant(region.id):
                self.add_descendants(region.id)

    def _has_descendant(self, state_id: StateId) -> bool:
        return state_id in self.states or any(
            self._definition.is_descendant(entered, state_id) for entered in self.states
        )
