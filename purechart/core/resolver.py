# purechart/core/resolver.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Selection of the transitions an event fires.

Innermost wins: for each active leaf the resolver walks up the ancestor chain
and stops at the first state holding an enabled candidate for the event.
Candidates of one state are tried in declaration order; a missing guard
always passes. Each parallel region resolves independently, so one event may
select one transition per region.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from purechart.core.builder import exit_set
from purechart.core.configuration import Configuration
from purechart.core.definition import MachineDefinition
from purechart.core.events import Event
from purechart.core.guards import GuardEvaluator
from purechart.core.state import StateNode, Transition
from purechart.core.types import Context, StateId

logger = logging.getLogger(__name__)


class TransitionResolver:
    """
    Picks the transitions to take for an event in a given configuration.

    :param evaluator: Guard evaluator; a default one is created if omitted.
    """

    def __init__(self, evaluator: Optional[GuardEvaluator] = None) -> None:
        self._evaluator = evaluator or GuardEvaluator()

    def resolve(
        self,
        definition: MachineDefinition,
        configuration: Configuration,
        event: Event,
        context: Context = None,
    ) -> List[Transition]:
        """
        :return: The selected transitions in document order of the leaves that
            found them; empty when the event matches nothing.
        :raises GuardEvaluationError: If a guard fails while being evaluated.
        """
        decided: Dict[StateId, Optional[Transition]] = {}
        selected: List[Transition] = []
        for leaf in configuration.ordered_leaves():
            transition = self._innermost(definition, leaf, event, context, decided)
            if transition is not None and transition not in selected:
                selected.append(transition)

        selected = self._without_conflicts(definition, configuration, selected)
        if selected:
            logger.debug("Event %s selected %s", event.name, selected)
        else:
            logger.debug("Event %s matched no transition in %s", event.name, configuration.paths)
        return selected

    def _innermost(
        self,
        definition: MachineDefinition,
        leaf: StateId,
        event: Event,
        context: Context,
        decided: Dict[StateId, Optional[Transition]],
    ) -> Optional[Transition]:
        for node in [definition.node(leaf), *definition.ancestors(leaf)]:
            if node.id not in decided:
                decided[node.id] = self._first_enabled(node, event, context)
            if decided[node.id] is not None:
                return decided[node.id]
        return None

    def _first_enabled(self, node: StateNode, event: Event, context: Context) -> Optional[Transition]:
        for transition in node.transitions_for(event.name):
            if self._evaluator.evaluate(transition.guard, context, event.payload, node.id, event.name):
                return transition
        return None

    @staticmethod
    def _without_conflicts(
        definition: MachineDefinition, configuration: Configuration, selected: List[Transition]
    ) -> List[Transition]:
        # Transitions exiting a common state conflict: a transition from a deeper
        # source preempts one from its ancestor, otherwise the earlier one stays
        if len(selected) < 2:
            return selected
        exits: Dict[int, Set[StateId]] = {
            id(transition): set(exit_set(definition, configuration, transition)) for transition in selected
        }
        kept: List[Transition] = []
        for candidate in selected:
            preempted = False
            displaced = []
            for other in kept:
                if not exits[id(candidate)] & exits[id(other)]:
                    continue
                if definition.is_descendant(candidate.source, other.source):
                    displaced.append(other)
                else:
                    preempted = True
                    break
            if preempted:
                logger.debug("Dropping %s: it conflicts with an earlier transition", candidate)
                continue
            for other in displaced:
                logger.debug("Dropping %s: preempted by %s", other, candidate)
                kept.remove(other)
            kept.append(candidate)
        return kept
