# tests/unit/core/test_resolver.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from purechart import compile_machine
from purechart.core.configuration import Configuration
from purechart.core.errors import GuardEvaluationError
from purechart.core.events import Event
from purechart.core.guards import GuardEvaluator
from purechart.core.resolver import TransitionResolver


@pytest.fixture
def resolver():
    return TransitionResolver()


def _resolve(resolver, machine, value, event, context=None):
    configuration = Configuration.from_value(machine, value)
    return resolver.resolve(machine, configuration, Event.coerce(event), context)


def test_unknown_event_selects_nothing(resolver, toggle_machine):
    assert _resolve(resolver, toggle_machine, "off", "NOPE") == []


def test_innermost_transition_wins(resolver, editor_machine):
    (selected,) = _resolve(resolver, editor_machine, "edit.filled", "SAVE", {"text": "hi"})
    assert selected.source == "editor.edit.filled"
    assert selected.targets == ("editor.saved",)


def test_falls_back_to_ancestor_when_guard_fails(resolver, editor_machine):
    (selected,) = _resolve(resolver, editor_machine, "edit.filled", "SAVE", {"text": ""})
    assert selected.source == "editor.edit"


def test_ancestor_handles_events_its_leaf_ignores(resolver, editor_machine):
    (selected,) = _resolve(resolver, editor_machine, "edit.empty", "SAVE", {})
    assert selected.source == "editor.edit"


def test_candidates_are_tried_in_declaration_order(resolver):
    machine = compile_machine(
        {
            "initial": "idle",
            "states": {
                "idle": {
                    "on": {
                        "GO": [
                            {"target": "small", "cond": lambda ctx, n: n < 10},
                            {"target": "medium", "cond": lambda ctx, n: n < 100},
                            {"target": "large"},
                        ]
                    }
                },
                "small": {},
                "medium": {},
                "large": {},
            },
        }
    )
    for payload, expected in [(1, "machine.small"), (50, "machine.medium"), (500, "machine.large")]:
        (selected,) = _resolve(resolver, machine, "idle", Event("GO", payload))
        assert selected.targets == (expected,)


def test_later_guards_are_not_evaluated_once_one_passes(resolver):
    first = MagicMock(return_value=True)
    second = MagicMock(return_value=True)
    machine = compile_machine(
        {
            "initial": "a",
            "states": {"a": {"on": {"GO": [{"target": "b", "cond": first}, {"target": "b", "cond": second}]}}, "b": {}},
        }
    )
    _resolve(resolver, machine, "a", "GO", {"k": 1})
    first.assert_called_once()
    second.assert_not_called()


def test_guard_receives_context_and_payload(resolver):
    guard = MagicMock(return_value=False)
    machine = compile_machine({"initial": "a", "states": {"a": {"on": {"GO": {"target": "b", "cond": guard}}}, "b": {}}})
    assert _resolve(resolver, machine, "a", Event("GO", {"amount": 3}), {"limit": 5}) == []
    context, payload = guard.call_args.args
    assert dict(context) == {"limit": 5}
    assert payload == {"amount": 3}


def test_guard_failure_propagates(resolver):
    def broken(context, payload):
        raise KeyError("limit")

    machine = compile_machine({"initial": "a", "states": {"a": {"on": {"GO": {"target": "b", "cond": broken}}}, "b": {}}})
    with pytest.raises(GuardEvaluationError) as exc:
        _resolve(resolver, machine, "a", "GO", {})
    assert exc.value.state_id == "machine.a"
    assert exc.value.event_name == "GO"


def test_parallel_regions_resolve_independently(resolver, player_machine):
    selected = _resolve(resolver, player_machine, {"audio": "muted", "video": "paused"}, "VOLUME")
    assert [t.source for t in selected] == ["player.audio.muted", "player.video.paused"]


def test_shared_ancestor_transition_is_selected_once(resolver, player_machine):
    selected = _resolve(resolver, player_machine, {"audio": "unmuted", "video": "playing"}, "RESET")
    assert len(selected) == 1
    assert selected[0].source == "player"


def test_conflicting_region_transitions_keep_the_first(resolver, player_machine):
    # audio.muted leaves the whole machine for STOP, video.playing stays in its region
    selected = _resolve(resolver, player_machine, {"audio": "muted", "video": "playing"}, "STOP")
    assert [t.source for t in selected] == ["player.audio.muted"]


def test_deeper_source_preempts_ancestor_transition(resolver):
    machine = compile_machine(
        {
            "initial": "p",
            "states": {
                "p": {
                    "type": "parallel",
                    "on": {"GO": "done"},
                    "states": {
                        "left": {"initial": "a", "states": {"a": {}}},
                        "right": {"initial": "x", "states": {"x": {"on": {"GO": "y"}}, "y": {}}},
                    },
                },
                "done": {},
            },
        }
    )
    selected = _resolve(resolver, machine, {"p": {"left": "a", "right": "x"}}, "GO")
    # left.a finds p's transition first, right.x then displaces it
    assert [t.source for t in selected] == ["machine.p.right.x"]


def test_uses_injected_evaluator(editor_machine):
    evaluator = MagicMock(spec=GuardEvaluator)
    evaluator.evaluate.return_value = True
    resolver = TransitionResolver(evaluator)
    _resolve(resolver, editor_machine, "edit.filled", "SAVE", {})
    evaluator.evaluate.assert_called_once()
