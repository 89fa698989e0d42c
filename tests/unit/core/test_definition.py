# tests/unit/core/test_definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from purechart import compile_machine
from purechart.core.errors import DefinitionError, InvalidConfigurationError
from purechart.core.types import HistoryType, StateKind


def test_compile_assigns_dotted_ids(editor_machine):
    assert editor_machine.id == "editor"
    assert editor_machine.root.id == "editor"
    assert set(editor_machine.states) == {
        "editor",
        "editor.edit",
        "editor.edit.empty",
        "editor.edit.filled",
        "editor.saved",
    }
    assert editor_machine.document_order == (
        "editor",
        "editor.edit",
        "editor.edit.empty",
        "editor.edit.filled",
        "editor.saved",
    )


def test_compile_infers_kinds(editor_machine, player_machine, wizard_machine):
    assert editor_machine.root.kind is StateKind.COMPOUND
    assert editor_machine.node("editor.edit.empty").kind is StateKind.ATOMIC
    assert player_machine.root.kind is StateKind.PARALLEL
    assert wizard_machine.node("wizard.form.step3").is_final
    hist = wizard_machine.node("wizard.form.hist")
    assert hist.is_history
    assert hist.history is HistoryType.SHALLOW


def test_compile_resolves_initial_and_targets(editor_machine):
    edit = editor_machine.node("editor.edit")
    assert edit.initial == "editor.edit.empty"
    (save,) = editor_machine.node("editor.edit.filled").transitions_for("SAVE")
    assert save.targets == ("editor.saved",)
    assert save.guard.name == "isValid"
    assert [a.type for a in save.actions] == ["persist"]
    (clear,) = editor_machine.node("editor.edit.filled").transitions_for("CLEAR")
    assert clear.targets == ("editor.edit.empty",)


def test_definition_events(editor_machine):
    assert editor_machine.events == frozenset({"SAVE", "TYPE", "CLEAR", "EDIT"})


def test_definition_navigation(editor_machine):
    assert editor_machine.parent("editor.edit.empty").id == "editor.edit"
    assert editor_machine.parent("editor") is None
    assert [n.id for n in editor_machine.ancestors("editor.edit.empty")] == ["editor.edit", "editor"]
    assert [n.id for n in editor_machine.ancestors("editor.edit.empty", upto="editor")] == ["editor.edit"]
    assert editor_machine.is_descendant("editor.edit.empty", "editor")
    assert not editor_machine.is_descendant("editor", "editor")
    assert editor_machine.path("editor.edit.filled") == ("edit", "filled")
    assert editor_machine.child_by_key("editor.edit", "filled").id == "editor.edit.filled"
    assert editor_machine.child_by_key("editor.edit", "nope") is None
    assert "editor.saved" in editor_machine


def test_definition_lcca(editor_machine, player_machine):
    assert editor_machine.lcca(["editor.edit.empty", "editor.edit.filled"]).id == "editor.edit"
    assert editor_machine.lcca(["editor.edit.filled", "editor.saved"]).id == "editor"
    # Parallel regions are skipped in favour of the next compound ancestor or the root
    assert player_machine.lcca(["player.audio.muted", "player.video.paused"]).id == "player"


def test_unknown_node_lookup(editor_machine):
    with pytest.raises(InvalidConfigurationError):
        editor_machine.node("editor.nowhere")


def test_definition_is_read_only(editor_machine):
    with pytest.raises(TypeError):
        editor_machine.states["editor.x"] = None
    with pytest.raises(TypeError):
        editor_machine.node("editor.edit").on["NEW"] = ()


def test_explicit_ids_and_id_references():
    machine = compile_machine(
        {
            "initial": "a",
            "states": {
                "a": {"id": "first", "on": {"GO": "#second"}},
                "b": {"id": "second"},
            },
        }
    )
    assert machine.id == "machine"
    assert machine.node("first").transitions_for("GO")[0].targets == ("second",)


def test_relative_child_targets():
    machine = compile_machine(
        {
            "initial": "a",
            "states": {
                "a": {
                    "initial": "x",
                    "on": {"DEEPER": ".y"},
                    "states": {"x": {}, "y": {}},
                },
            },
        }
    )
    assert machine.node("machine.a").transitions_for("DEEPER")[0].targets == ("machine.a.y",)


def test_transition_shorthands():
    machine = compile_machine(
        {
            "initial": "a",
            "states": {
                "a": {"on": {"NOOP": None, "LIST": [{"target": "b", "cond": lambda c, p: False}, "b"]}},
                "b": {},
            },
        }
    )
    a = machine.node("machine.a")
    assert a.transitions_for("NOOP")[0].targetless
    first, second = a.transitions_for("LIST")
    assert first.guard is not None and second.guard is None
    assert (first.index, second.index) == (0, 1)


def test_meta_is_kept():
    machine = compile_machine({"initial": "a", "states": {"a": {"meta": {"label": "A"}}}})
    assert machine.node("machine.a").meta == {"label": "A"}


def test_history_default_target():
    machine = compile_machine(
        {
            "initial": "p",
            "states": {
                "p": {
                    "initial": "a",
                    "states": {"a": {}, "b": {}, "h": {"history": "deep", "target": "b"}},
                },
            },
        }
    )
    h = machine.node("machine.p.h")
    assert h.history is HistoryType.DEEP
    assert h.default_targets == ("machine.p.b",)


@pytest.mark.parametrize(
    "description, fragment",
    [
        ("not a mapping", "must be a mapping"),
        ({"states": {"a": {}}}, "initial"),
        ({"initial": "nope", "states": {"a": {}}}, "'nope' is not a substate"),
        ({"initial": "a", "states": {"a": {"initial": "x", "states": {"x": {"states": {"y": {}}}}}}}, "initial"),
        ({"initial": "a", "states": {"a": {"on": {"GO": "nowhere"}}}}, "does not resolve"),
        ({"initial": "a", "states": {"a": {"on": {"GO": "#ghost"}}}}, "does not name any state"),
        ({"initial": "a", "states": {"a": {"on": {"GO": "#machine"}}}}, "root"),
        ({"initial": "a", "states": {"a": {"on": {"GO": {"target": "a", "cond": "unknown"}}}}}, "Unknown guard"),
        ({"initial": "a", "states": {"a": {"id": "x"}, "b": {"id": "x"}}}, "Duplicate state id"),
        ({"initial": "a", "states": {"a": {"type": "final", "on": {"GO": "a"}}}}, "cannot declare transitions"),
        ({"initial": "a", "states": {"a": {"type": "atomic", "states": {"x": {}}}}}, "cannot have substates"),
        ({"initial": "a", "states": {"a": {"type": "parallel"}}}, "needs substates"),
        ({"initial": "a", "states": {"a": {"type": "weird"}}}, "Unknown state type"),
        ({"initial": "a", "states": {"a.b": {}}}, "Invalid state name"),
        ({"initial": "a", "states": {"a": {"initial": "a"}}}, "Only compound states"),
        (
            {
                "initial": "p",
                "states": {
                    "p": {"initial": "a", "states": {"a": {}, "h": {"history": "shallow", "target": "#machine.q"}}},
                    "q": {},
                },
            },
            "outside",
        ),
        ({"initial": "a", "states": {"a": {}, "h": {"history": "deep", "target": "h"}}}, "cannot be a history state"),
        ({"initial": "hist", "states": {"hist": {"type": "history"}, "a": {}}}, "cannot be a history state"),
        ({"initial": "a", "states": {"a": {"on": {"GO": 5}}}}, "Cannot interpret"),
        ({"type": "final"}, "Root state"),
    ],
)
def test_compile_rejects_inconsistent_descriptions(description, fragment):
    with pytest.raises(DefinitionError) as exc:
        compile_machine(description)
    assert fragment in str(exc.value)


def test_compile_rejects_cond_and_guard_together():
    with pytest.raises(DefinitionError, match="either 'cond' or 'guard'"):
        compile_machine(
            {
                "initial": "a",
                "states": {"a": {"on": {"GO": {"target": "a", "cond": lambda c, p: 1, "guard": lambda c, p: 1}}}},
            }
        )


def test_compile_rejects_overlapping_targets():
    with pytest.raises(DefinitionError, match="not in parallel regions"):
        compile_machine({"initial": "a", "states": {"a": {"on": {"GO": {"target": ["a", "b"]}}}, "b": {}}})


def test_compile_rejects_internal_transitions_leaving_the_source():
    with pytest.raises(DefinitionError, match="Internal transition target"):
        compile_machine({"initial": "a", "states": {"a": {"on": {"GO": {"target": "b", "internal": True}}}, "b": {}}})


def test_compile_rejects_internal_transitions_into_parallel_regions():
    description = {
        "type": "parallel",
        "on": {"GO": {"target": ".left.y", "internal": True}},
        "states": {
            "left": {"initial": "x", "states": {"x": {}, "y": {}}},
            "right": {},
        },
    }
    with pytest.raises(DefinitionError, match="Parallel states"):
        compile_machine(description)


def test_strict_mode_rejects_unknown_keys():
    description = {"initial": "a", "states": {"a": {"onn": {"GO": "a"}}}}
    compile_machine(description)
    with pytest.raises(DefinitionError, match="Unknown keys"):
        compile_machine(description, strict=True)

    description = {"initial": "a", "states": {"a": {"on": {"GO": {"target": "a", "cnd": "x"}}}}}
    with pytest.raises(DefinitionError, match="Unknown keys"):
        compile_machine(description, strict=True)


def test_error_path_points_into_description():
    with pytest.raises(DefinitionError) as exc:
        compile_machine({"id": "m", "initial": "a", "states": {"a": {"on": {"GO": "nowhere"}}}})
    assert exc.value.path == "m.a.on.GO"
