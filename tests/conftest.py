# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from purechart import compile_machine

TOGGLE = {
    "id": "toggle",
    "initial": "off",
    "states": {
        "off": {"on": {"TOGGLE": "on"}},
        "on": {"on": {"TOGGLE": "off"}},
    },
}

EDITOR = {
    "id": "editor",
    "initial": "edit",
    "states": {
        "edit": {
            "initial": "empty",
            "entry": "showEditor",
            "exit": "hideEditor",
            "on": {"SAVE": "saved"},
            "states": {
                "empty": {
                    "entry": "showPlaceholder",
                    "exit": "hidePlaceholder",
                    "on": {"TYPE": "filled"},
                },
                "filled": {
                    "on": {
                        "CLEAR": "empty",
                        "SAVE": {"target": "#editor.saved", "cond": "isValid", "actions": ["persist"]},
                    },
                },
            },
        },
        "saved": {"on": {"EDIT": "edit"}},
    },
}

PLAYER = {
    "id": "player",
    "type": "parallel",
    "on": {"RESET": {"target": ["audio.muted", "video.paused"]}},
    "states": {
        "audio": {
            "initial": "muted",
            "states": {
                "muted": {"on": {"VOLUME": "unmuted", "STOP": "#player.video.paused"}},
                "unmuted": {"entry": "enableSound", "on": {"MUTE": "muted"}},
            },
        },
        "video": {
            "initial": "paused",
            "states": {
                "paused": {"on": {"PLAY": "playing", "VOLUME": {"actions": "showVolume"}}},
                "playing": {"on": {"PAUSE": "paused", "STOP": "paused"}},
            },
        },
    },
}

WIZARD = {
    "id": "wizard",
    "initial": "form",
    "states": {
        "form": {
            "initial": "step1",
            "on": {"HELP": "help"},
            "states": {
                "step1": {"on": {"NEXT": "step2"}},
                "step2": {"on": {"NEXT": "step3"}},
                "step3": {"type": "final"},
                "hist": {"type": "history"},
            },
        },
        "help": {"on": {"BACK": "form.hist", "RESTART": "form"}},
    },
}


def _is_valid(context, payload):
    return bool(context.get("text"))


@pytest.fixture
def toggle_machine():
    """Flat two-state machine."""
    return compile_machine(TOGGLE)


@pytest.fixture
def editor_machine():
    """Hierarchical machine with entry/exit actions and a guarded transition."""
    return compile_machine(EDITOR, guards={"isValid": _is_valid})


@pytest.fixture
def player_machine():
    """Machine whose root runs two parallel regions."""
    return compile_machine(PLAYER)


@pytest.fixture
def wizard_machine():
    """Compound state with a shallow history pseudostate."""
    return compile_machine(WIZARD)


@pytest.fixture
def handlers():
    """MagicMock action handlers for every action type the editor reports."""
    return {
        name: MagicMock(name=name)
        for name in ("showEditor", "hideEditor", "showPlaceholder", "hidePlaceholder", "persist")
    }
