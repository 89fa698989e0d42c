# purechart/persistence/serializer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
JSON snapshots of configurations.

A snapshot records the machine id, the state value and the history recorded
so far, which is everything needed to resume a machine later::

    {"machine": "editor", "value": {"edit": "filled"}, "history": {}}

Persisting the snapshot (file, database, session store) is left to the caller.
"""

import json
from typing import Any, Dict

from purechart.core.configuration import Configuration
from purechart.core.definition import MachineDefinition
from purechart.core.errors import InvalidConfigurationError

SNAPSHOT_VERSION = 1


def to_snapshot(configuration: Configuration) -> Dict[str, Any]:
    """Plain-data form of a configuration, suitable for any JSON encoder."""
    return {
        "version": SNAPSHOT_VERSION,
        "machine": configuration.definition.id,
        "value": configuration.value,
        "history": {state_id: list(recorded) for state_id, recorded in sorted(configuration.history.items())},
    }


def from_snapshot(definition: MachineDefinition, snapshot: Any) -> Configuration:
    """
    Rebuild a configuration from ``to_snapshot`` output.

    :raises InvalidConfigurationError: If the snapshot is malformed, belongs
        to another machine, or describes an impossible configuration.
    """
    if not isinstance(snapshot, dict):
        raise InvalidConfigurationError("Snapshot must be a JSON object")
    version = snapshot.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise InvalidConfigurationError(f"Unsupported snapshot version {version!r}")
    machine = snapshot.get("machine")
    if machine != definition.id:
        raise InvalidConfigurationError(f"Snapshot is for machine {machine!r}, not '{definition.id}'")
    if "value" not in snapshot:
        raise InvalidConfigurationError("Snapshot has no 'value'")

    history = snapshot.get("history") or {}
    if not isinstance(history, dict) or not all(isinstance(v, list) for v in history.values()):
        raise InvalidConfigurationError("Snapshot 'history' must map state ids to lists of state ids")
    return Configuration.from_value(definition, snapshot["value"], history)


def dumps_snapshot(configuration: Configuration, **kwargs: Any) -> str:
    """Serialize a configuration to a JSON string. Extra arguments go to ``json.dumps``."""
    kwargs.setdefault("sort_keys", True)
    return json.dumps(to_snapshot(configuration), **kwargs)


def loads_snapshot(definition: MachineDefinition, text: str) -> Configuration:
    """Parse a JSON snapshot produced by ``dumps_snapshot``."""
    try:
        snapshot = json.loads(text)
    except ValueError as e:
        raise InvalidConfigurationError(f"Snapshot is not valid JSON: {e}") from e
    return from_snapshot(definition, snapshot)
