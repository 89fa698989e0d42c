# purechart/core/events.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from dataclasses import dataclass
from typing import Any, Mapping, Union

from purechart.core.errors import InvalidEventError


@dataclass(frozen=True)
class Event:
    """
    A named signal raised by the caller. The optional payload is handed to
    guards untouched; the engine only ever looks at the name.
    """

    name: str
    payload: Any = None

    def __post_init__(self) -> None:
        if not self.name or not isinstance(self.name, str):
            raise InvalidEventError("Event must have a non-empty string name.")

    @classmethod
    def coerce(cls, event: Union["Event", str, Mapping[str, Any]]) -> "Event":
        """
        Normalize the accepted event shapes into an ``Event``.

        :param event: An ``Event``, a bare event name, or a mapping with a
            ``name`` (or ``type``) key and an optional ``payload``. Any other
            keys of the mapping become the payload when ``payload`` is absent.
        """
        if isinstance(event, Event):
            return event
        if isinstance(event, str):
            return cls(event)
        if isinstance(event, Mapping):
            data = dict(event)
            names = data.pop("name", None), data.pop("type", None)
            name = names[0] or names[1]
            if "payload" in data:
                return cls(name, data["payload"])
            return cls(name, data or None)
        raise InvalidEventError(f"Cannot interpret {event!r} as an event.")
