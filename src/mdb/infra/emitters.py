"""
Event emitter implementations.

``LogEmitter`` writes every event to the structured log and is the default for
the CLI. ``BufferedEmitter`` keeps events in memory for callers (and tests)
that forward them elsewhere.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..domain.events import Event
from ..domain.interfaces import EventEmitter
from .logging import get_logger


class LogEmitter(EventEmitter):
    def __init__(self, logger=None):
        self._log = logger or get_logger(__name__)

    def emit(self, events: Sequence[Event]) -> None:
        for ev in events:
            self._log.info("event_emitted", **ev.to_dict())


class BufferedEmitter(EventEmitter):
    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, events: Sequence[Event]) -> None:
        self.events.extend(events)

    def types(self) -> list[str]:
        return [ev.type for ev in self.events]

    def clear(self) -> None:
        self.events.clear()
