"""Notifications emitted by proxies and backend modules.

Events are frozen dataclasses.  The runtime appends each one to an
append-only ``EventLog`` tagged with the address whose *storage* the
emitting code was operating on, so a backend event raised through a
proxy is attributed to the proxy, exactly as if the proxy emitted it.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeVar

from uproxy.identity import Address


@dataclass(frozen=True)
class Event:
    """Base class for all notifications."""


@dataclass(frozen=True)
class Upgraded(Event):
    backend: Address


@dataclass(frozen=True)
class AdminChanged(Event):
    previous_admin: Address
    new_admin: Address


@dataclass(frozen=True)
class ValueChanged(Event):
    new_value: int


@dataclass(frozen=True)
class MessageChanged(Event):
    new_message: str


@dataclass(frozen=True)
class LogEntry:
    """One emitted event together with the address it is attributed to."""

    emitter: Address
    event: Event


E = TypeVar("E", bound=Event)


class EventLog:
    """Append-only, invocation-ordered record of emitted events."""

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []

    def append(self, emitter: Address, event: Event) -> None:
        self._entries.append(LogEntry(emitter=emitter, event=event))

    def truncate(self, length: int) -> None:
        """Drop every entry past ``length``; used only for rollback."""
        del self._entries[length:]

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def of_type(self, event_type: type[E], emitter: Address | None = None) -> list[E]:
        """Return events of ``event_type``, optionally only from ``emitter``."""
        return [
            entry.event
            for entry in self._entries
            if isinstance(entry.event, event_type)
            and (emitter is None or entry.emitter == emitter)
        ]

    def last(self) -> LogEntry | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))


__all__ = [
    "Event",
    "Upgraded",
    "AdminChanged",
    "ValueChanged",
    "MessageChanged",
    "LogEntry",
    "EventLog",
]
