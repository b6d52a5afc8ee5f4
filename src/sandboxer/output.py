"""Output entries produced by playground runs."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

OutputKind = Literal["normal", "info", "success", "error", "warning"]

EntryListener = Callable[["OutputEntry"], None]


@dataclass(frozen=True)
class OutputEntry:
    text: str
    kind: OutputKind = "normal"
    timestamp: datetime = field(default_factory=datetime.now)


class OutputStore:
    """
    Entries in emission order, shared by every run of one playground.

    With ``max_size`` set only the newest entries are retained; ``total_count``
    still counts everything ever added. Listeners see each entry as it is
    appended, which is what a streaming display needs.
    """

    def __init__(self, max_size: int | None = None) -> None:
        self._entries: deque[OutputEntry] = deque(maxlen=max_size)
        self._total_count = 0
        self._listeners: list[EntryListener] = []

    def add(self, text: str, kind: OutputKind = "normal") -> OutputEntry:
        entry = OutputEntry(text, kind)
        self._entries.append(entry)
        self._total_count += 1
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def get_entries(self) -> list[OutputEntry]:
        return list(self._entries)

    def get_entries_by_kind(self, kind: OutputKind) -> list[OutputEntry]:
        return [entry for entry in self._entries if entry.kind == kind]

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def last(self) -> OutputEntry | None:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def subscribe(self, listener: EntryListener) -> Callable[[], None]:
        """Call *listener* with every entry added from now on. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
