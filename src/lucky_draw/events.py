from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


class EventLog:
    """Append-only change records; enough to rebuild ledger state externally."""

    def __init__(self) -> None:
        self._events: List[Event] = []

    def emit(self, name: str, **args: Any) -> Event:
        event = Event(name, dict(args))
        self._events.append(event)
        log.info("%s %s", name, " ".join(f"{k}={v}" for k, v in args.items()))
        return event

    def named(self, name: str) -> List[Event]:
        return [e for e in self._events if e.name == name]

    def last(self) -> Event:
        if not self._events:
            raise LookupError("No events emitted yet.")
        return self._events[-1]

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
