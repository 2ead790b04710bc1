"""
events.py - Notification Records and the Event Channel

Events are plain immutable data carried by a PendingTransaction. When the
ledger applies the transaction it publishes each event, in order, to its
event sink. A rejected transaction publishes nothing.

Core concepts:
1. RoyaltyDistributed: the record of one royalty split
2. EventSink: anything with publish(event)
3. EventLog: append-only in-memory sink with per-track queries
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Protocol, runtime_checkable

from .core import checked_add


@dataclass(frozen=True, slots=True)
class RoyaltyDistributed:
    """
    Emitted by distribute_royalties.

    token_holders_share is computed but not disbursed; this record is the
    only place the intended split is kept.

    Attributes:
        track: Address of the track record
        total_amount: The royalty amount received
        token_holders_share: floor(total_amount * royalty_percentage / 10000)
        artist_share: total_amount - token_holders_share, paid to the creator
    """
    track: str
    total_amount: int
    token_holders_share: int
    artist_share: int

    def __repr__(self) -> str:
        return (
            f"RoyaltyDistributed(track={self.track[:12]}…, total={self.total_amount}, "
            f"holders={self.token_holders_share}, artist={self.artist_share})"
        )


@runtime_checkable
class EventSink(Protocol):
    """Output channel for notification records (indexers, UIs)."""

    def publish(self, event: Any) -> None:
        ...


class EventLog:
    """
    Append-only event sink.

    Example:
        log = EventLog()
        ledger = Ledger("main", event_sink=log)
        ...
        for event in log.for_track(record_address):
            print(event.artist_share)
    """

    def __init__(self, events: Optional[Iterable[Any]] = None):
        self._events: List[Any] = list(events or ())

    def publish(self, event: Any) -> None:
        self._events.append(event)

    def events(self) -> List[Any]:
        """Return a copy of all published events, oldest first."""
        return list(self._events)

    def for_track(self, track: str) -> List[RoyaltyDistributed]:
        """Return the royalty events for one track record."""
        return [
            e for e in self._events
            if isinstance(e, RoyaltyDistributed) and e.track == track
        ]

    def total_distributed(self, track: str) -> int:
        """Sum of total_amount over a track's royalty events."""
        total = 0
        for event in self.for_track(track):
            total = checked_add(total, event.total_amount)
        return total

    def __copy__(self) -> 'EventLog':
        return EventLog(self._events)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
