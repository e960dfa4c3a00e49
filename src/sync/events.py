"""
Event history for the game view.

The log is a bounded, newest-first list of summarised events. Server events
carry a per-room event id and are never logged twice; events without one get
ids from a negative sequence so the two spaces cannot collide.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Set

from .models import EventLogEntry, HistoryEntry, MessageType, WsMessage


DEFAULT_LOG_SIZE = 50


def _name(payload: Dict[str, Any], key: str, default: str = "Unknown") -> str:
    value = payload.get(key)
    return default if value is None else str(value)


def summarize_event(event_type: str, payload: Optional[Dict[str, Any]] = None) -> str:
    """Human-readable one-liner for an event."""
    payload = payload or {}
    score = payload.get("score")
    score_text = "-" if score is None else score

    if event_type == MessageType.MOVE_PROPOSED:
        return f"Move proposed by {_name(payload, 'player')} ({score_text} pts)"
    if event_type == MessageType.MOVE_ACCEPTED:
        return f"Move accepted for {_name(payload, 'player')} ({score_text} pts)"
    if event_type == MessageType.MOVE_REJECTED:
        return f"Move rejected for {_name(payload, 'player')} ({_name(payload, 'reason', 'rejected')})"
    if event_type == MessageType.TURN_ADVANCED:
        return f"Turn advanced -> {_name(payload, 'currentPlayer')}"
    if event_type == MessageType.PASS:
        return f"{_name(payload, 'player')} passed"
    if event_type == MessageType.EXCHANGE:
        count = payload.get("count", "some")
        return f"{_name(payload, 'player')} exchanged {count} tile{'' if count == 1 else 's'}"
    if event_type == MessageType.GAME_ENDED:
        return f"Game ended (winner: {_name(payload, 'winner', '-')})"
    if event_type == MessageType.STATE_SNAPSHOT:
        return "State snapshot"
    if event_type == MessageType.ERROR:
        return f"Error: {_name(payload, 'reason', 'unknown')}"
    return str(event_type)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventLog:
    """Bounded newest-first event history with id deduplication."""

    def __init__(self, max_size: int = DEFAULT_LOG_SIZE) -> None:
        self.max_size = max_size
        self._entries: Deque[EventLogEntry] = deque(maxlen=max_size)
        self._seen_ids: Set[int] = set()
        self._synthetic_counter = 0
        self.last_event_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EventLogEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> List[EventLogEntry]:
        """Entries, newest first."""
        return list(self._entries)

    def has_seen(self, event_id: int) -> bool:
        return event_id in self._seen_ids

    def next_synthetic_id(self) -> int:
        self._synthetic_counter += 1
        return -self._synthetic_counter

    def clear(self) -> None:
        self._entries.clear()
        self._seen_ids = set()
        self._synthetic_counter = 0
        self.last_event_at = None

    def _to_entry(self, item: HistoryEntry) -> Optional[EventLogEntry]:
        """Build a log entry, or None if the event id was already logged."""
        event_id = item.event_id
        if event_id is not None:
            if event_id in self._seen_ids:
                return None
            self._seen_ids.add(event_id)
        return EventLogEntry(
            id=event_id if event_id is not None else self.next_synthetic_id(),
            time=item.time or _now(),
            type=item.type,
            summary=summarize_event(item.type, item.payload),
        )

    def hydrate(self, history: Iterable[HistoryEntry]) -> bool:
        """
        Replace the log with a snapshot's embedded history.

        Args:
            history: Events oldest first, as embedded in snapshots

        Returns:
            False (leaving the log untouched) if the history is empty
        """
        items = list(history)
        if not items:
            return False

        self._entries.clear()
        self._seen_ids = set()
        self._synthetic_counter = 0

        newest_first: List[EventLogEntry] = []
        for item in reversed(items):
            entry = self._to_entry(item)
            if entry is not None:
                newest_first.append(entry)
        self._entries.extend(newest_first[:self.max_size])
        self.last_event_at = items[-1].time or _now()
        return True

    def prepend(self, events: Iterable[HistoryEntry]) -> int:
        """
        Add events (oldest first) to the front of the log.

        Returns:
            Number of entries actually added
        """
        added = 0
        for item in events:
            entry = self._to_entry(item)
            if entry is None:
                continue
            self._entries.appendleft(entry)
            self.last_event_at = entry.time
            added += 1
        return added

    def record(self, message: WsMessage) -> Optional[EventLogEntry]:
        """Log a live channel event. Returns None for duplicates."""
        event_id = message.payload.get("eventId")
        item = HistoryEntry(
            event_id=event_id if isinstance(event_id, int) and not isinstance(event_id, bool) else None,
            type=message.type,
            payload=message.payload,
        )
        entry = self._to_entry(item)
        if entry is None:
            return None
        self._entries.appendleft(entry)
        self.last_event_at = entry.time
        return entry
