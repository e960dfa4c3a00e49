"""
Pydantic models for the sync layer.

Wire models accept the server's camelCase field names and can be built with
the snake_case names used throughout this package.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from ..board.models import BoardTile, RackTile, WireModel


# Type aliases
ConnectionState = Literal["disconnected", "connecting", "connected", "reconnecting"]
GameStatus = Literal["not_started", "active", "ended"]


class MessageType(str, Enum):
    """Message type tags carried by the channel."""
    # Inbound
    STATE_SNAPSHOT = "STATE_SNAPSHOT"
    MOVE_PROPOSED = "MOVE_PROPOSED"
    MOVE_ACCEPTED = "MOVE_ACCEPTED"
    MOVE_REJECTED = "MOVE_REJECTED"
    TURN_ADVANCED = "TURN_ADVANCED"
    PASS = "PASS"
    EXCHANGE = "EXCHANGE"
    GAME_ENDED = "GAME_ENDED"
    ERROR = "ERROR"
    PONG = "PONG"
    # Outbound
    SYNC = "SYNC"
    PING = "PING"
    CHALLENGE = "CHALLENGE"
    RESIGN = "RESIGN"
    PLAY_TILES = "PLAY_TILES"


class WsMessage(BaseModel):
    """A single channel message in either direction."""
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class PlayerSnapshot(WireModel):
    """One player as seen by the local player. Only our own rack has contents."""
    name: str
    score: int = 0
    rack_size: int = 0
    rack_capacity: int = 7
    rack: List[RackTile] = Field(default_factory=list)


class PendingWord(WireModel):
    text: str
    coordinates: List[str] = Field(default_factory=list)


class PendingPlacement(WireModel):
    coordinate: str
    assigned_letter: str = ""


class PendingMove(WireModel):
    """A proposed move awaiting acceptance or challenge."""
    player_index: int
    score: int = 0
    words: List[PendingWord] = Field(default_factory=list)
    placements: List[PendingPlacement] = Field(default_factory=list)


class HistoryEntry(WireModel):
    """A server event as embedded in snapshots and event pages."""
    event_id: Optional[int] = None
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    time: Optional[datetime] = None


class GameSnapshot(WireModel):
    """Authoritative, versioned state of a room as seen by one player."""
    room_id: str = ""
    status: GameStatus = "not_started"
    players: List[PlayerSnapshot] = Field(default_factory=list)
    bag_count: int = 0
    board_tiles: int = 0
    board: List[BoardTile] = Field(default_factory=list)
    current_player_index: Optional[int] = None
    pending_move: bool = False
    pending: Optional[PendingMove] = None
    winner: Optional[str] = None
    history: List[HistoryEntry] = Field(default_factory=list)
    state_version: Optional[int] = None
    last_event_id: Optional[int] = None
    server_time: Optional[str] = None

    def player_index(self, name: str) -> Optional[int]:
        """Index of the named player, or None if absent."""
        for index, player in enumerate(self.players):
            if player.name == name:
                return index
        return None

    def find_player(self, name: str) -> Optional[PlayerSnapshot]:
        index = self.player_index(name)
        return self.players[index] if index is not None else None


class EventPage(WireModel):
    """Response of the event delta endpoint."""
    events: List[HistoryEntry] = Field(default_factory=list)
    last_event_id: Optional[int] = None


class RoomSummary(WireModel):
    id: str
    name: str = ""
    players: List[str] = Field(default_factory=list)


class EventLogEntry(BaseModel):
    """A summarised entry of the visible event history."""
    id: int
    time: datetime
    type: str
    summary: str
