"""Live game synchronization client."""

from .models import (
    ConnectionState,
    GameStatus,
    MessageType,
    WsMessage,
    PlayerSnapshot,
    PendingMove,
    HistoryEntry,
    GameSnapshot,
    EventPage,
    RoomSummary,
    EventLogEntry,
)
from .config import ClientConfig, load_config
from .api import ApiError, GameApi
from .channel import Channel, ChannelHandlers, WebSocketChannel
from .timers import Timers
from .events import EventLog, summarize_event
from .connection import ConnectionManager
from .coordinator import SyncCoordinator, merge_racks

__all__ = [
    "ConnectionState",
    "GameStatus",
    "MessageType",
    "WsMessage",
    "PlayerSnapshot",
    "PendingMove",
    "HistoryEntry",
    "GameSnapshot",
    "EventPage",
    "RoomSummary",
    "EventLogEntry",
    "ClientConfig",
    "load_config",
    "ApiError",
    "GameApi",
    "Channel",
    "ChannelHandlers",
    "WebSocketChannel",
    "Timers",
    "EventLog",
    "summarize_event",
    "ConnectionManager",
    "SyncCoordinator",
    "merge_racks",
]
