"""
Reconciliation of pushed snapshots and events into the local game view.

The coordinator is the only consumer of the connection manager's callbacks.
It keeps the last accepted snapshot, the visible event history and the
bookkeeping needed to filter stale or duplicate data, and tells the placement
engine to drop optimistic edits whenever the server state moves underneath
them.

Reconciliation is last-writer-wins by state version: a snapshot older than
the newest accepted one is discarded outright, never merged.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from ..board import PlacementEngine, MovePreview, RackTile, preview, rack_view
from .api import ApiError, GameApi
from .channel import ChannelFactory
from .config import ClientConfig
from .connection import ConnectionManager
from .events import EventLog
from .models import (
    ConnectionState,
    EventLogEntry,
    GameSnapshot,
    MessageType,
    WsMessage,
)
from .timers import Timers


logger = logging.getLogger(__name__)

RESYNC_DEBOUNCE = "resync_debounce"

SnapshotListener = Callable[[GameSnapshot], None]

# (board tile count, current player index, status) of the last accepted snapshot
ServerState = Tuple[int, Optional[int], str]


def merge_racks(previous: GameSnapshot, incoming: GameSnapshot) -> GameSnapshot:
    """
    Keep a previously known rack when a snapshot reports a size but no tiles.

    Some pushes describe a player's rack size without its contents; showing
    an empty rack for those would make the player's tiles flicker away.
    """
    merged = []
    for player in incoming.players:
        known = previous.find_player(player.name)
        if known is not None and not player.rack and player.rack_size > 0 and known.rack:
            player = player.model_copy(update={"rack": known.rack})
        merged.append(player)
    return incoming.model_copy(update={"players": merged})


class SyncCoordinator:
    """
    Maintains the accepted snapshot and event history for one player.

    Attributes:
        snapshot: The last accepted snapshot (with merged racks)
        connection_state: Last state reported by the connection manager
        has_synced: Whether a snapshot has been received on this connection
        event_log: Bounded newest-first event history
        placements: The placement engine reset on server-state changes
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        placements: Optional[PlacementEngine] = None,
        api: Optional[GameApi] = None,
        channel_factory: Optional[ChannelFactory] = None,
        timers: Optional[Timers] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.api = api or GameApi(base_url=self.config.backend_url, timeout=self.config.request_timeout)
        self.placements = placements or PlacementEngine()
        if self.placements.get_rack_tile is None:
            self.placements.get_rack_tile = self._rack_tile
        self.timers = timers or Timers()
        self._channel_factory = channel_factory
        self._connection: Optional[ConnectionManager] = None

        self.room_id: Optional[str] = None
        self.player: Optional[str] = None
        self.snapshot = GameSnapshot()
        self.connection_state: ConnectionState = "disconnected"
        self.has_synced = False
        self.event_log = EventLog(self.config.event_log_size)

        self._snapshot_listener: Optional[SnapshotListener] = None
        self._reset_bookkeeping()

    def _reset_bookkeeping(self) -> None:
        self._history_hydrated = False
        self._last_server_state: Optional[ServerState] = None
        self._last_state_version: Optional[int] = None
        self._last_history_version: Optional[int] = None
        self._last_snapshot_version: Optional[int] = None
        self._version_hint: Optional[int] = None
        self._last_event_id: Optional[int] = None

    # ------------------------------------------------------------------
    # Connection ownership
    # ------------------------------------------------------------------

    @property
    def connection(self) -> ConnectionManager:
        """The coordinator's own connection manager, built on first use."""
        if self._connection is None:
            self._connection = ConnectionManager(
                config=self.config,
                api=self.api,
                channel_factory=self._channel_factory,
            )
        return self._connection

    def on_snapshot(self, listener: Optional[SnapshotListener]) -> None:
        """Register the host's listener for accepted snapshots."""
        self._snapshot_listener = listener

    def connect(self, room_id: str, player: str) -> None:
        """Start syncing a room as the given player, dropping any prior state."""
        connection = self.connection
        connection.disconnect()
        self.timers.cancel_all()

        self.room_id = room_id
        self.player = player
        self.has_synced = False
        self.event_log.clear()
        self._reset_bookkeeping()
        self.snapshot = GameSnapshot(room_id=room_id)
        self.placements.reset()

        connection.on_connection_state(self.handle_connection_state)
        connection.on_snapshot(self.handle_snapshot)
        connection.on_event(self.handle_event)
        connection.connect(room_id, player)

    def disconnect(self) -> None:
        self.timers.cancel_all()
        if self._connection is not None:
            self._connection.disconnect()

    @property
    def last_accepted_version(self) -> Optional[int]:
        return self._last_state_version

    @property
    def last_event_id(self) -> Optional[int]:
        return self._last_event_id

    @property
    def last_event_at(self) -> Optional[datetime]:
        return self.event_log.last_event_at

    @property
    def events(self) -> List[EventLogEntry]:
        return self.event_log.entries

    @property
    def is_ready(self) -> bool:
        """Connected and holding a snapshot: commands may be sent."""
        return self.connection_state == "connected" and self.has_synced

    # ------------------------------------------------------------------
    # Connection callbacks
    # ------------------------------------------------------------------

    def handle_connection_state(self, state: ConnectionState) -> None:
        self.connection_state = state
        if state == "reconnecting":
            # The next snapshot is an initial hydration, not an increment
            self.has_synced = False
            self._history_hydrated = False

    def handle_snapshot(self, incoming: GameSnapshot) -> None:
        """Fold a snapshot from the channel (or a fallback fetch) into the view."""
        version = incoming.state_version or 0
        previous_version = self._last_state_version
        previous_event_id = self._last_event_id

        if previous_version is not None and version < previous_version:
            logger.debug(f"Ignoring stale snapshot v{version} (accepted v{previous_version})")
            self.has_synced = True
            return

        server_state: ServerState = (incoming.board_tiles, incoming.current_player_index, incoming.status)
        server_state_changed = self._last_server_state != server_state

        self.snapshot = merge_racks(self.snapshot, incoming)
        self._last_snapshot_version = version
        self.timers.cancel(RESYNC_DEBOUNCE)

        player_index = incoming.player_index(self.player) if self.player else None
        not_our_turn = player_index is None or incoming.current_player_index != player_index
        if server_state_changed or (self.placements.has_placements and not_our_turn):
            self.placements.reset()

        self._last_server_state = server_state
        self._last_state_version = version if previous_version is None else max(previous_version, version)
        self.has_synced = True

        needs_hydration = not self._history_hydrated or (
            self._last_history_version is not None and version > self._last_history_version
        )
        if needs_hydration:
            self.event_log.hydrate(incoming.history)
            self._history_hydrated = True
            self._last_history_version = version

        snapshot_event_id = incoming.last_event_id
        if snapshot_event_id is not None:
            self._last_event_id = snapshot_event_id
            if previous_event_id is not None and self._has_gap(previous_event_id, snapshot_event_id):
                self.timers.spawn(self._sync_events_after(self.room_id, previous_event_id))

        if self._snapshot_listener is not None:
            self._snapshot_listener(self.snapshot)

    def _has_gap(self, previous_event_id: int, snapshot_event_id: int) -> bool:
        """True if an event between the two ids is missing from the log."""
        return any(
            not self.event_log.has_seen(event_id)
            for event_id in range(previous_event_id + 1, snapshot_event_id + 1)
        )

    async def _sync_events_after(self, room_id: str, after_event_id: int) -> None:
        try:
            page = await self.api.fetch_events(room_id, after_event_id, self.config.event_page_limit)
        except (ApiError, ValidationError) as e:
            logger.warning(f"Failed to fetch events after {after_event_id}: {e}")
            return

        if room_id != self.room_id:
            return
        added = self.event_log.prepend(page.events)
        if added:
            logger.debug(f"Fetched {added} missed event(s) after {after_event_id}")
        if page.last_event_id is not None:
            self._last_event_id = max(self._last_event_id or 0, page.last_event_id)

    def handle_event(self, message: WsMessage) -> None:
        """Log a discrete event and react to version hints and rejections."""
        if message.type in (MessageType.STATE_SNAPSHOT, MessageType.PONG):
            return

        hint = message.payload.get("stateVersion")
        if isinstance(hint, int) and not isinstance(hint, bool):
            self._note_version_hint(hint)

        self.event_log.record(message)

        if message.type in (MessageType.MOVE_REJECTED, MessageType.ERROR):
            named = message.payload.get("player")
            if isinstance(named, str) and named == self.player:
                self.placements.reset()

    def _note_version_hint(self, hint: int) -> None:
        if self._version_hint is None or hint > self._version_hint:
            self._version_hint = hint
        if (self._last_snapshot_version or 0) >= hint or self.timers.active(RESYNC_DEBOUNCE):
            return
        # The event outran its snapshot; ask for one unless it shows up soon
        self.timers.start(RESYNC_DEBOUNCE, self.config.resync_debounce, self._resync_if_behind)

    def _resync_if_behind(self) -> None:
        if (self._last_snapshot_version or 0) < (self._version_hint or 0):
            logger.debug(f"Snapshot v{self._last_snapshot_version} behind event hint v{self._version_hint}; resyncing")
            self.request_sync()

    # ------------------------------------------------------------------
    # Host commands
    # ------------------------------------------------------------------

    def request_sync(self) -> None:
        if self._connection is not None:
            self._connection.request_sync()

    def play_tiles(self) -> None:
        """Send the staged placements as a PLAY_TILES command."""
        if self._connection is None or not self.placements.has_board_placements:
            return
        payload = [p.model_dump(by_alias=True) for p in self.placements.commit_payload]
        self._connection.send_command(MessageType.PLAY_TILES, player=self.player, placements=payload)

    def pass_turn(self) -> None:
        self._send_player_command(MessageType.PASS)

    def challenge(self) -> None:
        self._send_player_command(MessageType.CHALLENGE)

    def resign(self) -> None:
        self._send_player_command(MessageType.RESIGN)

    def _send_player_command(self, message_type: MessageType) -> None:
        if self._connection is not None:
            self._connection.send_command(message_type, player=self.player)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def own_rack(self) -> List[RackTile]:
        me = self.snapshot.find_player(self.player) if self.player else None
        return list(me.rack) if me else []

    def _rack_tile(self, index: int) -> Optional[RackTile]:
        rack = self.own_rack()
        return rack[index] if 0 <= index < len(rack) else None

    def rack(self) -> List[RackTile]:
        """The player's rack with staged slots shown empty."""
        return rack_view(self.own_rack(), self.placements.staged_rack_indices)

    def preview(self) -> Optional[MovePreview]:
        """Tentative score of the staged placements on the current board."""
        return preview(self.snapshot.board, self.placements.placements)
