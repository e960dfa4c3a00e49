"""
Connection manager for the persistent game channel.

Owns a single channel at a time: connects, keeps it alive with a heartbeat,
reconnects with exponential backoff after unexpected closes and falls back to
an HTTP snapshot fetch when the channel is slow to deliver one.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .api import ApiError, GameApi
from .channel import Channel, ChannelFactory, ChannelHandlers, websocket_channel
from .config import ClientConfig
from .models import ConnectionState, GameSnapshot, MessageType, WsMessage
from .timers import Timers


logger = logging.getLogger(__name__)

SnapshotListener = Callable[[GameSnapshot], None]
EventListener = Callable[[WsMessage], None]
ConnectionStateListener = Callable[[ConnectionState], None]

# Timer names
HEARTBEAT = "heartbeat"
RECONNECT = "reconnect"
SYNC_FALLBACK = "sync_fallback"
RECONNECT_SNAPSHOT = "reconnect_snapshot"


class ConnectionManager:
    """
    Manages the channel for one (room, player) pair at a time.

    Listeners are single-slot: registering a new one replaces the previous.
    The connection state is owned here and only reported to the listener.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        api: Optional[GameApi] = None,
        channel_factory: Optional[ChannelFactory] = None,
        timers: Optional[Timers] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.api = api or GameApi(base_url=self.config.backend_url, timeout=self.config.request_timeout)
        self.channel_factory = channel_factory or websocket_channel
        self.timers = timers or Timers()

        self.state: ConnectionState = "disconnected"
        self.room_id: Optional[str] = None
        self.player: Optional[str] = None
        self.attempt = 0
        self.has_snapshot = False

        self._channel: Optional[Channel] = None
        self._generation = 0
        self._fallback_task: Optional[asyncio.Task] = None
        self._explicit_close = False

        self._snapshot_listener: Optional[SnapshotListener] = None
        self._event_listener: Optional[EventListener] = None
        self._state_listener: Optional[ConnectionStateListener] = None

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_snapshot(self, listener: Optional[SnapshotListener]) -> None:
        self._snapshot_listener = listener

    def on_event(self, listener: Optional[EventListener]) -> None:
        self._event_listener = listener

    def on_connection_state(self, listener: Optional[ConnectionStateListener]) -> None:
        self._state_listener = listener

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._channel is not None and self._channel.is_open

    def connect(self, room_id: str, player: str) -> None:
        """Open a channel for the room, replacing any existing one."""
        self._teardown()
        self.room_id = room_id
        self.player = player
        self.attempt = 0
        self.has_snapshot = False
        self._explicit_close = False
        self._open_channel(reconnecting=False)

    def disconnect(self) -> None:
        """Close the channel for good. Safe to call at any time."""
        self._explicit_close = True
        self._teardown()
        self._set_state("disconnected")

    def send(self, message: WsMessage) -> None:
        """Send a message; dropped silently while the channel is not open."""
        if not self.is_open:
            logger.debug(f"Dropping {message.type}: channel not open")
            return
        self._channel.send(json.dumps(message.model_dump(mode="json")))

    def send_command(self, message_type: str, **payload: Any) -> None:
        if isinstance(message_type, MessageType):
            message_type = message_type.value
        self.send(WsMessage(type=message_type, payload=payload))

    def request_sync(self) -> None:
        self.send_command(MessageType.SYNC, player=self.player)

    # ------------------------------------------------------------------
    # Channel lifecycle
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        """Detach and close the current channel and cancel all timers."""
        self.timers.cancel_all()
        self._fallback_task = None
        # Bumping the generation silences any callback from the old channel
        self._generation += 1
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.info(f"Connection {self.state} -> {state} (room={self.room_id}, player={self.player})")
        self.state = state
        if self._state_listener is not None:
            self._state_listener(state)

    def _open_channel(self, reconnecting: bool) -> None:
        self._generation += 1
        generation = self._generation
        self.has_snapshot = False
        self._set_state("reconnecting" if reconnecting else "connecting")

        handlers = ChannelHandlers(
            on_open=lambda: self._handle_open(generation, reconnecting),
            on_message=lambda text: self._handle_message(generation, text),
            on_close=lambda: self._handle_close(generation),
        )
        url = self.config.ws_url(self.room_id, self.player)
        logger.info(f"Opening channel {url} (attempt {self.attempt})")
        self._channel = self.channel_factory(url, handlers)

    def _handle_open(self, generation: int, reconnecting: bool) -> None:
        if generation != self._generation:
            return
        self.attempt = 0
        self._set_state("connected")
        self.request_sync()
        self.timers.start_repeating(
            HEARTBEAT,
            self.config.heartbeat_interval,
            lambda: self.send_command(MessageType.PING),
        )
        self.timers.start(
            SYNC_FALLBACK,
            self.config.sync_fallback_timeout,
            lambda: self._start_fallback_fetch(SYNC_FALLBACK),
        )
        if reconnecting:
            self.timers.start(
                RECONNECT_SNAPSHOT,
                self.config.reconnect_snapshot_timeout,
                lambda: self._start_fallback_fetch(RECONNECT_SNAPSHOT),
            )

    def _handle_message(self, generation: int, text: str) -> None:
        if generation != self._generation:
            return
        try:
            message = WsMessage.model_validate(json.loads(text))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Dropping malformed frame: {e}")
            return

        if message.type == MessageType.STATE_SNAPSHOT:
            try:
                snapshot = GameSnapshot.model_validate(message.payload)
            except ValidationError as e:
                logger.warning(f"Dropping malformed snapshot: {e}")
            else:
                self._deliver_snapshot(snapshot)

        if self._event_listener is not None:
            self._event_listener(message)

    def _handle_close(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._channel = None
        for name in (HEARTBEAT, SYNC_FALLBACK, RECONNECT_SNAPSHOT):
            self.timers.cancel(name)
        self._cancel_fallback_fetch()

        if self._explicit_close:
            self._set_state("disconnected")
            return

        self.has_snapshot = False
        limit = self.config.max_reconnect_attempts
        if limit is not None and self.attempt >= limit:
            logger.error(f"Giving up after {self.attempt} reconnect attempts")
            self._set_state("disconnected")
            return

        self._set_state("reconnecting")
        delay = self.config.reconnect_delay(self.attempt)
        self.attempt += 1
        logger.warning(f"Channel closed; reconnecting in {delay:.1f}s (attempt {self.attempt})")
        self.timers.start(RECONNECT, delay, lambda: self._open_channel(reconnecting=True))

    # ------------------------------------------------------------------
    # Snapshot delivery and fallbacks
    # ------------------------------------------------------------------

    def _deliver_snapshot(self, snapshot: GameSnapshot) -> None:
        self.has_snapshot = True
        self.timers.cancel(SYNC_FALLBACK)
        self.timers.cancel(RECONNECT_SNAPSHOT)
        if self._snapshot_listener is not None:
            self._snapshot_listener(snapshot)

    def _start_fallback_fetch(self, reason: str) -> None:
        if self.has_snapshot:
            return
        if self._fallback_task is not None and not self._fallback_task.done():
            return
        self._fallback_task = self.timers.spawn(
            self._fallback_fetch(reason, self.room_id, self.player, self._generation)
        )

    def _cancel_fallback_fetch(self) -> None:
        task, self._fallback_task = self._fallback_task, None
        if task is not None:
            task.cancel()

    async def _fallback_fetch(self, reason: str, room_id: str, player: str, generation: int) -> None:
        logger.info(f"No snapshot yet ({reason}); fetching {room_id} over HTTP")
        try:
            snapshot = await self.api.fetch_snapshot(room_id, player)
        except (ApiError, ValidationError) as e:
            logger.warning(f"Fallback snapshot fetch failed: {e}")
            return

        # The world may have moved on while the request was in flight
        if self._explicit_close or generation != self._generation or room_id != self.room_id:
            logger.debug("Discarding fallback snapshot for a replaced connection")
            return
        if self.has_snapshot:
            logger.debug("Discarding fallback snapshot: channel already delivered one")
            return
        self._deliver_snapshot(snapshot)
