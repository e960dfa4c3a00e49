"""
Persistent message channel.

The connection manager talks to the transport only through the Channel
protocol: a channel starts connecting as soon as it is created, reports
open/message/close through its handlers, and accepts text frames while open.
"""

import asyncio
import logging
from typing import Callable, NamedTuple, Protocol, Set

import websockets


logger = logging.getLogger(__name__)


class ChannelHandlers(NamedTuple):
    on_open: Callable[[], None]
    on_message: Callable[[str], None]
    on_close: Callable[[], None]


class Channel(Protocol):
    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


ChannelFactory = Callable[[str, ChannelHandlers], Channel]


class WebSocketChannel:
    """Channel backed by a `websockets` client connection."""

    def __init__(self, url: str, handlers: ChannelHandlers, open_timeout: float = 10.0) -> None:
        self.url = url
        self.handlers = handlers
        self.open_timeout = open_timeout
        self._ws = None
        self._closing = False
        self._sends: Set[asyncio.Task] = set()
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    async def _run(self) -> None:
        try:
            async with websockets.connect(self.url, open_timeout=self.open_timeout) as ws:
                self._ws = ws
                self.handlers.on_open()
                async for raw in ws:
                    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
                    self.handlers.on_message(text)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.warning(f"Channel to {self.url} failed: {e}")
        finally:
            self._ws = None
            # Client-initiated closes are not reported back
            if not self._closing:
                self.handlers.on_close()

    def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or self._closing:
            return
        task = asyncio.get_running_loop().create_task(self._send(ws, text))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _send(self, ws, text: str) -> None:
        try:
            await ws.send(text)
        except websockets.exceptions.WebSocketException as e:
            # The receive loop notices the broken connection and reports the close
            logger.warning(f"Send failed on {self.url}: {e}")

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._task.cancel()
        for task in list(self._sends):
            task.cancel()
        self._sends.clear()


def websocket_channel(url: str, handlers: ChannelHandlers) -> Channel:
    """Default channel factory."""
    return WebSocketChannel(url, handlers)
