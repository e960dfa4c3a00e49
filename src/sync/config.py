"""Client configuration."""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import yaml
from pydantic import BaseModel, Field


DEFAULT_BACKEND_URL = "http://localhost:8080"


class ClientConfig(BaseModel):
    """
    Timing and endpoint settings for the sync client.

    All durations are in seconds.
    """
    backend_url: str = Field(default_factory=lambda: os.environ.get("BACKEND_URL", DEFAULT_BACKEND_URL))
    heartbeat_interval: float = Field(default=15.0, gt=0)
    reconnect_base_delay: float = Field(default=1.0, gt=0)
    reconnect_multiplier: float = Field(default=2.0, ge=1)
    reconnect_max_delay: float = Field(default=30.0, gt=0)
    max_reconnect_attempts: Optional[int] = Field(default=None, ge=0)  # None retries forever
    sync_fallback_timeout: float = Field(default=3.0, gt=0)
    reconnect_snapshot_timeout: float = Field(default=1.5, gt=0)
    resync_debounce: float = Field(default=0.2, ge=0)
    event_log_size: int = Field(default=50, ge=1)
    event_page_limit: int = Field(default=50, ge=1)
    request_timeout: float = Field(default=10.0, gt=0)

    def reconnect_delay(self, attempt: int) -> float:
        """Backoff delay before the given (zero-based) reconnect attempt."""
        try:
            delay = self.reconnect_base_delay * (self.reconnect_multiplier ** attempt)
        except OverflowError:
            return self.reconnect_max_delay
        return min(delay, self.reconnect_max_delay)

    def ws_url(self, room_id: str, player: str) -> str:
        """Channel URL for a room: the backend URL on ws(s) with path /ws."""
        parts = urlsplit(self.backend_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        query = urlencode({"roomId": room_id, "player": player})
        return urlunsplit((scheme, parts.netloc, "/ws", query, ""))


def load_config(config_path: Optional[str] = None) -> ClientConfig:
    """Load client configuration from a YAML file (defaults if no path)."""
    if config_path is None:
        return ClientConfig()

    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    # The environment wins over the file
    backend_url = os.environ.get("BACKEND_URL")
    if backend_url:
        data["backend_url"] = backend_url

    return ClientConfig(**data)
