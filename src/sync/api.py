from typing import Any, Dict, List, Optional
import asyncio
import logging

import requests
from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_BACKEND_URL
from .models import EventPage, GameSnapshot, RoomSummary


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """
    A request/response call failed.

    The message is meant for display: it is the server's response body when
    there is one, otherwise a generic status line.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GameApi(BaseModel):
    """
    HTTP client for the lobby and game endpoints.

    The blocking methods are used directly by lobby flows; the fetch_*
    coroutines run them in a worker thread for the sync fallbacks.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_url: str = DEFAULT_BACKEND_URL
    timeout: float = 10.0
    session: requests.Session = Field(default_factory=requests.Session)

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"Request failed: {e}") from e

        if not response.ok:
            message = response.text.strip() or f"Request failed: {response.status_code}"
            raise ApiError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Request failed: invalid response ({response.status_code})",
                status_code=response.status_code,
            ) from e

    # ------------------------------------------------------------------
    # Lobby
    # ------------------------------------------------------------------

    def list_rooms(self) -> List[RoomSummary]:
        return [RoomSummary.model_validate(room) for room in self._request("GET", "/api/rooms")]

    def create_room(self, name: str, owner: str, ai: bool = False) -> RoomSummary:
        data = self._request("POST", "/api/rooms", json={"name": name, "owner": owner, "ai": bool(ai)})
        return RoomSummary.model_validate(data)

    def join_room(self, room_id: str, player: str) -> RoomSummary:
        data = self._request("POST", f"/api/rooms/{room_id}/join", json={"player": player})
        return RoomSummary.model_validate(data)

    def start_game(self, room_id: str) -> GameSnapshot:
        return GameSnapshot.model_validate(self._request("POST", f"/api/rooms/{room_id}/game/start"))

    # ------------------------------------------------------------------
    # Game state
    # ------------------------------------------------------------------

    def get_state(self, room_id: str, player: Optional[str] = None) -> GameSnapshot:
        params: Dict[str, Any] = {"player": player} if player else {}
        data = self._request("GET", f"/api/rooms/{room_id}/game/state", params=params)
        return GameSnapshot.model_validate(data)

    def get_events(self, room_id: str, after: int, limit: int = 50) -> EventPage:
        data = self._request(
            "GET",
            f"/api/rooms/{room_id}/game/events",
            params={"after": after, "limit": limit},
        )
        return EventPage.model_validate(data)

    async def fetch_snapshot(self, room_id: str, player: str) -> GameSnapshot:
        return await asyncio.to_thread(self.get_state, room_id, player)

    async def fetch_events(self, room_id: str, after: int, limit: int = 50) -> EventPage:
        return await asyncio.to_thread(self.get_events, room_id, after, limit)
