"""Data models for tiles, staged placements and score previews."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the server (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RackTile(WireModel):
    """A tile on a player's rack. Blank tiles carry no face letter."""
    letter: Optional[str] = None
    points: int = 0
    blank: bool = False


class BoardTile(WireModel):
    """A tile committed to the board by the server."""
    coordinate: str
    letter: Optional[str] = None
    points: int = 0
    blank: bool = False
    assigned_letter: str = ""


class Placement(BoardTile):
    """A tentative tile staged on the board but not yet committed."""
    rack_index: Optional[int] = None  # None when the tile has no rack slot


class ActiveTile(RackTile):
    """The tile currently being dragged or selected."""
    rack_index: Optional[int] = None


class PendingBlank(BaseModel):
    """A blank tile dropped on the board, waiting for a letter."""
    tile: ActiveTile
    coordinate: str
    source: Optional[str] = None


class PlacementPayload(WireModel):
    """One entry of the PLAY_TILES commit payload."""
    coordinate: str
    letter: str
    blank: bool = False


class MovePreview(BaseModel):
    """Tentative score for the staged placements."""
    score: int = 0
    words: List[str] = Field(default_factory=list)
