"""Board-side logic: staged placements, score preview and rendering."""

from .coords import (
    BOARD_SIZE,
    PREMIUMS,
    RACK_DROP,
    board_ids,
    coord_to_id,
    id_to_coord,
    is_cell_id,
)
from .models import (
    RackTile,
    BoardTile,
    Placement,
    ActiveTile,
    PendingBlank,
    PlacementPayload,
    MovePreview,
)
from .placements import PlacementEngine
from .scoring import preview, collect_word, score_word, BINGO_BONUS
from .rack import RACK_SIZE, TILE_DISTRIBUTION, rack_view, used_tile_counts, unseen_tiles
from .render import render_board, render_rack, render_preview

__all__ = [
    # Coordinates
    "BOARD_SIZE",
    "PREMIUMS",
    "RACK_DROP",
    "board_ids",
    "coord_to_id",
    "id_to_coord",
    "is_cell_id",
    # Models
    "RackTile",
    "BoardTile",
    "Placement",
    "ActiveTile",
    "PendingBlank",
    "PlacementPayload",
    "MovePreview",
    # Placement state machine
    "PlacementEngine",
    # Scoring
    "preview",
    "collect_word",
    "score_word",
    "BINGO_BONUS",
    # Rack and bag
    "RACK_SIZE",
    "TILE_DISTRIBUTION",
    "rack_view",
    "used_tile_counts",
    "unseen_tiles",
    # Rendering
    "render_board",
    "render_rack",
    "render_preview",
]
