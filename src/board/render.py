"""Plain-text rendering of the board, staged tiles and rack."""

from typing import Dict, Iterable, List, Optional

from .coords import BOARD_SIZE, ROW_LETTERS, Coord, id_to_coord, is_cell_id, premium_at, coord_to_id
from .models import BoardTile, MovePreview, RackTile


def _cell_text(tile: Optional[BoardTile], staged: bool, cell_id: str) -> str:
    if tile is None:
        premium = premium_at(cell_id)
        return f"{premium.upper():>3}" if premium else "  ."
    letter = tile.assigned_letter or "?"
    # Blanks render lowercase, staged tiles are bracketed
    if tile.blank:
        letter = letter.lower()
    return f"[{letter}]" if staged else f" {letter} "


def render_board(board: Iterable[BoardTile], placements: Iterable[BoardTile] = ()) -> str:
    """Render the board to a string grid with premiums on empty cells."""
    tiles: Dict[Coord, BoardTile] = {}
    staged: Dict[Coord, BoardTile] = {}
    for tile in board:
        if is_cell_id(tile.coordinate):
            tiles[id_to_coord(tile.coordinate)] = tile
    for tile in placements:
        if is_cell_id(tile.coordinate):
            staged[id_to_coord(tile.coordinate)] = tile

    header = "   " + "".join(f"{c + 1:>3}" for c in range(BOARD_SIZE))
    lines = [header]
    for row in range(BOARD_SIZE):
        parts = [f"{ROW_LETTERS[row]:>2} "]
        for col in range(BOARD_SIZE):
            coord = (row, col)
            tile = staged.get(coord) or tiles.get(coord)
            parts.append(_cell_text(tile, coord in staged, coord_to_id(row, col)))
        lines.append("".join(parts))
    return "\n".join(lines)


def render_rack(rack: List[RackTile]) -> str:
    """Render rack slots, e.g. '[A1] [?0] [  ]'."""
    slots = []
    for tile in rack:
        if tile.blank:
            slots.append(f"[?{tile.points}]")
        elif tile.letter:
            slots.append(f"[{tile.letter}{tile.points}]")
        else:
            slots.append("[  ]")
    return " ".join(slots)


def render_preview(result: Optional[MovePreview]) -> str:
    if result is None:
        return "No tiles staged"
    return f"Preview: {result.score} pts ({', '.join(result.words) or '-'})"
