"""
Score preview for staged, uncommitted placements.

The preview mirrors the server's scoring closely enough to show the player a
tentative total before they commit. It does not check word validity; the
server remains the authority on legality.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .coords import (
    Coord,
    LETTER_MULTIPLIERS,
    WORD_MULTIPLIERS,
    coord_to_id,
    id_to_coord,
    is_cell_id,
    premium_at,
)
from .models import BoardTile, MovePreview, Placement


Direction = Tuple[int, int]

HORIZONTAL: Direction = (0, 1)
VERTICAL: Direction = (1, 0)

BINGO_TILES = 7
BINGO_BONUS = 50

Placements = Union[Mapping[str, Placement], Iterable[Placement]]


def _staged_tiles(placements: Placements) -> List[Placement]:
    """Board-targeting placements in staging order."""
    values = placements.values() if isinstance(placements, Mapping) else placements
    return [p for p in values if is_cell_id(p.coordinate)]


def build_tile_map(
    board: Iterable[BoardTile],
    staged: Iterable[BoardTile]
) -> Dict[Coord, BoardTile]:
    """Merge committed board tiles and staged placements (staged win)."""
    tiles: Dict[Coord, BoardTile] = {}
    for tile in board:
        if is_cell_id(tile.coordinate):
            tiles[id_to_coord(tile.coordinate)] = tile
    for tile in staged:
        tiles[id_to_coord(tile.coordinate)] = tile
    return tiles


def infer_direction(
    staged: List[Coord],
    tiles: Dict[Coord, BoardTile]
) -> Optional[Direction]:
    """
    Infer the axis of the move from the staged coordinates.

    A single tile takes the axis of its occupied neighbours, preferring
    horizontal on a tie or when it stands alone. Tiles spread over several
    rows and columns have no axis.
    """
    rows = {row for row, _ in staged}
    cols = {col for _, col in staged}

    if len(staged) == 1:
        row, col = staged[0]
        if (row, col - 1) in tiles or (row, col + 1) in tiles:
            return HORIZONTAL
        if (row - 1, col) in tiles or (row + 1, col) in tiles:
            return VERTICAL
        return HORIZONTAL
    if len(rows) == 1:
        return HORIZONTAL
    if len(cols) == 1:
        return VERTICAL
    return None


def collect_word(
    start: Coord,
    direction: Direction,
    tiles: Dict[Coord, BoardTile]
) -> List[Coord]:
    """Walk back then forward from start to find the maximal contiguous run."""
    dr, dc = direction
    row, col = start
    while (row - dr, col - dc) in tiles:
        row -= dr
        col -= dc

    coords: List[Coord] = []
    while (row, col) in tiles:
        coords.append((row, col))
        row += dr
        col += dc
    return coords


def score_word(
    coords: List[Coord],
    tiles: Dict[Coord, BoardTile],
    staged: Set[Coord]
) -> int:
    """Score one word; premiums count only on cells staged in this move."""
    total = 0
    word_multiplier = 1
    for coord in coords:
        tile = tiles[coord]
        premium = premium_at(coord_to_id(*coord)) if coord in staged else None
        letter_multiplier = LETTER_MULTIPLIERS.get(premium, 1) if premium else 1
        word_multiplier *= WORD_MULTIPLIERS.get(premium, 1) if premium else 1
        base = 0 if tile.blank else tile.points
        total += base * letter_multiplier
    return total * word_multiplier


def word_text(coords: List[Coord], tiles: Dict[Coord, BoardTile]) -> str:
    return "".join(tiles[coord].assigned_letter for coord in coords)


def preview(board: Iterable[BoardTile], placements: Placements) -> Optional[MovePreview]:
    """
    Compute a tentative score for the staged placements.

    Args:
        board: Tiles already committed on the board
        placements: Staged placements, as a mapping keyed by coordinate or
            any iterable of placements

    Returns:
        MovePreview with the total score and the words formed (main word
        first, then cross words), or None if nothing is staged on the board
    """
    staged_tiles = _staged_tiles(placements)
    if not staged_tiles:
        return None

    tiles = build_tile_map(board, staged_tiles)
    staged = [id_to_coord(p.coordinate) for p in staged_tiles]
    staged_set = set(staged)

    direction = infer_direction(staged, tiles)
    if direction is None:
        return None

    words: List[str] = []
    total = 0

    main_word = collect_word(staged[0], direction, tiles)
    if main_word:
        total += score_word(main_word, tiles, staged_set)
        words.append(word_text(main_word, tiles))

    perpendicular = VERTICAL if direction == HORIZONTAL else HORIZONTAL
    for coord in staged:
        cross_word = collect_word(coord, perpendicular, tiles)
        if len(cross_word) > 1:
            total += score_word(cross_word, tiles, staged_set)
            words.append(word_text(cross_word, tiles))

    if len(staged) == BINGO_TILES:
        total += BINGO_BONUS

    return MovePreview(score=total, words=words)
