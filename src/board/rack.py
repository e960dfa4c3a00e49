"""Rack view and tile accounting for the local player."""

from collections import Counter
from typing import Dict, Iterable, List, Set, Tuple

from .coords import is_cell_id
from .models import BoardTile, RackTile


RACK_SIZE = 7
BLANK = "BLANK"

# Polish tile set: letter -> (points, count)
TILE_DISTRIBUTION: Dict[str, Tuple[int, int]] = {
    "A": (1, 9), "Ą": (5, 1), "B": (3, 2), "C": (2, 3), "Ć": (6, 1),
    "D": (2, 3), "E": (1, 7), "Ę": (5, 1), "F": (5, 1), "G": (3, 2),
    "H": (3, 2), "I": (1, 8), "J": (3, 2), "K": (2, 3), "L": (2, 3),
    "Ł": (3, 2), "M": (2, 3), "N": (1, 5), "Ń": (7, 1), "O": (1, 6),
    "Ó": (5, 1), "P": (2, 3), "R": (1, 4), "S": (1, 4), "Ś": (5, 1),
    "T": (2, 3), "U": (3, 2), "W": (1, 4), "Y": (2, 4), "Z": (1, 5),
    "Ź": (9, 1), "Ż": (5, 1), BLANK: (0, 2),
}


def rack_view(rack: List[RackTile], staged: Set[int], size: int = RACK_SIZE) -> List[RackTile]:
    """
    The rack as the player should see it.

    Slots whose tile is staged on the board are shown empty and the rack is
    padded with empty slots up to its capacity.
    """
    view = [RackTile() if index in staged else tile for index, tile in enumerate(rack)]
    while len(view) < size:
        view.append(RackTile())
    return view[:size]


def used_tile_counts(
    board: Iterable[BoardTile],
    placements: Iterable[BoardTile],
    rack: Iterable[RackTile]
) -> Dict[str, int]:
    """Count tiles visible to the player, keyed by letter (blanks as BLANK)."""
    counts: Counter = Counter()
    for tile in board:
        counts[BLANK if tile.blank else tile.assigned_letter] += 1
    for tile in placements:
        if is_cell_id(tile.coordinate):
            counts[BLANK if tile.blank else tile.assigned_letter] += 1
    for tile in rack:
        if tile.blank:
            counts[BLANK] += 1
        elif tile.letter:
            counts[tile.letter] += 1
    return dict(counts)


def unseen_tiles(
    board: Iterable[BoardTile],
    placements: Iterable[BoardTile],
    rack: Iterable[RackTile]
) -> Dict[str, int]:
    """Tiles still in the bag or on opponents' racks."""
    used = used_tile_counts(board, placements, rack)
    return {
        letter: max(0, count - used.get(letter, 0))
        for letter, (_, count) in TILE_DISTRIBUTION.items()
    }
