"""Board coordinates and premium cell layout."""

from typing import Dict, List, Optional, Tuple


BOARD_SIZE = 15
ROW_LETTERS = "ABCDEFGHIJKLMNO"

# Gesture identifier prefixes delivered by the rendering layer
CELL_PREFIX = "cell-"
RACK_PREFIX = "rack-"
PLACEMENT_PREFIX = "placement-"
RACK_DROP = "rack-drop"

Coord = Tuple[int, int]

PREMIUMS: Dict[str, str] = {
    # Triple word
    "A1": "tw", "A8": "tw", "A15": "tw", "H1": "tw",
    "H15": "tw", "O1": "tw", "O8": "tw", "O15": "tw",
    # Double word (H8 is the centre star)
    "B2": "dw", "B14": "dw", "C3": "dw", "C13": "dw", "D4": "dw", "D12": "dw",
    "E5": "dw", "E11": "dw", "H8": "dw", "K5": "dw", "K11": "dw", "L4": "dw",
    "L12": "dw", "M3": "dw", "M13": "dw", "N2": "dw", "N14": "dw",
    # Triple letter
    "B6": "tl", "B10": "tl", "F2": "tl", "F6": "tl", "F10": "tl", "F14": "tl",
    "J2": "tl", "J6": "tl", "J10": "tl", "J14": "tl", "N6": "tl", "N10": "tl",
    # Double letter
    "A4": "dl", "A12": "dl", "C7": "dl", "C9": "dl", "D1": "dl", "D8": "dl",
    "D15": "dl", "G3": "dl", "G7": "dl", "G9": "dl", "G13": "dl", "H4": "dl",
    "H12": "dl", "I3": "dl", "I7": "dl", "I9": "dl", "I13": "dl", "L1": "dl",
    "L8": "dl", "L15": "dl", "M7": "dl", "M9": "dl", "O4": "dl", "O12": "dl",
}

LETTER_MULTIPLIERS: Dict[str, int] = {"dl": 2, "tl": 3}
WORD_MULTIPLIERS: Dict[str, int] = {"dw": 2, "tw": 3}


def coord_to_id(row: int, col: int) -> str:
    """Convert a zero-based (row, col) pair to a cell id such as 'H8'."""
    if not (0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE):
        raise ValueError(f"Coordinate out of bounds: ({row}, {col})")
    return f"{ROW_LETTERS[row]}{col + 1}"


def id_to_coord(cell_id: str) -> Coord:
    """
    Convert a cell id such as 'H8' to a zero-based (row, col) pair.

    Raises:
        ValueError: If the id does not name a cell on the board
    """
    if not cell_id or cell_id[0] not in ROW_LETTERS or not cell_id[1:].isdigit():
        raise ValueError(f"Invalid cell id: {cell_id!r}")
    row = ROW_LETTERS.index(cell_id[0])
    col = int(cell_id[1:]) - 1
    if not 0 <= col < BOARD_SIZE:
        raise ValueError(f"Invalid cell id: {cell_id!r}")
    return row, col


def is_cell_id(cell_id: str) -> bool:
    """True if the string names a cell on the board."""
    try:
        id_to_coord(cell_id)
    except ValueError:
        return False
    return True


def board_ids() -> List[str]:
    """All cell ids in row-major order."""
    return [coord_to_id(r, c) for r in range(BOARD_SIZE) for c in range(BOARD_SIZE)]


def premium_at(cell_id: str) -> Optional[str]:
    return PREMIUMS.get(cell_id)
