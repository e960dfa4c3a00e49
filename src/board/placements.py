"""
Optimistic placement state machine.

Tracks the tiles a player has moved from their rack onto the board before the
move is committed to the server. Gesture input arrives as opaque identifiers
from the rendering layer:

    rack-<n>           a rack slot
    placement-<cell>   a tile already staged on the board
    cell-<cell>        a board cell
    rack-drop          the rack return zone
"""

import logging
from typing import Callable, Dict, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field

from .coords import CELL_PREFIX, PLACEMENT_PREFIX, RACK_DROP, RACK_PREFIX, is_cell_id
from .models import ActiveTile, PendingBlank, Placement, PlacementPayload, RackTile


logger = logging.getLogger(__name__)

RackLookup = Callable[[int], Optional[RackTile]]


def _parse_rack_index(identifier: str) -> Optional[int]:
    suffix = identifier[len(RACK_PREFIX):]
    return int(suffix) if suffix.isdigit() else None


class PlacementEngine(BaseModel):
    """
    Owns the set of tentative placements for the local player.

    Attributes:
        placements: Staged tiles keyed by board coordinate, in staging order
        active_tile: Tile being dragged or selected, if any
        active_source: Coordinate the active tile was picked up from, or None
            when it came from the rack
        active_tile_label: Assigned letter carried by the active tile
        pending_blank: Blank tile waiting for a letter assignment
        get_rack_tile: Lookup for the tile in a given rack slot
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    placements: Dict[str, Placement] = Field(default_factory=dict)
    active_tile: Optional[ActiveTile] = None
    active_source: Optional[str] = None
    active_tile_label: Optional[str] = None
    pending_blank: Optional[PendingBlank] = None
    get_rack_tile: Optional[RackLookup] = Field(default=None, exclude=True)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def staged_rack_indices(self) -> Set[int]:
        """Rack slots whose tile is currently staged on the board."""
        return {p.rack_index for p in self.placements.values() if p.rack_index is not None}

    @property
    def has_placements(self) -> bool:
        return bool(self.placements)

    @property
    def has_board_placements(self) -> bool:
        """True if a commit action would send at least one tile."""
        return any(is_cell_id(p.coordinate) for p in self.placements.values())

    @property
    def commit_payload(self) -> List[PlacementPayload]:
        """Board placements reduced to what PLAY_TILES carries."""
        return [
            PlacementPayload(coordinate=p.coordinate, letter=p.assigned_letter, blank=p.blank)
            for p in self.placements.values()
            if is_cell_id(p.coordinate)
        ]

    def is_slot_staged(self, index: int) -> bool:
        return index in self.staged_rack_indices

    # ------------------------------------------------------------------
    # Gesture entry points
    # ------------------------------------------------------------------

    def start_drag(self, source_id: str) -> None:
        """Begin dragging the tile identified by a rack or placement id."""
        if source_id.startswith(PLACEMENT_PREFIX):
            self.start_from_placement(source_id[len(PLACEMENT_PREFIX):])
        elif source_id.startswith(RACK_PREFIX) and _parse_rack_index(source_id) is not None:
            self.start_from_rack(_parse_rack_index(source_id))
        else:
            self._clear_active()

    def start_from_rack(self, index: int, tile: Optional[RackTile] = None) -> None:
        """Pick up the tile in a rack slot. Staged slots are inert."""
        if self.is_slot_staged(index):
            self._clear_active()
            return
        if tile is None and self.get_rack_tile is not None:
            tile = self.get_rack_tile(index)
        self.active_tile = (
            ActiveTile(letter=tile.letter, points=tile.points, blank=tile.blank, rack_index=index)
            if tile else None
        )
        self.active_source = None
        self.active_tile_label = None

    def start_from_placement(self, coordinate: str) -> None:
        """Pick up a staged tile; its assigned letter travels with it."""
        placement = self.placements.get(coordinate)
        if placement is None:
            return
        self.active_tile = ActiveTile(
            letter=placement.letter,
            points=placement.points,
            blank=placement.blank,
            rack_index=placement.rack_index,
        )
        self.active_source = coordinate
        self.active_tile_label = placement.assigned_letter

    def select_rack_tile(self, index: int, tile: Optional[RackTile] = None) -> None:
        """Tap selection of a rack tile, followed later by click_cell."""
        self.start_from_rack(index, tile)

    def end_drag(self, target_id: Optional[str]) -> None:
        self.apply_drop(self.active_tile, target_id)

    def click_cell(self, coordinate: str) -> None:
        self.apply_drop(self.active_tile, f"{CELL_PREFIX}{coordinate}")

    # ------------------------------------------------------------------
    # Drop handling
    # ------------------------------------------------------------------

    def apply_drop(self, tile: Optional[ActiveTile], target_id: Optional[str]) -> None:
        """
        Resolve a drop of the active tile onto a target.

        Args:
            tile: The tile being dropped (normally the active tile)
            target_id: Identifier of the drop target, or None for no target
        """
        if tile is None:
            self._clear_active()
            return

        if target_id is None or target_id == RACK_DROP or target_id.startswith(RACK_PREFIX):
            self._return_source_to_rack()
            self._clear_active()
            return

        coordinate = target_id[len(CELL_PREFIX):] if target_id.startswith(CELL_PREFIX) else ""
        if not is_cell_id(coordinate):
            logger.debug(f"Ignoring drop on unrecognised target {target_id!r}")
            self._clear_active()
            return

        source = self.active_source
        if source is not None and source != coordinate:
            self._move(source, coordinate, tile)
        elif coordinate in self.placements:
            # Same occupied cell without a distinct source: take the tile back
            self._remove(coordinate)
        elif tile.blank:
            self.pending_blank = PendingBlank(tile=tile, coordinate=coordinate, source=source)
        else:
            self._commit(tile, coordinate, tile.letter or "")

        self._clear_active()

    def confirm_blank(self, letter: str) -> bool:
        """
        Assign a letter to the pending blank tile and stage it.

        Anything other than a single letter cancels the pending placement.

        Returns:
            True if the blank was staged
        """
        pending = self.pending_blank
        if pending is None:
            return False
        self.pending_blank = None

        value = (letter or "").strip()
        if len(value) != 1 or not value.isalpha():
            logger.debug(f"Blank assignment {letter!r} rejected")
            return False

        if pending.source is not None and pending.source != pending.coordinate:
            self.placements.pop(pending.source, None)
        self._commit(pending.tile, pending.coordinate, value.upper())
        return True

    def cancel_blank(self) -> None:
        self.pending_blank = None

    def reset(self) -> None:
        """Drop every staged tile, the active tile and any pending blank."""
        self.placements = {}
        self.pending_blank = None
        self._clear_active()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clear_active(self) -> None:
        self.active_tile = None
        self.active_source = None
        self.active_tile_label = None

    def _remove(self, coordinate: str) -> None:
        self.placements.pop(coordinate, None)

    def _return_source_to_rack(self) -> None:
        if self.active_source is not None:
            self._remove(self.active_source)

    def _move(self, source: str, coordinate: str, tile: ActiveTile) -> None:
        previous = self.placements.pop(source, None)
        displaced = self.placements.pop(coordinate, None)
        if displaced is not None:
            logger.debug(f"Tile at {coordinate} returned to rack by move from {source}")

        self.placements[coordinate] = Placement(
            coordinate=coordinate,
            letter=tile.letter,
            points=tile.points,
            blank=tile.blank,
            assigned_letter=previous.assigned_letter if previous else (tile.letter or ""),
            rack_index=previous.rack_index if previous else tile.rack_index,
        )

    def _commit(self, tile: ActiveTile, coordinate: str, assigned_letter: str) -> None:
        if tile.rack_index is not None:
            # A rack slot can back at most one staged tile
            for key in [k for k, p in self.placements.items() if p.rack_index == tile.rack_index]:
                del self.placements[key]

        self.placements[coordinate] = Placement(
            coordinate=coordinate,
            letter=tile.letter,
            points=tile.points,
            blank=tile.blank,
            assigned_letter=assigned_letter,
            rack_index=tile.rack_index,
        )
