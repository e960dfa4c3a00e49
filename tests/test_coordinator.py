"""
Tests for the sync coordinator.

The synchronous tests feed snapshots and events straight into the
coordinator's handlers. The async tests drive the whole stack through an
in-memory channel under asyncio.run.
"""

import asyncio

import pytest
from src.board import RackTile
from src.sync import ApiError, EventPage, GameSnapshot, SyncCoordinator, WsMessage, merge_racks
from src.sync.models import HistoryEntry, PlayerSnapshot


RACK = [RackTile(letter="K", points=2), RackTile(letter="O", points=1), RackTile(letter="T", points=2)]


def make_snapshot(version, board_tiles=0, current=0, status="active", event_ids=(), last_event_id=None, rack=RACK):
    return GameSnapshot(
        room_id="room-1",
        status=status,
        players=[
            PlayerSnapshot(name="ala", score=10, rack_size=len(rack), rack=list(rack)),
            PlayerSnapshot(name="ola", score=8, rack_size=7),
        ],
        bag_count=80,
        board_tiles=board_tiles,
        current_player_index=current,
        history=[HistoryEntry(event_id=i, type="PASS", payload={"player": "ola"}) for i in event_ids],
        state_version=version,
        last_event_id=last_event_id,
    )


def wire(snapshot: GameSnapshot) -> dict:
    return snapshot.model_dump(by_alias=True, mode="json")


async def settle(seconds=0.0):
    await asyncio.sleep(seconds)
    await asyncio.sleep(0)


@pytest.fixture
def coordinator(config, api, channels):
    coordinator = SyncCoordinator(config=config, api=api, channel_factory=channels)
    coordinator.connect("room-1", "ala")
    return coordinator


def stage(coordinator, index=0, cell="H8"):
    coordinator.placements.start_drag(f"rack-{index}")
    coordinator.placements.end_drag(f"cell-{cell}")


class TestStaleSnapshots:
    """Last-writer-wins by state version."""

    def test_older_snapshot_ignored(self, coordinator):
        """Accepted versions never go backwards."""
        seen = []
        coordinator.on_snapshot(lambda s: seen.append(s.state_version))
        accepted = []
        for version in [3, 1, 5, 4]:
            coordinator.handle_snapshot(make_snapshot(version, board_tiles=version))
            accepted.append(coordinator.last_accepted_version)
        assert accepted == [3, 3, 5, 5]
        assert seen == [3, 5]
        assert coordinator.snapshot.board_tiles == 5

    def test_stale_snapshot_still_marks_synced(self, coordinator):
        """A stale snapshot still counts as synced."""
        coordinator.handle_snapshot(make_snapshot(3))
        coordinator.has_synced = False
        coordinator.handle_snapshot(make_snapshot(2))
        assert coordinator.has_synced is True

    def test_equal_version_accepted(self, coordinator):
        """A snapshot at the accepted version replaces the view."""
        coordinator.handle_snapshot(make_snapshot(3))
        coordinator.handle_snapshot(make_snapshot(3, board_tiles=2))
        assert coordinator.snapshot.board_tiles == 2


class TestRackMerge:
    """Racks reported by size only keep their known tiles."""

    def test_size_without_tiles_keeps_known_rack(self):
        """A rack reported by size only keeps its previous tiles."""
        previous = make_snapshot(1)
        incoming = make_snapshot(2).model_copy(update={"players": [PlayerSnapshot(name="ala", rack_size=3)]})
        merged = merge_racks(previous, incoming)
        assert [t.letter for t in merged.players[0].rack] == ["K", "O", "T"]

    def test_empty_rack_with_zero_size_is_empty(self):
        """A genuinely empty rack stays empty."""
        previous = make_snapshot(1)
        incoming = make_snapshot(2).model_copy(update={"players": [PlayerSnapshot(name="ala", rack_size=0)]})
        assert merge_racks(previous, incoming).players[0].rack == []

    def test_new_rack_replaces_old(self):
        """Reported tiles replace the previous rack."""
        previous = make_snapshot(1)
        incoming = make_snapshot(2, rack=[RackTile(letter="A", points=1)])
        assert [t.letter for t in merge_racks(previous, incoming).players[0].rack] == ["A"]

    def test_rack_view_hides_staged_tiles(self, coordinator):
        """Staged slots show empty and the preview uses them."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator, 1)
        assert [t.letter for t in coordinator.rack()[:3]] == ["K", None, "T"]
        assert coordinator.preview().words == ["O"]


class TestPlacementReset:
    """Optimistic placements are dropped when the server state moves."""

    def test_board_change_resets(self, coordinator):
        """A new board tile count drops staged tiles."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_snapshot(make_snapshot(2, board_tiles=2))
        assert coordinator.placements.placements == {}

    def test_unchanged_state_on_our_turn_keeps_placements(self, coordinator):
        """Staged tiles survive an unchanged snapshot on our turn."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_snapshot(make_snapshot(2))
        assert list(coordinator.placements.placements) == ["H8"]

    def test_placements_dropped_when_not_our_turn(self, coordinator):
        """Staged tiles are dropped when it is not our turn."""
        coordinator.handle_snapshot(make_snapshot(1, current=1))
        stage(coordinator)
        coordinator.handle_snapshot(make_snapshot(2, current=1))
        assert coordinator.placements.placements == {}

    def test_status_change_resets(self, coordinator):
        """A game status change drops staged tiles."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_snapshot(make_snapshot(2, status="ended"))
        assert coordinator.placements.placements == {}

    def test_rejection_for_us_resets(self, coordinator):
        """MOVE_REJECTED for the local player drops staged tiles."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_event(WsMessage(type="MOVE_REJECTED", payload={"player": "ala", "reason": "bad"}))
        assert coordinator.placements.placements == {}

    def test_rejection_for_opponent_keeps_placements(self, coordinator):
        """Another player's rejection leaves staged tiles."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_event(WsMessage(type="MOVE_REJECTED", payload={"player": "ola"}))
        assert list(coordinator.placements.placements) == ["H8"]

    def test_error_naming_us_resets(self, coordinator):
        """ERROR naming the local player drops staged tiles."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_event(WsMessage(type="ERROR", payload={"player": "ala", "reason": "not your turn"}))
        assert coordinator.placements.placements == {}

    def test_generic_error_keeps_placements(self, coordinator):
        """ERROR without a player leaves staged tiles."""
        coordinator.handle_snapshot(make_snapshot(1))
        stage(coordinator)
        coordinator.handle_event(WsMessage(type="ERROR", payload={"reason": "oops"}))
        assert list(coordinator.placements.placements) == ["H8"]


class TestHistory:
    """Hydration of the event log from snapshots."""

    def test_first_snapshot_hydrates(self, coordinator):
        """The first snapshot fills the log newest first."""
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2), last_event_id=2))
        assert [e.id for e in coordinator.events] == [2, 1]
        assert coordinator.last_event_id == 2

    def test_same_version_does_not_rehydrate(self, coordinator):
        """A repeat of the same version keeps live entries."""
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2)))
        coordinator.handle_event(WsMessage(type="PASS", payload={"player": "ola", "eventId": 3}))
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2)))
        assert [e.id for e in coordinator.events] == [3, 2, 1]

    def test_newer_version_rehydrates(self, coordinator):
        """A newer version replaces the log with its history."""
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2)))
        coordinator.handle_snapshot(make_snapshot(2, event_ids=(1, 2, 3, 4)))
        assert [e.id for e in coordinator.events] == [4, 3, 2, 1]

    def test_reconnect_forces_full_hydration(self, coordinator):
        """After reconnecting the next snapshot replaces the log."""
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2)))
        coordinator.handle_event(WsMessage(type="ERROR", payload={"reason": "x"}))
        coordinator.handle_connection_state("reconnecting")
        assert coordinator.has_synced is False
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2)))
        assert [e.id for e in coordinator.events] == [2, 1]
        assert coordinator.has_synced is True

    def test_duplicate_live_event_not_logged(self, coordinator):
        """A live event already in the history is skipped."""
        coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2)))
        coordinator.handle_event(WsMessage(type="PASS", payload={"eventId": 2}))
        assert len(coordinator.events) == 2

    def test_pong_and_snapshot_not_logged(self, coordinator):
        """PONG and STATE_SNAPSHOT stay out of the log."""
        coordinator.handle_event(WsMessage(type="PONG"))
        coordinator.handle_event(WsMessage(type="STATE_SNAPSHOT", payload={}))
        assert coordinator.events == []

    def test_connect_clears_previous_room(self, coordinator):
        """Connecting to another room starts from a clean view."""
        coordinator.handle_snapshot(make_snapshot(4, event_ids=(1,)))
        coordinator.connect("room-2", "ala")
        assert coordinator.events == []
        assert coordinator.last_accepted_version is None
        assert coordinator.snapshot.room_id == "room-2"


class TestEventGaps:
    """Missed events are fetched when a snapshot skips ahead."""

    def test_gap_fetches_missing_events(self, coordinator, api):
        """Skipped event ids are fetched and prepended."""
        api.page = EventPage(
            events=[HistoryEntry(event_id=i, type="PASS", payload={"player": "ola"}) for i in (3, 4, 5)],
            last_event_id=5,
        )

        async def scenario():
            coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2), last_event_id=2))
            coordinator.handle_snapshot(make_snapshot(2, event_ids=(), last_event_id=5))
            await settle()
            await settle()

        asyncio.run(scenario())
        assert api.event_calls == [("room-1", 2, 50)]
        assert [e.id for e in coordinator.events] == [5, 4, 3, 2, 1]
        assert coordinator.last_event_id == 5

    def test_no_fetch_when_events_already_seen(self, coordinator, api):
        """No fetch when the live channel already delivered the ids."""
        async def scenario():
            coordinator.handle_snapshot(make_snapshot(1, event_ids=(1, 2), last_event_id=2))
            for event_id in (3, 4):
                coordinator.handle_event(WsMessage(type="PASS", payload={"eventId": event_id}))
            coordinator.handle_snapshot(make_snapshot(1, last_event_id=4))
            await settle()

        asyncio.run(scenario())
        assert api.event_calls == []

    def test_fetch_failure_is_tolerated(self, coordinator, api):
        """A failed gap fetch leaves the log as it was."""
        api.error = ApiError("Request failed: 500", status_code=500)

        async def scenario():
            coordinator.handle_snapshot(make_snapshot(1, event_ids=(1,), last_event_id=1))
            coordinator.handle_snapshot(make_snapshot(2, last_event_id=3))
            await settle()
            await settle()

        asyncio.run(scenario())
        assert [e.id for e in coordinator.events] == [1]
        assert coordinator.last_event_id == 3


class TestLiveChannel:
    """End-to-end behaviour over the in-memory channel."""

    def test_version_hint_triggers_resync(self, coordinator, channels):
        """An event ahead of the snapshot asks for a resync."""
        async def scenario():
            channel = channels.last
            channel.open()
            channel.deliver("STATE_SNAPSHOT", wire(make_snapshot(3)))
            channel.deliver("MOVE_ACCEPTED", {"player": "ola", "stateVersion": 4})
            await settle(0.04)
            coordinator.disconnect()
            return channel.sent_types().count("SYNC")

        assert asyncio.run(scenario()) == 2

    def test_snapshot_within_debounce_cancels_resync(self, coordinator, channels):
        """A snapshot arriving in time cancels the resync."""
        async def scenario():
            channel = channels.last
            channel.open()
            channel.deliver("STATE_SNAPSHOT", wire(make_snapshot(3)))
            channel.deliver("MOVE_ACCEPTED", {"player": "ola", "stateVersion": 4})
            channel.deliver("STATE_SNAPSHOT", wire(make_snapshot(4)))
            await settle(0.04)
            coordinator.disconnect()
            return channel.sent_types().count("SYNC")

        assert asyncio.run(scenario()) == 1

    def test_hint_does_not_advance_accepted_version(self, coordinator, channels):
        """Version hints never change the accepted version."""
        async def scenario():
            channel = channels.last
            channel.open()
            channel.deliver("STATE_SNAPSHOT", wire(make_snapshot(3)))
            channel.deliver("MOVE_ACCEPTED", {"stateVersion": 9})
            coordinator.disconnect()

        asyncio.run(scenario())
        assert coordinator.last_accepted_version == 3

    def test_play_tiles_sends_staged_payload(self, coordinator, channels):
        """PLAY_TILES carries the staged tiles in order."""
        async def scenario():
            channel = channels.last
            channel.open()
            channel.deliver("STATE_SNAPSHOT", wire(make_snapshot(1)))
            assert coordinator.is_ready
            stage(coordinator, 0, "H8")
            stage(coordinator, 1, "H9")
            coordinator.play_tiles()
            coordinator.pass_turn()
            coordinator.disconnect()
            return channel.sent

        sent = asyncio.run(scenario())
        play = next(m for m in sent if m["type"] == "PLAY_TILES")
        assert play["payload"] == {
            "player": "ala",
            "placements": [
                {"coordinate": "H8", "letter": "K", "blank": False},
                {"coordinate": "H9", "letter": "O", "blank": False},
            ],
        }
        assert {"type": "PASS", "payload": {"player": "ala"}} in sent

    def test_play_tiles_without_placements_sends_nothing(self, coordinator, channels):
        """Nothing is sent when no tiles are staged."""
        async def scenario():
            channel = channels.last
            channel.open()
            coordinator.play_tiles()
            coordinator.disconnect()
            return channel.sent_types()

        assert "PLAY_TILES" not in asyncio.run(scenario())

    def test_reconnect_replaces_log(self, coordinator, channels, api):
        """A real reconnect rehydrates the log from the new snapshot."""
        async def scenario():
            first = channels.last
            first.open()
            first.deliver("STATE_SNAPSHOT", wire(make_snapshot(1, event_ids=(1, 2), last_event_id=2)))
            first.deliver("ERROR", {"reason": "x"})
            assert len(coordinator.events) == 3

            first.drop()
            assert coordinator.connection_state == "reconnecting"
            await settle(0.03)
            second = channels.last
            assert second is not first
            second.open()
            second.deliver("STATE_SNAPSHOT", wire(make_snapshot(1, event_ids=(1, 2), last_event_id=2)))
            coordinator.disconnect()

        asyncio.run(scenario())
        assert [e.id for e in coordinator.events] == [2, 1]
        assert coordinator.connection_state == "disconnected"
