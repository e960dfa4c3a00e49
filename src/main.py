"""
Headless client: follow a live game room from the terminal.

Usage:
    python -m src.main --room ROOM --player NAME
    python -m src.main client.yaml --room ROOM --player NAME --join --verbose
"""

import argparse
import asyncio
import logging
import sys

from .board import render_board, render_preview, render_rack, unseen_tiles
from .sync import ApiError, GameSnapshot, SyncCoordinator, load_config


logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
    )


def print_snapshot(coordinator: SyncCoordinator, snapshot: GameSnapshot) -> None:
    """Print the board, rack and scores after each accepted snapshot."""
    current = snapshot.current_player_index
    turn = snapshot.players[current].name if current is not None and current < len(snapshot.players) else "-"

    print()
    print(f"=== {snapshot.room_id} v{snapshot.state_version} | {snapshot.status} | turn: {turn} | bag: {snapshot.bag_count} ===")
    print(render_board(snapshot.board, coordinator.placements.placements.values()))
    print()
    print(f"Rack: {render_rack(coordinator.rack())}")
    unseen = unseen_tiles(snapshot.board, coordinator.placements.placements.values(), coordinator.own_rack())
    print(f"Unseen tiles: {sum(unseen.values())}")
    print(render_preview(coordinator.preview()))
    for player in snapshot.players:
        print(f"  {player.name}: {player.score}")
    if snapshot.winner:
        print(f"Winner: {snapshot.winner}")
    for entry in coordinator.events[:5]:
        print(f"  [{entry.time:%H:%M:%S}] {entry.summary}")


async def follow(coordinator: SyncCoordinator, room_id: str, player: str) -> None:
    coordinator.on_snapshot(lambda snapshot: print_snapshot(coordinator, snapshot))
    coordinator.connect(room_id, player)
    try:
        await asyncio.Event().wait()
    finally:
        coordinator.disconnect()


def main():
    parser = argparse.ArgumentParser(
        description="Follow a live Scrabble room",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example client.yaml:
  backend_url: http://localhost:8080
  heartbeat_interval: 15
  reconnect_base_delay: 1
  reconnect_max_delay: 30
  max_reconnect_attempts: null
        """
    )
    parser.add_argument(
        "config",
        nargs="?",
        help="Path to YAML configuration file (defaults apply when omitted)"
    )
    parser.add_argument("--room", required=True, help="Room id to follow")
    parser.add_argument("--player", required=True, help="Player name to sync as")
    parser.add_argument(
        "--join",
        action="store_true",
        help="Join the room before connecting"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log protocol details"
    )

    args = parser.parse_args()
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    coordinator = SyncCoordinator(config=config)

    if args.join:
        try:
            room = coordinator.api.join_room(args.room, args.player)
        except ApiError as e:
            print(f"Could not join room {args.room}: {e.message}", file=sys.stderr)
            sys.exit(1)
        logger.info(f"Joined {room.name or room.id} with {', '.join(room.players)}")

    try:
        asyncio.run(follow(coordinator, args.room, args.player))
    except KeyboardInterrupt:
        print("\nStopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
