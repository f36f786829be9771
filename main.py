"""rpg-session — dev launcher. Plays rounds of the demo room from the terminal."""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from rpg_session.config import create_llm, get_config
from rpg_session.demo import (
    DEMO_LOCATION,
    DEMO_ROOM_ID,
    create_demo_data,
    demo_members,
    demo_sheets,
)
from rpg_session.llm import EchoLLM
from rpg_session.models import (
    ActionRestrictionEvent,
    DiceRollEvent,
    NarrativeChunkEvent,
    StateTransitionEvent,
)
from rpg_session.room import ActionRejectedError, Room
from rpg_session.storage import Storage

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")


def _print_event(event) -> None:
    if isinstance(event, NarrativeChunkEvent):
        print(f"\n{event.content}\n")
    elif isinstance(event, DiceRollEvent):
        d = event.data
        outcome = "success" if d.success else "failure"
        print(f"  [{d.check_type}] {d.character_name or d.character_id} {d.ability} "
              f"{d.roll.formula} {d.roll.rolls} -> {d.roll.total} vs DC {d.dc}: {outcome}")
    elif isinstance(event, ActionRestrictionEvent):
        who = ", ".join(event.allowed_character_ids) or "everyone"
        print(f"  [restriction] {who}: {event.reason}")
    elif isinstance(event, StateTransitionEvent):
        print(f"  [transition] -> {event.to}: {event.reason}")


async def _play(room: Room) -> None:
    print(f"Room {room.id} at {room.game_state.location.name}. Empty line to quit.")
    while True:
        for member in room.members():
            if not member.character_id:
                continue
            if not room.session.turn_gate.can_act(member.user_id, member.character_id):
                continue
            text = input(f"{member.character_name or member.username}> ").strip()
            if not text:
                return
            try:
                room.submit_action(member.user_id, member.username, text)
            except ActionRejectedError as e:
                print(f"  rejected: {e}")
        if not room.ready():
            continue
        async for event in room.play_round():
            _print_event(event)


def main():
    parser = argparse.ArgumentParser(description="rpg-session dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: $DATA_DIR or ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Write the demo party and roster before starting")
    parser.add_argument("--echo", action="store_true",
                        help="Use the echo backend instead of an HTTP model")
    parser.add_argument("--load", metavar="SLOT", default=None,
                        help="Resume the room from a save slot")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or Path(os.getenv("DATA_DIR", "data"))
    config = get_config(data_dir)
    storage = create_demo_data(data_dir) if args.demo else Storage(data_dir)

    sheets = {s.id: s for s in storage.get_characters()} or demo_sheets()
    members = storage.get_members(DEMO_ROOM_ID) or demo_members()
    llm = EchoLLM() if args.echo else create_llm(config)

    room = Room(DEMO_ROOM_ID, llm, sheets, members, storage=storage, config=config)
    room.game_state.location = DEMO_LOCATION.model_copy()
    if args.load and not room.load(args.load):
        parser.error(f"No save in slot {args.load!r}")

    try:
        asyncio.run(_play(room))
    except KeyboardInterrupt:
        print("\nShutting down...")


if __name__ == "__main__":
    main()
