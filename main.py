"""
Offline demo for the Tianxia rules engine.
Plays a seeded hot-seat game between AI seats and prints the board as it goes.
Usage: python main.py [players] [seed] [difficulty]
"""

import random
import sys

from tianxia.engine.ai import AIPlayer, get_ai_name
from tianxia.engine.definitions import load_catalog
from tianxia.engine.events import COMBAT_RESOLVED, TERRITORY_CAPTURED, PLAYER_ELIMINATED, VICTORY
from tianxia.engine.queries import get_player_stats
from tianxia.engine.state import GameOptions
from tianxia.engine.utils import initialize_game_state, print_game_state

MAX_TURNS = 60


def main():
    player_count = int(sys.argv[1]) if len(sys.argv) > 1 else 2
    seed = int(sys.argv[2]) if len(sys.argv) > 2 else 7
    difficulty = sys.argv[3] if len(sys.argv) > 3 else "normal"

    print("Tianxia - AI demo game")
    print("=" * 60)

    catalog = load_catalog()
    options = GameOptions(
        setup_id=catalog.setup_id,
        victory_territories=12,
        ai_seats=list(range(player_count)),
    )
    names = [get_ai_name(i) for i in range(player_count)]
    state = initialize_game_state(names, catalog, options, seed=seed)
    ai = AIPlayer(difficulty, rng=random.Random(seed))

    print("\n[INITIAL STATE]")
    print_game_state(state, catalog)

    for _ in range(MAX_TURNS * player_count):
        if state.phase != "playing":
            break
        turn = state.turn_number
        state, events = ai.execute_full_turn(state, catalog)
        for event in events:
            if event.type == COMBAT_RESOLVED:
                p = event.payload
                print(f"  {p['attacker_id']} -> {p['territory_id']}: {p['attack_power']} vs {p['defense_power']} ({p['winner']})")
            elif event.type == TERRITORY_CAPTURED:
                print(f"  {event.payload['new_owner']} captured {event.payload['territory_id']}")
            elif event.type == PLAYER_ELIMINATED:
                print(f"  {event.payload['player_id']} was eliminated")
            elif event.type == VICTORY:
                print(f"  VICTORY: {event.payload['winner']} ({event.payload['reason']})")
        if state.turn_number != turn:
            print_game_state(state, catalog)

    print("\n" + "=" * 60)
    for player in state.players:
        stats = get_player_stats(state, player.id, catalog)
        print(f"{player.name}: {stats['territory_count']} territories, value {stats['territory_value']}")
    print(f"Winner: {state.winner or 'none after ' + str(MAX_TURNS) + ' turns'}")
    print("=" * 60)


if __name__ == "__main__":
    main()
