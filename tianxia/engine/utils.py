"""
Utility functions for deck handling, game initialization and debugging.
"""

import random
from collections import Counter

from tianxia.engine.state import (
    GameState,
    PlayerState,
    TerritoryState,
    CardInstance,
    GameOptions,
)
from tianxia.engine.definitions import Catalog
from tianxia.engine.events import GameEvent, cards_drawn, deck_reshuffled
from tianxia.engine import (
    MIN_PLAYERS,
    MAX_PLAYERS,
    INITIAL_HAND_SIZE,
    ACTIONS_PER_TURN,
    PLAYER_COLORS,
    SYSTEM_PLAYER_ID,
    VICTORY_TERRITORIES,
    VICTORY_VALUE,
    VICTORY_CONFIRMATION_TURNS,
)


def create_deck(catalog: Catalog, state: GameState) -> list[CardInstance]:
    """
    One instance per copy: generals x quantity, every other card x quantity x the
    setup's non_general_multiplier. Catalog order, unshuffled.
    """
    deck: list[CardInstance] = []
    for card_id, card_def in catalog.cards.items():
        copies = card_def.quantity
        if not card_def.is_general:
            copies *= catalog.non_general_multiplier
        for _ in range(max(0, copies)):
            deck.append(CardInstance(state.generate_card_instance_id(card_id), card_id))
    return deck


def shuffle_cards(state: GameState, cards: list[CardInstance]) -> list[CardInstance]:
    """
    Return a shuffled copy. Every shuffle draws from random.Random(f"{seed}:{n}") with n the
    running shuffle count, so the same seed and action list always give the same deck.
    """
    rng = random.Random(f"{state.seed}:{state.shuffle_count}")
    state.shuffle_count += 1
    shuffled = list(cards)
    rng.shuffle(shuffled)
    return shuffled


def _reshuffle_discard_into_deck(state: GameState) -> GameEvent:
    # Fresh instance ids: a reshuffled copy is a new physical card as far as clients are concerned
    renewed = [
        CardInstance(state.generate_card_instance_id(card.card_id), card.card_id)
        for card in state.discard_pile
    ]
    state.discard_pile = []
    state.deck = shuffle_cards(state, renewed)
    state.add_log(SYSTEM_PLAYER_ID, "The discard pile was reshuffled into the deck")
    return deck_reshuffled(len(state.deck), state.shuffle_count)


def draw_cards_for_player(
    state: GameState,
    player_id: str,
    count: int,
    catalog: Catalog,
    ensure_non_general: bool = False,
) -> list[GameEvent]:
    """
    Move up to `count` cards from the top of the deck into the player's hand.

    If the deck runs dry the discard pile is reshuffled in and drawing continues; with both
    empty the player simply gets fewer cards.

    ensure_non_general: if the batch is all generals, the LAST drawn general is swapped for
    the FIRST non-general in the remaining deck, and the general goes to the deck bottom.
    First match in deck order wins; nothing else in the deck moves.
    """
    player = state.get_player(player_id)
    if player is None:
        return []

    events: list[GameEvent] = []
    drawn: list[CardInstance] = []
    while len(drawn) < count:
        if not state.deck:
            if not state.discard_pile:
                break
            events.append(_reshuffle_discard_into_deck(state))
        drawn.append(state.deck.pop(0))

    if ensure_non_general and drawn:
        def is_general(card: CardInstance) -> bool:
            card_def = catalog.card(card.card_id)
            return card_def is not None and card_def.is_general

        if all(is_general(card) for card in drawn):
            replacement_index = next(
                (i for i, card in enumerate(state.deck) if not is_general(card)),
                None,
            )
            if replacement_index is not None:
                replacement = state.deck.pop(replacement_index)
                replaced = drawn.pop()
                drawn.append(replacement)
                state.deck.append(replaced)

    player.hand.extend(drawn)
    state.add_log(player_id, f"Drew {len(drawn)} card(s)")
    events.append(cards_drawn(player_id, [c.instance_id for c in drawn], count))
    return events


def initialize_game_state(
    player_names: list[str],
    catalog: Catalog,
    options: GameOptions | None = None,
    seed: int | None = None,
) -> GameState:
    """
    Create the initial game state.

    Args:
        player_names: 2-4 display names, in seat order (seat i becomes "player-i")
        catalog: Content catalog (cards, territories, starting positions)
        options: Victory thresholds, variety guarantee, AI seats. Defaults to the catalog's criteria.
        seed: Seed for every shuffle in the game. Random when omitted.

    Raises:
        ValueError: fewer than 2 or more than 4 players, or no starting positions for that count.
    """
    if len(player_names) < MIN_PLAYERS or len(player_names) > MAX_PLAYERS:
        raise ValueError(f"A game needs {MIN_PLAYERS}-{MAX_PLAYERS} players, got {len(player_names)}")

    starting_positions = catalog.starting_positions.get(len(player_names))
    if not starting_positions or len(starting_positions) < len(player_names):
        raise ValueError(f"Setup {catalog.setup_id} has no starting positions for {len(player_names)} players")

    if options is None:
        criteria = catalog.victory_criteria
        options = GameOptions(
            setup_id=catalog.setup_id,
            victory_territories=criteria.get("territories", VICTORY_TERRITORIES),
            victory_value=criteria.get("value", VICTORY_VALUE),
            victory_confirmation_turns=criteria.get("confirmation_turns", VICTORY_CONFIRMATION_TURNS),
        )
    if seed is None:
        seed = random.randrange(2**31)

    state = GameState(
        turn_number=1,
        current_player_index=0,
        players=[],
        territories={tid: TerritoryState() for tid in catalog.territories},
        options=options,
        seed=seed,
    )
    state.deck = shuffle_cards(state, create_deck(catalog, state))

    for index, name in enumerate(player_names):
        hand = state.deck[:INITIAL_HAND_SIZE]
        state.deck = state.deck[INITIAL_HAND_SIZE:]
        state.players.append(PlayerState(
            id=f"player-{index}",
            name=name,
            color=PLAYER_COLORS[index % len(PLAYER_COLORS)],
            hand=hand,
            actions=ACTIONS_PER_TURN,
            is_active=index == 0,
            is_ai=index in options.ai_seats,
        ))

    # Which seat gets which starting position is shuffled, but from the game seed
    positions = list(starting_positions[: len(player_names)])
    random.Random(f"{seed}:start-positions").shuffle(positions)
    for player, territory_id in zip(state.players, positions):
        territory = state.territories.get(territory_id)
        if territory is None:
            continue
        territory.owner = player.id
        player.territories.append(territory_id)

    state.add_log(SYSTEM_PLAYER_ID, "The game has started")
    return state


def print_game_state(state: GameState, catalog: Catalog, verbose: bool = False):
    """
    Pretty-print the current game state.

    Args:
        state: Current game state
        catalog: Content catalog (for names)
        verbose: If True, list every hand card and garrison instance
    """
    current = state.current_player
    print(f"\n{'='*60}")
    print(f"Turn {state.turn_number} | Player: {current.name} ({current.id}) | Phase: {state.turn_phase}")
    print(f"{'='*60}")

    for player in state.players:
        status = "eliminated" if player.is_eliminated else f"{player.actions} AP"
        print(f"\n{player.name} [{player.id}] {status}, {len(player.territories)} territories")
        if verbose:
            for card in player.hand:
                card_def = catalog.card(card.card_id)
                print(f"  - {card.instance_id}: {card_def.display_name if card_def else card.card_id}")
        else:
            counts = Counter(card.card_id for card in player.hand)
            print("  hand: " + ", ".join(f"{cid} x{n}" for cid, n in sorted(counts.items())))
        for territory_id in player.territories:
            garrison = state.territories[territory_id].garrison
            if garrison or verbose:
                print(f"  {territory_id}: {len(garrison)} garrisoned")

    print(f"\n{'Deck':.<40}{len(state.deck)}")
    print(f"{'Discard':.<40}{len(state.discard_pile)}")
    if state.turn_effects:
        print("Effects: " + ", ".join(f"{e.effect}({e.owner_id})" for e in state.turn_effects))
    if state.winner:
        print(f"\nWinner: {state.winner}")
    print()
