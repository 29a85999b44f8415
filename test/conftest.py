"""
Shared fixtures.

`catalog` is the shipped Three Kingdoms setup. `mini_catalog` is a five-territory map small
enough to reason about by hand:

    north: n1 - n2 - n3      (draw +1)
                      |
    south:           s1 - s2 (draw +2, action +2)
"""

import pytest

from tianxia.engine import PLAYER_COLORS
from tianxia.engine.definitions import (
    CardDefinition,
    TerritoryDefinition,
    RegionDefinition,
    build_catalog,
    load_catalog,
)
from tianxia.engine.effects import CardEffect, StrategyEffect
from tianxia.engine.state import GameState, GameOptions, PlayerState, TerritoryState, CardInstance


def _card(card_id, card_type, **kwargs):
    return CardDefinition(
        id=card_id,
        display_name=card_id.replace("_", " ").title(),
        localized_name=card_id,
        type=card_type,
        faction=kwargs.pop("faction", "neutral"),
        rarity="common",
        cost=kwargs.pop("cost", 1),
        **kwargs,
    )


def _territory(tid, region, value, adjacent, defense_bonus=0):
    return TerritoryDefinition(
        id=tid,
        display_name=tid.upper(),
        localized_name=tid,
        region=region,
        value=value,
        position=(0, 0),
        adjacent=adjacent,
        defense_bonus=defense_bonus,
    )


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture(scope="session")
def mini_catalog():
    cards = {
        "veteran": _card("veteran", "general", attack=5, defense=4),
        "recruit": _card("recruit", "general", attack=3, defense=4),
        "militia": _card("militia", "general", attack=2, defense=2, quantity=2),
        "siege": _card("siege", "strategy", effect=StrategyEffect.SIEGE, value=3),
        "fire": _card("fire", "strategy", effect=StrategyEffect.BURN, value=2),
        "hold": _card("hold", "strategy", effect=StrategyEffect.REINFORCE, value=3),
        "war_chest": _card("war_chest", "resource", cost=0, value=2),
        "war_horses": _card("war_horses", "resource", value=1, bonus_effect=CardEffect.ATTACK_BOOST),
        "walls": _card("walls", "resource", value=1, bonus_effect=CardEffect.TERRITORY_DEFENSE),
        "storm": _card(
            "storm", "event", cost=0, duration=1, global_effect=True,
            event_effect=CardEffect.ATTACK_DEBUFF,
        ),
        "truce": _card(
            "truce", "event", cost=0, duration=1, global_effect=True,
            event_effect=CardEffect.BLOCK_ATTACK,
        ),
        "plague": _card("plague", "event", cost=0, event_effect=CardEffect.DISCARD_ALL_1),
        "windfall": _card("windfall", "event", cost=0, event_effect=CardEffect.DRAW_3),
        "advisor": _card("advisor", "tactician", cost=0, tactics=3),
    }
    territories = {
        # n2 -> n1 is only declared from n1's side
        "n1": _territory("n1", "north", 1, ["n2"]),
        "n2": _territory("n2", "north", 2, ["n3"], defense_bonus=1),
        "n3": _territory("n3", "north", 1, ["n2", "s1"]),
        "s1": _territory("s1", "south", 3, ["n3", "s2"], defense_bonus=2),
        "s2": _territory("s2", "south", 1, ["s1", "nowhere"]),
    }
    regions = {
        "north": RegionDefinition("north", "North", "north", ["n1", "n2", "n3"], bonus_draw=1),
        "south": RegionDefinition("south", "South", "south", ["s1", "s2"], bonus_draw=2, bonus_action=2),
    }
    return build_catalog(
        cards,
        territories,
        regions,
        setup_id="mini",
        starting_positions={2: ["n1", "s2"], 3: ["n1", "n3", "s2"]},
        victory_criteria={"territories": 99, "value": 999, "confirmation_turns": 1},
    )


@pytest.fixture
def make_state(mini_catalog):
    """
    Build a hand-set game on the mini map.
    owners maps territory_id -> seat index; every seat starts with empty hands and 3 action points.
    """
    def factory(owners=None, player_count=2, turn_phase="action", actions=3, options=None, seed=1):
        players = [
            PlayerState(
                id=f"player-{i}",
                name=f"Player {i + 1}",
                color=PLAYER_COLORS[i],
                actions=actions,
                is_active=i == 0,
            )
            for i in range(player_count)
        ]
        territories = {tid: TerritoryState() for tid in mini_catalog.territories}
        for territory_id, seat in (owners or {}).items():
            territories[territory_id].owner = players[seat].id
            players[seat].territories.append(territory_id)
        return GameState(
            turn_number=1,
            current_player_index=0,
            players=players,
            territories=territories,
            turn_phase=turn_phase,
            options=options or GameOptions(setup_id="mini", victory_territories=99, victory_value=999),
            seed=seed,
        )
    return factory


@pytest.fixture
def give():
    """give(state, player_id, card_id) puts a fresh copy in the player's hand and returns it."""
    def factory(state, player_id, card_id):
        card = CardInstance(state.generate_card_instance_id(card_id), card_id)
        state.get_player(player_id).hand.append(card)
        return card
    return factory


@pytest.fixture
def count_cards():
    """Every physical card in a state: hands, deck, discard, garrisons and an unresolved combat."""
    def counter(state):
        total = len(state.deck) + len(state.discard_pile)
        total += sum(len(p.hand) for p in state.players)
        total += sum(len(t.garrison) for t in state.territories.values())
        if state.combat is not None and state.combat.phase != "resolved":
            total += len(state.combat.committed_cards())
        return total
    return counter
