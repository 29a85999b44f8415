"""Connectivity, region domination and the per-turn territory bonus."""

import pytest

from tianxia.engine.queries import get_attackable_territory_ids, get_frontline_territory_ids, get_player_stats
from tianxia.engine.territory import (
    calculate_territory_bonus,
    count_connected_territory_groups,
    get_dominated_regions,
)
from tianxia.engine.utils import initialize_game_state


def test_single_region_pays_in_full(make_state, mini_catalog):
    state = make_state({"s1": 0, "s2": 0, "n1": 1})
    bonus = calculate_territory_bonus(state, "player-0", mini_catalog)
    assert bonus.dominated_regions == ["south"]
    assert (bonus.bonus_draw, bonus.bonus_actions) == (2, 2)


def test_second_region_pays_half(make_state, mini_catalog):
    # north comes first in catalog order: full (1, 0); south at half (1, 1); 5 territories: +1 draw
    state = make_state({"n1": 0, "n2": 0, "n3": 0, "s1": 0, "s2": 0})
    bonus = calculate_territory_bonus(state, "player-0", mini_catalog)
    assert bonus.dominated_regions == ["north", "south"]
    assert (bonus.bonus_draw, bonus.bonus_actions) == (3, 1)
    assert bonus.fragmentation_groups == 1


@pytest.mark.parametrize(
    "owned, groups, expected",
    [
        (["n1", "n2"], 1, (0, 0)),
        (["n1", "s2"], 2, (-1, 0)),
        (["n1", "n3", "s2"], 3, (-1, -1)),
    ],
)
def test_fragmentation_penalty(make_state, mini_catalog, owned, groups, expected):
    state = make_state({tid: 0 for tid in owned})
    bonus = calculate_territory_bonus(state, "player-0", mini_catalog)
    assert bonus.fragmentation_groups == groups
    assert (bonus.bonus_draw, bonus.bonus_actions) == expected


def test_group_count_does_not_depend_on_listing_order(make_state, mini_catalog):
    forward = make_state({"n1": 0, "n3": 0, "s1": 0})
    backward = make_state({"s1": 0, "n3": 0, "n1": 0})
    assert count_connected_territory_groups(forward, "player-0", mini_catalog) == 2
    assert count_connected_territory_groups(backward, "player-0", mini_catalog) == 2


def test_no_territories(make_state, mini_catalog):
    state = make_state({"n1": 1})
    assert count_connected_territory_groups(state, "player-0", mini_catalog) == 0
    assert get_dominated_regions(state, "player-0", mini_catalog) == []
    assert calculate_territory_bonus(state, "player-9", mini_catalog).bonus_draw == 0


def test_overexpansion_and_fragmentation_bottom_out(catalog):
    state = initialize_game_state(["A", "B"], catalog, seed=8)
    player = state.players[0]
    # 16 scattered territories: overexpansion and heavy fragmentation stack up
    scattered = ["jibei", "luoyang", "jinyang", "shouchun", "xinye", "zitong", "nanhai", "wuwei",
                 "beihai", "kuaiji", "changsha", "nanzhong", "lujiang", "anding", "pingyuan", "runan"]
    for other in state.players:
        other.territories = []
    for territory in state.territories.values():
        territory.owner = None
    for tid in scattered:
        state.territories[tid].owner = player.id
        player.territories.append(tid)
    bonus = calculate_territory_bonus(state, player.id, catalog)
    assert bonus.fragmentation_groups >= 3
    assert bonus.bonus_actions == -1
    assert bonus.bonus_draw >= -1


def test_attackable_and_frontline(make_state, mini_catalog):
    state = make_state({"n2": 0, "n3": 0, "s1": 1})
    assert get_attackable_territory_ids(state, "player-0", mini_catalog) == ["n1", "s1"]
    assert get_frontline_territory_ids(state, "player-0", mini_catalog) == ["n2", "n3"]

    state.neutral_capture_blocked = True
    assert get_attackable_territory_ids(state, "player-0", mini_catalog) == ["s1"]
    state.attacks_blocked = True
    assert get_attackable_territory_ids(state, "player-0", mini_catalog) == []


def test_player_stats(make_state, mini_catalog):
    state = make_state({"s1": 0, "s2": 0, "n1": 1})
    stats = get_player_stats(state, "player-0", mini_catalog)
    assert stats["territory_count"] == 2
    assert stats["territory_value"] == 4
    assert stats["bonus_actions"] == 2
    assert get_player_stats(state, "player-9", mini_catalog) == {}
