"""
Territory analysis: connectivity, region domination, and the per-turn territory bonus.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from tianxia.engine.state import GameState
from tianxia.engine.definitions import Catalog
from tianxia.engine import (
    TERRITORY_DRAW_BONUS_THRESHOLD,
    TERRITORY_ACTION_BONUS_THRESHOLD,
    DRAW_BONUS_CAP,
    ACTION_BONUS_CAP,
    REGION_BONUS_DIMINISHING_RATE,
    OVEREXPANSION_THRESHOLD,
    OVEREXPANSION_ACTION_PENALTY,
    FRAGMENTATION_PENALTIES,
    MIN_BONUS,
)


@dataclass
class TerritoryBonus:
    bonus_draw: int = 0
    bonus_actions: int = 0
    dominated_regions: list[str] = field(default_factory=list)
    fragmentation_groups: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bonus_draw": self.bonus_draw,
            "bonus_actions": self.bonus_actions,
            "dominated_regions": list(self.dominated_regions),
            "fragmentation_groups": self.fragmentation_groups,
        }


def count_connected_territory_groups(state: GameState, player_id: str, catalog: Catalog) -> int:
    """
    Number of connected components among the player's territories (BFS on the symmetric graph).
    0 for a player with no territories or an unknown id.
    """
    player = state.get_player(player_id)
    if player is None:
        return 0
    owned = set(player.territories)
    visited: set[str] = set()
    groups = 0

    for seed in player.territories:
        if seed in visited:
            continue
        groups += 1
        visited.add(seed)
        queue: deque[str] = deque([seed])
        while queue:
            territory_id = queue.popleft()
            for adjacent_id in catalog.neighbors(territory_id):
                if adjacent_id in owned and adjacent_id not in visited:
                    visited.add(adjacent_id)
                    queue.append(adjacent_id)
    return groups


def get_dominated_regions(state: GameState, player_id: str, catalog: Catalog) -> list[str]:
    """Regions the player owns entirely, in catalog order."""
    player = state.get_player(player_id)
    if player is None:
        return []
    owned = set(player.territories)
    return [
        region_id
        for region_id, region in catalog.regions.items()
        if region.territories and all(tid in owned for tid in region.territories)
    ]


def calculate_territory_bonus(state: GameState, player_id: str, catalog: Catalog) -> TerritoryBonus:
    """
    Extra cards per draw and extra action points per turn earned from territory.

    - base: +1 draw per 5 territories (cap 2), +1 action per 10 (cap 1)
    - regions: the first dominated region (catalog order) pays in full, later ones at half, floored
    - overexpansion: 16+ territories cost one action
    - fragmentation: 2 groups cost one draw, 3+ cost one draw and one action
    - each total is clamped at -1
    """
    player = state.get_player(player_id)
    if player is None:
        return TerritoryBonus()

    count = len(player.territories)
    bonus_draw = min(count // TERRITORY_DRAW_BONUS_THRESHOLD, DRAW_BONUS_CAP)
    bonus_actions = min(count // TERRITORY_ACTION_BONUS_THRESHOLD, ACTION_BONUS_CAP)

    dominated = get_dominated_regions(state, player_id, catalog)
    for index, region_id in enumerate(dominated):
        region = catalog.regions[region_id]
        if index == 0:
            bonus_draw += region.bonus_draw
            bonus_actions += region.bonus_action
        else:
            bonus_draw += int(region.bonus_draw * REGION_BONUS_DIMINISHING_RATE)
            bonus_actions += int(region.bonus_action * REGION_BONUS_DIMINISHING_RATE)

    if count >= OVEREXPANSION_THRESHOLD:
        bonus_actions += OVEREXPANSION_ACTION_PENALTY

    groups = count_connected_territory_groups(state, player_id, catalog)
    penalty_key = min(groups, max(FRAGMENTATION_PENALTIES))
    if penalty_key in FRAGMENTATION_PENALTIES:
        draw_penalty, action_penalty = FRAGMENTATION_PENALTIES[penalty_key]
        bonus_draw += draw_penalty
        bonus_actions += action_penalty

    return TerritoryBonus(
        bonus_draw=max(bonus_draw, MIN_BONUS),
        bonus_actions=max(bonus_actions, MIN_BONUS),
        dominated_regions=dominated,
        fragmentation_groups=groups,
    )
