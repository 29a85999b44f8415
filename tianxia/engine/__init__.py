"""
Tianxia rules engine.
Pure state transitions: no web framework, no storage, no clock.
"""

MIN_PLAYERS = 2
MAX_PLAYERS = 4

INITIAL_HAND_SIZE = 5
CARDS_PER_DRAW = 2
ACTIONS_PER_TURN = 3
# Hand above MAX_HAND_SIZE forces the discard phase; above SOFT_HAND_SIZE costs an action next turn.
MAX_HAND_SIZE = 9
SOFT_HAND_SIZE = 8
HAND_OVERFLOW_ACTION_PENALTY = 1

PLAYER_COLORS = ["#EF4444", "#3B82F6", "#22C55E", "#F59E0B"]

# Territory bonus scaling
TERRITORY_DRAW_BONUS_THRESHOLD = 5
TERRITORY_ACTION_BONUS_THRESHOLD = 10
DRAW_BONUS_CAP = 2
ACTION_BONUS_CAP = 1
# Second and later dominated regions pay out at this fraction (floored)
REGION_BONUS_DIMINISHING_RATE = 0.5
OVEREXPANSION_THRESHOLD = 16
OVEREXPANSION_ACTION_PENALTY = -1
# connected groups -> (draw, action)
FRAGMENTATION_PENALTIES = {
    2: (-1, 0),
    3: (-1, -1),
}
MIN_BONUS = -1

# Victory defaults (overridden by setup manifest / GameOptions)
VICTORY_TERRITORIES = 46
VICTORY_VALUE = 999
VICTORY_CONFIRMATION_TURNS = 1

SYSTEM_PLAYER_ID = "system"
