"""
Game events for UI hooks and logging.
Events describe what happened during action processing.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Phase/Turn events
PHASE_CHANGED = "phase_changed"
TURN_STARTED = "turn_started"
TURN_ENDED = "turn_ended"
BONUS_APPLIED = "bonus_applied"

# Card events
CARDS_DRAWN = "cards_drawn"
DECK_RESHUFFLED = "deck_reshuffled"
CARD_PLAYED = "card_played"
CARD_DISCARDED = "card_discarded"
GENERAL_DEPLOYED = "general_deployed"

# Effect events
TURN_EFFECT_ADDED = "turn_effect_added"
TURN_EFFECT_EXPIRED = "turn_effect_expired"

# Combat events
COMBAT_STARTED = "combat_started"
COMBAT_RESOLVED = "combat_resolved"
COMBAT_CLEARED = "combat_cleared"

# Territory events
TERRITORY_CAPTURED = "territory_captured"
PLAYER_ELIMINATED = "player_eliminated"

# Victory events
VICTORY_CANDIDATE = "victory_candidate"
VICTORY = "victory"

# Rejections
ACTION_REJECTED = "action_rejected"


# ===== Event Factory Functions =====

def phase_changed(old_phase: str, new_phase: str, player_id: str) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_phase": old_phase,
        "new_phase": new_phase,
        "player_id": player_id,
    })


def turn_started(turn_number: int, player_id: str, actions: int) -> GameEvent:
    return GameEvent(TURN_STARTED, {
        "turn_number": turn_number,
        "player_id": player_id,
        "actions": actions,
    })


def turn_ended(turn_number: int, player_id: str) -> GameEvent:
    return GameEvent(TURN_ENDED, {
        "turn_number": turn_number,
        "player_id": player_id,
    })


def bonus_applied(
    player_id: str,
    bonus_draw: int,
    bonus_actions: int,
    dominated_regions: list[str],
    fragmentation_groups: int,
    action_penalty: int = 0,
) -> GameEvent:
    return GameEvent(BONUS_APPLIED, {
        "player_id": player_id,
        "bonus_draw": bonus_draw,
        "bonus_actions": bonus_actions,
        "dominated_regions": dominated_regions,
        "fragmentation_groups": fragmentation_groups,
        "action_penalty": action_penalty,
    })


def cards_drawn(player_id: str, instance_ids: list[str], requested: int) -> GameEvent:
    return GameEvent(CARDS_DRAWN, {
        "player_id": player_id,
        "instance_ids": instance_ids,
        "requested": requested,
    })


def deck_reshuffled(card_count: int, shuffle_count: int) -> GameEvent:
    return GameEvent(DECK_RESHUFFLED, {
        "card_count": card_count,
        "shuffle_count": shuffle_count,
    })


def card_played(player_id: str, instance_id: str, card_id: str, target_id: str | None = None) -> GameEvent:
    return GameEvent(CARD_PLAYED, {
        "player_id": player_id,
        "instance_id": instance_id,
        "card_id": card_id,
        "target_id": target_id,
    })


def card_discarded(player_id: str, instance_id: str, card_id: str) -> GameEvent:
    return GameEvent(CARD_DISCARDED, {
        "player_id": player_id,
        "instance_id": instance_id,
        "card_id": card_id,
    })


def general_deployed(player_id: str, instance_id: str, territory_id: str) -> GameEvent:
    return GameEvent(GENERAL_DEPLOYED, {
        "player_id": player_id,
        "instance_id": instance_id,
        "territory_id": territory_id,
    })


def turn_effect_added(effect: dict[str, Any]) -> GameEvent:
    return GameEvent(TURN_EFFECT_ADDED, {"effect": effect})


def turn_effect_expired(effect_id: str, effect: str, owner_id: str) -> GameEvent:
    return GameEvent(TURN_EFFECT_EXPIRED, {
        "effect_id": effect_id,
        "effect": effect,
        "owner_id": owner_id,
    })


def combat_started(
    attacker_id: str,
    defender_id: str | None,
    territory_id: str,
    attack_instance_ids: list[str],
    tactician_instance_id: str | None,
    phase: str,
) -> GameEvent:
    return GameEvent(COMBAT_STARTED, {
        "attacker_id": attacker_id,
        "defender_id": defender_id,
        "territory_id": territory_id,
        "attack_instance_ids": attack_instance_ids,
        "tactician_instance_id": tactician_instance_id,
        "phase": phase,
    })


def combat_resolved(
    territory_id: str,
    attack_power: int,
    defense_power: int,
    winner: str,
    attacker_id: str,
    defender_id: str | None,
) -> GameEvent:
    return GameEvent(COMBAT_RESOLVED, {
        "territory_id": territory_id,
        "attack_power": attack_power,
        "defense_power": defense_power,
        "winner": winner,
        "attacker_id": attacker_id,
        "defender_id": defender_id,
    })


def combat_cleared(territory_id: str) -> GameEvent:
    return GameEvent(COMBAT_CLEARED, {"territory_id": territory_id})


def territory_captured(territory_id: str, old_owner: str | None, new_owner: str) -> GameEvent:
    return GameEvent(TERRITORY_CAPTURED, {
        "territory_id": territory_id,
        "old_owner": old_owner,
        "new_owner": new_owner,
    })


def player_eliminated(player_id: str, eliminated_by: str) -> GameEvent:
    return GameEvent(PLAYER_ELIMINATED, {
        "player_id": player_id,
        "eliminated_by": eliminated_by,
    })


def victory_candidate(player_id: str, since_turn: int) -> GameEvent:
    return GameEvent(VICTORY_CANDIDATE, {
        "player_id": player_id,
        "since_turn": since_turn,
    })


def victory(winner: str, reason: str) -> GameEvent:
    return GameEvent(VICTORY, {
        "winner": winner,
        "reason": reason,
    })


def action_rejected(action_type: str, player_id: str, reason: str) -> GameEvent:
    return GameEvent(ACTION_REJECTED, {
        "action_type": action_type,
        "player_id": player_id,
        "reason": reason,
    })
