"""
Action definitions for the game.
Actions are immutable, deterministic instructions; apply_action turns them into state changes.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Action:
    """Base action class. All actions have a type, the acting player, and a payload."""
    type: str  # e.g., "draw_cards", "start_attack", "end_turn"
    player: str  # player_id issuing the action (the defender for defend/skip_defense)
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "player": self.player, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        payload = data.get("payload")
        return cls(
            type=str(data.get("type") or ""),
            player=str(data.get("player") or ""),
            payload=payload if isinstance(payload, dict) else {},
        )


ACTION_TYPES = (
    "draw_cards",
    "advance_phase",
    "end_turn",
    "start_attack",
    "defend",
    "skip_defense",
    "clear_combat",
    "deploy_general",
    "play_card",
    "discard_card",
)


def draw_cards(player: str) -> Action:
    """
    Draw the turn's cards (2 + territory bonus) and move on to the action phase.
    Only valid in the draw phase.
    """
    return Action(type="draw_cards", player=player)


def advance_phase(player: str) -> Action:
    """
    Leave the action phase. An alias of end_turn: same validation, same handler.
    Rejected in the draw phase (draw first) and the discard phase (discard down first).
    """
    return Action(type="advance_phase", player=player)


def end_turn(player: str) -> Action:
    """
    End the current turn.
    If the hand is over the cap the turn moves to the discard phase instead.
    """
    return Action(type="end_turn", player=player)


def start_attack(
    player: str,
    territory_id: str,
    card_instance_ids: list[str],
    tactician_target_instance_id: str | None = None,
) -> Action:
    """
    Attack an adjacent territory with general/strategy cards from hand.
    A tactician card may ride along if tactician_target_instance_id names one of the attack cards.
    Example: start_attack("player-0", "beiping", ["guan_yu_0003", "zhuge_liang_0041"], "guan_yu_0003")
    """
    payload: dict[str, Any] = {
        "territory_id": territory_id,
        "card_instance_ids": list(card_instance_ids),
    }
    if tactician_target_instance_id:
        payload["tactician_target_instance_id"] = tactician_target_instance_id
    return Action(type="start_attack", player=player, payload=payload)


def defend(player: str, card_instance_ids: list[str]) -> Action:
    """Commit general/strategy cards to the pending combat. Issued by the defender."""
    return Action(
        type="defend",
        player=player,
        payload={"card_instance_ids": list(card_instance_ids)},
    )


def skip_defense(player: str) -> Action:
    """Defend with nothing; resolution runs immediately."""
    return Action(type="skip_defense", player=player)


def clear_combat(player: str) -> Action:
    """Dismiss a resolved combat once its result has been shown."""
    return Action(type="clear_combat", player=player)


def deploy_general(player: str, card_instance_id: str, territory_id: str) -> Action:
    """Station a general from hand in an owned territory's garrison (costs 1 action point)."""
    return Action(
        type="deploy_general",
        player=player,
        payload={"card_instance_id": card_instance_id, "territory_id": territory_id},
    )


def play_card(player: str, card_instance_id: str, target_id: str | None = None) -> Action:
    """
    Play a resource or event card.
    target_id is optional and only read by targeted effects (e.g. TERRITORY_DEFENSE).
    """
    payload: dict[str, Any] = {"card_instance_id": card_instance_id}
    if target_id:
        payload["target_id"] = target_id
    return Action(type="play_card", player=player, payload=payload)


def discard_card(player: str, card_instance_id: str) -> Action:
    """Discard one card from hand. In the discard phase this may end the turn."""
    return Action(
        type="discard_card",
        player=player,
        payload={"card_instance_id": card_instance_id},
    )
