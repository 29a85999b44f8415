"""
Query functions for UI, relay and AI integration.
These functions answer questions about a state without mutating it.
validate_action is the single place where command preconditions are checked, in rule order.
"""

from dataclasses import dataclass
from typing import Any

from tianxia.engine.state import GameState, CardInstance
from tianxia.engine.actions import Action, ACTION_TYPES
from tianxia.engine.definitions import Catalog, CardDefinition
from tianxia.engine.effects import OFFENSIVE_STRATEGY_EFFECTS
from tianxia.engine.territory import calculate_territory_bonus
from tianxia.engine import MAX_HAND_SIZE

# Which action types each turn phase accepts from the current player
PHASE_ALLOWED_ACTIONS = {
    "draw": ["draw_cards"],
    "action": [
        "start_attack",
        "clear_combat",
        "deploy_general",
        "play_card",
        "discard_card",
        "advance_phase",
        "end_turn",
    ],
    "discard": ["discard_card"],
}

DEFENDER_ACTIONS = ("defend", "skip_defense")


@dataclass
class ValidationResult:
    """
    Result of action validation.
    noop marks a structural impossibility (unknown player, territory or card): the reducer
    returns the state untouched instead of logging a rejection.
    """
    valid: bool
    error: str | None = None
    noop: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error, "noop": self.noop}


_OK = ValidationResult(True)


def _reject(message: str) -> ValidationResult:
    return ValidationResult(False, message)


def _noop(message: str) -> ValidationResult:
    return ValidationResult(False, message, noop=True)


def _ids(value: Any) -> list[str]:
    """Instance id list from a payload, order kept, duplicates dropped."""
    if not isinstance(value, list):
        return []
    seen: dict[str, None] = {}
    for item in value:
        if isinstance(item, str):
            seen.setdefault(item, None)
    return list(seen)


def _find_in_hand(hand: list[CardInstance], instance_ids: list[str]) -> list[CardInstance] | None:
    """Hand cards matching the ids, or None if any id is not in the hand."""
    by_id = {card.instance_id: card for card in hand}
    if any(iid not in by_id for iid in instance_ids):
        return None
    return [by_id[iid] for iid in instance_ids]


def _card_defs(cards: list[CardInstance], catalog: Catalog) -> list[CardDefinition] | None:
    defs = [catalog.card(card.card_id) for card in cards]
    if any(d is None for d in defs):
        return None
    return defs


def _combat_pending(state: GameState) -> bool:
    return state.combat is not None and state.combat.phase != "resolved"


# ===== Action Validation =====

def validate_action(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    """
    Validate an action without applying it.
    Returns ValidationResult(valid=True), a rejection with a human-readable reason,
    or a noop result for references to things that do not exist.
    """
    if state.get_player(action.player) is None:
        return _noop(f"Unknown player {action.player}")
    if action.type not in ACTION_TYPES:
        return _reject(f"Unknown action '{action.type}'")
    if state.phase == "finished" or state.winner is not None:
        # The battle that decided the game can still be dismissed by its attacker
        if action.type == "clear_combat" and state.combat is not None and state.combat.attacker_id == action.player:
            return _validate_clear_combat(state, action, catalog)
        return _reject("The game is over")

    if action.type in DEFENDER_ACTIONS:
        return _validate_defense(state, action, catalog)

    if action.player != state.current_player.id:
        return _reject(f"It is not {action.player}'s turn")

    allowed = PHASE_ALLOWED_ACTIONS.get(state.turn_phase, [])
    if action.type not in allowed:
        if state.turn_phase == "draw":
            return _reject("Draw cards first")
        if state.turn_phase == "discard":
            return _reject(f"Discard down to {MAX_HAND_SIZE} cards first")
        return _reject(f"'{action.type}' is not allowed in the {state.turn_phase} phase")

    validator = _VALIDATORS.get(action.type)
    return validator(state, action, catalog) if validator else _OK


def _validate_end_of_phase(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    if _combat_pending(state):
        return _reject("Finish the current combat first")
    return _OK


def _validate_start_attack(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    payload = action.payload
    territory_id = payload.get("territory_id")
    instance_ids = _ids(payload.get("card_instance_ids"))
    tactician_target = payload.get("tactician_target_instance_id")
    attacker = state.get_player(action.player)

    territory = state.territories.get(territory_id) if isinstance(territory_id, str) else None
    if territory is None:
        return _noop(f"Unknown territory {territory_id}")
    selected = _find_in_hand(attacker.hand, instance_ids)
    if selected is None:
        return _noop("Selected card is not in hand")
    selected_defs = _card_defs(selected, catalog)
    if selected_defs is None:
        return _noop("Selected card has no definition")

    if state.combat is not None:
        return _reject("Finish the current combat first")
    if state.attacks_blocked:
        return _reject("Attacks are blocked this round")
    if state.neutral_capture_blocked and territory.owner is None:
        return _reject("Unowned territories cannot be captured this round")
    if attacker.actions < 1:
        return _reject("Not enough action points")
    if territory.owner == attacker.id:
        return _reject("You cannot attack your own territory")
    if not any(territory_id in catalog.neighbors(owned) for owned in attacker.territories):
        return _reject("Target is not adjacent to any of your territories")

    if any(d.type in ("resource", "event") for d in selected_defs):
        return _reject("Resource and event cards cannot be used to attack")
    attack_pairs = [
        (card, d) for card, d in zip(selected, selected_defs) if d.type in ("general", "strategy")
    ]
    if not attack_pairs:
        return _reject("Select at least one general or strategy card to attack")
    if any(d.type == "strategy" and d.effect not in OFFENSIVE_STRATEGY_EFFECTS for _c, d in attack_pairs):
        return _reject("Only SIEGE, AMBUSH and BURN strategies can be used to attack")
    tacticians = [d for d in selected_defs if d.type == "tactician"]
    if len(tacticians) > 1:
        return _reject("Only one tactician may join an attack")
    if tacticians and tactician_target not in {card.instance_id for card, _d in attack_pairs}:
        return _reject("Choose the attack card the tactician supports")
    return _OK


def _validate_defense(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    combat = state.combat
    if combat is None or combat.phase != "defending":
        return _reject("No combat is awaiting defense")
    if action.player != combat.defender_id:
        return _reject(f"Only {combat.defender_id} may defend this combat")
    if action.type == "skip_defense":
        return _OK

    defender = state.get_player(action.player)
    selected = _find_in_hand(defender.hand, _ids(action.payload.get("card_instance_ids")))
    if selected is None:
        return _noop("Selected card is not in hand")
    selected_defs = _card_defs(selected, catalog)
    if selected_defs is None:
        return _noop("Selected card has no definition")
    if any(d.type not in ("general", "strategy") for d in selected_defs):
        return _reject("Only general and strategy cards can defend")
    return _OK


def _validate_clear_combat(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    if state.combat is None or state.combat.phase != "resolved":
        return _reject("There is no resolved combat to clear")
    return _OK


def _validate_deploy_general(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    player = state.get_player(action.player)
    territory_id = action.payload.get("territory_id")
    territory = state.territories.get(territory_id) if isinstance(territory_id, str) else None
    if territory is None:
        return _noop(f"Unknown territory {territory_id}")
    selected = _find_in_hand(player.hand, _ids([action.payload.get("card_instance_id")]))
    if not selected:
        return _noop("Card is not in hand")
    card_def = catalog.card(selected[0].card_id)
    if card_def is None:
        return _noop("Card has no definition")

    if state.combat is not None:
        return _reject("Finish the current combat first")
    if player.actions < 1:
        return _reject("Not enough action points")
    if territory.owner != player.id:
        return _reject("Generals can only be deployed to your own territories")
    if not card_def.is_general:
        return _reject("Only general cards can be deployed")
    return _OK


def _validate_play_card(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    player = state.get_player(action.player)
    selected = _find_in_hand(player.hand, _ids([action.payload.get("card_instance_id")]))
    if not selected:
        return _noop("Card is not in hand")
    card_def = catalog.card(selected[0].card_id)
    if card_def is None:
        return _noop("Card has no definition")

    if state.combat is not None:
        return _reject("Finish the current combat first")
    if card_def.type not in ("resource", "event"):
        return _reject("Only resource and event cards can be played")
    if card_def.cost > 0 and player.actions < 1:
        return _reject("Not enough action points")
    return _OK


def _validate_discard_card(state: GameState, action: Action, catalog: Catalog) -> ValidationResult:
    player = state.get_player(action.player)
    if not _find_in_hand(player.hand, _ids([action.payload.get("card_instance_id")])):
        return _noop("Card is not in hand")
    return _OK


_VALIDATORS = {
    "advance_phase": _validate_end_of_phase,
    "end_turn": _validate_end_of_phase,
    "start_attack": _validate_start_attack,
    "clear_combat": _validate_clear_combat,
    "deploy_general": _validate_deploy_general,
    "play_card": _validate_play_card,
    "discard_card": _validate_discard_card,
}


# ===== Queries =====

def get_available_action_types(state: GameState) -> list[str]:
    """Action types the current player may attempt right now (defense actions go to the defender)."""
    if state.phase == "finished":
        resolved = state.combat is not None and state.combat.phase == "resolved"
        return ["clear_combat"] if resolved and state.combat.attacker_id == state.current_player.id else []
    if state.combat is not None and state.combat.phase == "defending":
        return []
    allowed = list(PHASE_ALLOWED_ACTIONS.get(state.turn_phase, []))
    if state.turn_phase == "action":
        if state.combat is None:
            allowed.remove("clear_combat")
        else:
            allowed = ["clear_combat", "discard_card"]
    return allowed


def get_attackable_territory_ids(state: GameState, player_id: str, catalog: Catalog) -> list[str]:
    """
    Territories the player could attack: adjacent to one of theirs, not theirs,
    and not unowned while neutral capture is blocked. Catalog order.
    Empty when attacks are blocked.
    """
    player = state.get_player(player_id)
    if player is None or player.is_eliminated or state.attacks_blocked:
        return []
    frontier: set[str] = set()
    for owned in player.territories:
        frontier |= catalog.neighbors(owned)
    result = []
    for territory_id in catalog.territories:
        if territory_id not in frontier:
            continue
        territory = state.territories.get(territory_id)
        if territory is None or territory.owner == player_id:
            continue
        if territory.owner is None and state.neutral_capture_blocked:
            continue
        result.append(territory_id)
    return result


def get_frontline_territory_ids(state: GameState, player_id: str, catalog: Catalog) -> list[str]:
    """The player's territories that border a territory they do not own."""
    player = state.get_player(player_id)
    if player is None:
        return []
    owned = set(player.territories)
    return [
        tid for tid in player.territories
        if any(adj not in owned for adj in catalog.neighbors(tid))
    ]


def get_player_stats(state: GameState, player_id: str, catalog: Catalog) -> dict[str, Any]:
    """Per-player summary for scoreboards."""
    player = state.get_player(player_id)
    if player is None:
        return {}
    bonus = calculate_territory_bonus(state, player_id, catalog)
    value = sum(
        catalog.territories[tid].value for tid in player.territories if tid in catalog.territories
    )
    garrison = sum(len(state.territories[tid].garrison) for tid in player.territories if tid in state.territories)
    return {
        "player_id": player.id,
        "name": player.name,
        "territory_count": len(player.territories),
        "territory_value": value,
        "garrison_count": garrison,
        "hand_size": len(player.hand),
        "actions": player.actions,
        "resources": player.resources,
        "is_eliminated": player.is_eliminated,
        **bonus.to_dict(),
    }


def check_victory(state: GameState, catalog: Catalog) -> str | None:
    """
    First non-eliminated player meeting the territory-count or territory-value threshold,
    the current player first, then table order. One pass over the territories.
    """
    counts: dict[str, int] = {}
    values: dict[str, int] = {}
    for territory_id, territory in state.territories.items():
        if territory.owner is None:
            continue
        territory_def = catalog.territories.get(territory_id)
        counts[territory.owner] = counts.get(territory.owner, 0) + 1
        values[territory.owner] = values.get(territory.owner, 0) + (territory_def.value if territory_def else 0)

    def qualifies(player_id: str) -> bool:
        return (
            counts.get(player_id, 0) >= state.options.victory_territories
            or values.get(player_id, 0) >= state.options.victory_value
        )

    if not state.players:
        return None
    order = [state.current_player] + [p for p in state.players if p is not state.current_player]
    for player in order:
        if not player.is_eliminated and qualifies(player.id):
            return player.id
    return None
