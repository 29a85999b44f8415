"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.

Rejected actions never raise: the new state carries a log entry with rejected=True and the
events hold a single action_rejected event. Actions that reference a player, territory or
card that does not exist return the input state unchanged with no events.
"""

from tianxia.engine.state import GameState, Combat, CardInstance, VictoryCandidate
from tianxia.engine.actions import Action
from tianxia.engine.definitions import Catalog
from tianxia.engine.combat import resolve_combat
from tianxia.engine.effects import (
    EffectContext,
    apply_card_effect,
    register_active_event,
    purge_owner_effects,
    tick_global_effects,
)
from tianxia.engine.territory import calculate_territory_bonus
from tianxia.engine.queries import validate_action, check_victory
from tianxia.engine.utils import draw_cards_for_player
from tianxia.engine.events import (
    GameEvent,
    phase_changed,
    turn_started,
    turn_ended,
    bonus_applied,
    card_played,
    card_discarded,
    general_deployed,
    combat_started,
    combat_cleared,
    victory_candidate,
    victory,
    action_rejected,
)
from tianxia.engine import (
    ACTIONS_PER_TURN,
    CARDS_PER_DRAW,
    MAX_HAND_SIZE,
    SOFT_HAND_SIZE,
    HAND_OVERFLOW_ACTION_PENALTY,
    SYSTEM_PLAYER_ID,
)


def apply_action(
    state: GameState,
    action: Action,
    catalog: Catalog,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Args:
        state: Current game state (never mutated)
        action: Action to apply
        catalog: Content catalog

    Returns:
        Tuple of (new_state, events) where events describe what happened
    """
    result = validate_action(state, action, catalog)
    if not result.valid:
        if result.noop:
            return state, []
        rejected_state = state.copy()
        rejected_state.add_log(action.player, result.error or "Action rejected", rejected=True)
        return rejected_state, [action_rejected(action.type, action.player, result.error or "")]

    new_state = state.copy()
    handler = _HANDLERS[action.type]
    events = handler(new_state, action, catalog)
    return new_state, events


# ===== Handlers (state is already a private copy and the action is validated) =====

def _handle_draw_cards(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    player = state.current_player
    bonus = calculate_territory_bonus(state, player.id, catalog)
    count = max(1, CARDS_PER_DRAW + bonus.bonus_draw)
    events = draw_cards_for_player(
        state, player.id, count, catalog, ensure_non_general=state.options.ensure_variety
    )
    events.extend(_set_turn_phase(state, "action"))
    events.extend(_maybe_auto_end_turn(state, catalog))
    return events


def _handle_end_turn(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    return _end_turn(state, catalog)


def _handle_start_attack(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    attacker = state.current_player
    territory_id = action.payload["territory_id"]
    instance_ids = set(action.payload.get("card_instance_ids") or [])
    territory = state.territories[territory_id]

    selected = _take_from_hand(attacker.hand, instance_ids)
    attack_cards: list[CardInstance] = []
    tactician_card: CardInstance | None = None
    for card in selected:
        if catalog.cards[card.card_id].type == "tactician":
            tactician_card = card
        else:
            attack_cards.append(card)

    attacker.actions -= 1
    state.combat = Combat(
        attacker_id=attacker.id,
        defender_id=territory.owner,
        territory_id=territory_id,
        attack_cards=attack_cards,
        tactician_card=tactician_card,
        tactician_target_instance_id=(
            action.payload.get("tactician_target_instance_id") if tactician_card else None
        ),
        phase="defending" if territory.owner else "resolving",
    )

    territory_name = catalog.territories[territory_id].display_name
    state.add_log(attacker.id, f"Attacks {territory_name}")
    if tactician_card is not None:
        state.add_log(attacker.id, f"{catalog.cards[tactician_card.card_id].display_name} advises the attack")
    events = [
        combat_started(
            attacker.id,
            territory.owner,
            territory_id,
            [c.instance_id for c in attack_cards],
            tactician_card.instance_id if tactician_card else None,
            state.combat.phase,
        )
    ]
    # Unowned territory: only terrain defends, resolve right away
    if territory.owner is None:
        events.extend(_resolve_and_check(state, catalog))
    return events


def _handle_defend(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    defender = state.get_player(action.player)
    instance_ids = set(action.payload.get("card_instance_ids") or [])
    state.combat.defense_cards = _take_from_hand(defender.hand, instance_ids)
    state.combat.phase = "resolving"
    state.add_log(defender.id, f"Defends with {len(state.combat.defense_cards)} card(s)")
    return _resolve_and_check(state, catalog)


def _handle_skip_defense(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    state.combat.defense_cards = []
    state.combat.phase = "resolving"
    state.add_log(action.player, "Does not defend")
    return _resolve_and_check(state, catalog)


def _handle_clear_combat(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    territory_id = state.combat.territory_id
    state.combat = None
    events = [combat_cleared(territory_id)]
    events.extend(_maybe_auto_end_turn(state, catalog))
    return events


def _handle_deploy_general(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    player = state.current_player
    instance_id = action.payload["card_instance_id"]
    territory_id = action.payload["territory_id"]
    card = _take_from_hand(player.hand, {instance_id})[0]
    state.territories[territory_id].garrison.append(card)
    player.actions -= 1

    card_name = catalog.cards[card.card_id].display_name
    state.add_log(player.id, f"Deployed {card_name} to {catalog.territories[territory_id].display_name}")
    events = [general_deployed(player.id, instance_id, territory_id)]
    events.extend(_maybe_auto_end_turn(state, catalog))
    return events


def _handle_play_card(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    """
    Resource: +value resources, then its bonus effect.
    Event: its effect; global events are also recorded in active_events.
    The card leaves the hand before its effect runs and reaches the discard pile after.
    """
    player = state.current_player
    instance_id = action.payload["card_instance_id"]
    target_id = action.payload.get("target_id")
    card = _take_from_hand(player.hand, {instance_id})[0]
    card_def = catalog.cards[card.card_id]
    if card_def.cost > 0:
        player.actions -= 1

    events = [card_played(player.id, instance_id, card_def.id, target_id)]
    ctx = EffectContext(player_id=player.id, card=card_def, catalog=catalog, target_id=target_id)

    if card_def.type == "resource":
        player.resources += card_def.value
        state.add_log(player.id, f"Played {card_def.display_name}: resources +{card_def.value}")
        if card_def.bonus_effect is not None:
            events.extend(apply_card_effect(state, card_def.bonus_effect, ctx))
    else:
        state.add_log(player.id, f"Played {card_def.display_name}")
        if card_def.global_effect:
            register_active_event(state, ctx)
        if card_def.event_effect is not None:
            events.extend(apply_card_effect(state, card_def.event_effect, ctx))

    state.discard_pile.append(card)
    events.extend(_maybe_auto_end_turn(state, catalog))
    return events


def _handle_discard_card(state: GameState, action: Action, catalog: Catalog) -> list[GameEvent]:
    player = state.current_player
    instance_id = action.payload["card_instance_id"]
    card = _take_from_hand(player.hand, {instance_id})[0]
    state.discard_pile.append(card)
    state.add_log(player.id, f"Discarded {catalog.cards[card.card_id].display_name}")
    events = [card_discarded(player.id, instance_id, card.card_id)]

    if state.turn_phase == "discard" and len(player.hand) <= MAX_HAND_SIZE:
        events.extend(_finish_turn(state, catalog))
    return events


_HANDLERS = {
    "draw_cards": _handle_draw_cards,
    # Leaving the action phase is the same as ending the turn
    "advance_phase": _handle_end_turn,
    "end_turn": _handle_end_turn,
    "start_attack": _handle_start_attack,
    "defend": _handle_defend,
    "skip_defense": _handle_skip_defense,
    "clear_combat": _handle_clear_combat,
    "deploy_general": _handle_deploy_general,
    "play_card": _handle_play_card,
    "discard_card": _handle_discard_card,
}


# ===== Turn machine =====

def _take_from_hand(hand: list[CardInstance], instance_ids: set[str]) -> list[CardInstance]:
    """Remove and return the matching cards, keeping hand order."""
    taken = [card for card in hand if card.instance_id in instance_ids]
    hand[:] = [card for card in hand if card.instance_id not in instance_ids]
    return taken


def _set_turn_phase(state: GameState, new_phase: str) -> list[GameEvent]:
    old_phase = state.turn_phase
    state.turn_phase = new_phase
    if old_phase == new_phase:
        return []
    return [phase_changed(old_phase, new_phase, state.current_player.id)]


def _resolve_and_check(state: GameState, catalog: Catalog) -> list[GameEvent]:
    events = resolve_combat(state, catalog)
    events.extend(check_and_apply_victory(state, catalog))
    return events


def _maybe_auto_end_turn(state: GameState, catalog: Catalog) -> list[GameEvent]:
    """Out of action points with nothing on the table ends the turn."""
    if state.phase != "playing" or state.turn_phase != "action" or state.combat is not None:
        return []
    if state.current_player.actions > 0:
        return []
    state.add_log(state.current_player.id, "No action points left")
    return _end_turn(state, catalog)


def _end_turn(state: GameState, catalog: Catalog) -> list[GameEvent]:
    """End the action phase: over the hand cap means discard first, otherwise pass the turn."""
    events: list[GameEvent] = []
    if state.combat is not None:
        events.append(combat_cleared(state.combat.territory_id))
        state.combat = None

    player = state.current_player
    if len(player.hand) > MAX_HAND_SIZE:
        events.extend(_set_turn_phase(state, "discard"))
        state.add_log(player.id, f"Hand over {MAX_HAND_SIZE} cards, discard before ending the turn")
        return events

    events.extend(_finish_turn(state, catalog))
    return events


def _finish_turn(state: GameState, catalog: Catalog) -> list[GameEvent]:
    player = state.current_player
    events: list[GameEvent] = []
    if len(player.hand) > SOFT_HAND_SIZE:
        player.next_turn_action_penalty = HAND_OVERFLOW_ACTION_PENALTY
        state.add_log(player.id, f"Holding more than {SOFT_HAND_SIZE} cards costs an action next turn")

    events.append(turn_ended(state.turn_number, player.id))
    events.extend(tick_global_effects(state))
    events.extend(_advance_to_next_player(state, catalog))
    return events


def _advance_to_next_player(state: GameState, catalog: Catalog) -> list[GameEvent]:
    """
    Pass the turn to the next non-eliminated player.
    The turn counter goes up when play wraps around to the first surviving seat.
    """
    if len(state.active_players()) <= 1:
        return check_and_apply_victory(state, catalog)

    current_index = state.current_player_index
    next_index = current_index
    while True:
        next_index = (next_index + 1) % len(state.players)
        if not state.players[next_index].is_eliminated:
            break

    first_alive_index = next(i for i, p in enumerate(state.players) if not p.is_eliminated)
    if next_index == first_alive_index and next_index <= current_index:
        state.turn_number += 1

    state.players[current_index].is_active = False
    state.current_player_index = next_index
    state.players[next_index].is_active = True
    events = _set_turn_phase(state, "draw")
    events.extend(_start_turn(state, catalog))
    return events


def _start_turn(state: GameState, catalog: Catalog) -> list[GameEvent]:
    player = state.current_player
    events = purge_owner_effects(state, player.id)

    bonus = calculate_territory_bonus(state, player.id, catalog)
    penalty = player.next_turn_action_penalty
    player.actions = max(0, ACTIONS_PER_TURN + bonus.bonus_actions - penalty)
    player.next_turn_action_penalty = 0

    notes = []
    if bonus.bonus_draw:
        notes.append(f"cards {bonus.bonus_draw:+d}")
    if bonus.bonus_actions:
        notes.append(f"actions {bonus.bonus_actions:+d}")
    if penalty:
        notes.append(f"hand overflow -{penalty} action")
    if notes:
        if bonus.fragmentation_groups >= 2:
            state.add_log(player.id, f"Territory split into {bonus.fragmentation_groups} groups: {', '.join(notes)}")
        else:
            state.add_log(player.id, f"Territory bonus: {', '.join(notes)}")
    events.append(bonus_applied(
        player.id,
        bonus.bonus_draw,
        bonus.bonus_actions,
        bonus.dominated_regions,
        bonus.fragmentation_groups,
        action_penalty=penalty,
    ))

    state.add_log(player.id, "Turn started")
    events.append(turn_started(state.turn_number, player.id, player.actions))
    events.extend(check_and_apply_victory(state, catalog))
    return events


# ===== Victory =====

def _declare_winner(state: GameState, winner_id: str, reason: str) -> list[GameEvent]:
    state.winner = winner_id
    state.phase = "finished"
    state.victory_candidate = None
    winner = state.get_player(winner_id)
    state.add_log(SYSTEM_PLAYER_ID, f"{winner.name if winner else winner_id} wins ({reason})")
    return [victory(winner_id, reason)]


def check_and_apply_victory(state: GameState, catalog: Catalog) -> list[GameEvent]:
    """
    Apply victory with confirmation hysteresis. Mutates state in place.

    - last player standing wins at once
    - a player meeting a threshold becomes the candidate (since the current turn)
    - the candidate wins once they have held it for victory_confirmation_turns turns
    - another qualifying player replaces the candidate; nobody qualifying clears it
    """
    if state.phase == "finished":
        return []

    survivors = state.active_players()
    if len(survivors) == 1:
        return _declare_winner(state, survivors[0].id, "last_player_standing")
    if not survivors:
        state.phase = "finished"
        return []

    qualifier = check_victory(state, catalog)
    if qualifier is None:
        if state.victory_candidate is not None:
            state.add_log(SYSTEM_PLAYER_ID, f"{state.victory_candidate.player_id} no longer meets the victory threshold")
            state.victory_candidate = None
        return []

    confirmation_turns = state.options.victory_confirmation_turns
    candidate = state.victory_candidate
    if candidate is not None and candidate.player_id == qualifier:
        if state.turn_number - candidate.since_turn >= confirmation_turns:
            return _declare_winner(state, qualifier, "threshold_held")
        return []

    state.victory_candidate = VictoryCandidate(player_id=qualifier, since_turn=state.turn_number)
    state.add_log(SYSTEM_PLAYER_ID, f"{qualifier} meets the victory threshold")
    events = [victory_candidate(qualifier, state.turn_number)]
    if confirmation_turns <= 0:
        events.extend(_declare_winner(state, qualifier, "threshold_held"))
    return events


# ===== Replay =====

def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    catalog: Catalog,
) -> tuple[GameState, list[GameEvent]]:
    """
    Rebuild a state by applying actions in order.
    Shuffles are seeded from the state, so the result is identical to the original run.
    """
    state = initial_state
    all_events: list[GameEvent] = []
    for action in actions:
        state, events = apply_action(state, action, catalog)
        all_events.extend(events)
    return state, all_events
