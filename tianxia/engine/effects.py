"""
Card effects as tagged variants with an explicit handler table.

Every effect tag belongs to exactly one category:
- attack modifiers: ATTACK_BOOST, ATTACK_BOOST_SMALL, ATTACK_BUFF (owner only), ATTACK_DEBUFF (global)
- defense modifiers: TERRITORY_DEFENSE (one territory)
- card draw: DRAW_1, DRAW_3, DISCARD_ALL_1
- block flags: BLOCK_NEUTRAL, BLOCK_ATTACK (global)

Strategy cards carry a StrategyEffect that only matters inside combat (see combat.py).
Adding an effect means adding an enum member, an EFFECT_SPECS row and an EFFECT_HANDLERS row;
catalog loading rejects any tag that is not a member.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Callable

from tianxia.engine.state import GameState, TurnEffect, ActiveEvent
from tianxia.engine.events import (
    GameEvent,
    turn_effect_added,
    turn_effect_expired,
    card_discarded,
)

if TYPE_CHECKING:
    from tianxia.engine.definitions import Catalog, CardDefinition


class StrategyEffect(StrEnum):
    BURN = "BURN"
    AMBUSH = "AMBUSH"
    SIEGE = "SIEGE"
    REINFORCE = "REINFORCE"


# Strategy effects that may be committed to an attack
OFFENSIVE_STRATEGY_EFFECTS = frozenset({
    StrategyEffect.SIEGE,
    StrategyEffect.AMBUSH,
    StrategyEffect.BURN,
})


class EffectCategory(StrEnum):
    ATTACK_MODIFIER = "attack_modifier"
    DEFENSE_MODIFIER = "defense_modifier"
    CARD_DRAW = "card_draw"
    BLOCK_FLAG = "block_flag"


class CardEffect(StrEnum):
    DRAW_1 = "DRAW_1"
    DRAW_3 = "DRAW_3"
    DISCARD_ALL_1 = "DISCARD_ALL_1"
    ATTACK_BOOST = "ATTACK_BOOST"
    ATTACK_BOOST_SMALL = "ATTACK_BOOST_SMALL"
    ATTACK_BUFF = "ATTACK_BUFF"
    ATTACK_DEBUFF = "ATTACK_DEBUFF"
    TERRITORY_DEFENSE = "TERRITORY_DEFENSE"
    BLOCK_NEUTRAL = "BLOCK_NEUTRAL"
    BLOCK_ATTACK = "BLOCK_ATTACK"


@dataclass(frozen=True)
class EffectSpec:
    """Static shape of an effect: its category, signed magnitude and reach."""
    category: EffectCategory
    magnitude: int
    is_global: bool = False


EFFECT_SPECS: dict[CardEffect, EffectSpec] = {
    CardEffect.DRAW_1: EffectSpec(EffectCategory.CARD_DRAW, 1),
    CardEffect.DRAW_3: EffectSpec(EffectCategory.CARD_DRAW, 3),
    CardEffect.DISCARD_ALL_1: EffectSpec(EffectCategory.CARD_DRAW, 1, is_global=True),
    CardEffect.ATTACK_BOOST: EffectSpec(EffectCategory.ATTACK_MODIFIER, 2),
    CardEffect.ATTACK_BOOST_SMALL: EffectSpec(EffectCategory.ATTACK_MODIFIER, 1),
    CardEffect.ATTACK_BUFF: EffectSpec(EffectCategory.ATTACK_MODIFIER, 1),
    CardEffect.ATTACK_DEBUFF: EffectSpec(EffectCategory.ATTACK_MODIFIER, -2, is_global=True),
    CardEffect.TERRITORY_DEFENSE: EffectSpec(EffectCategory.DEFENSE_MODIFIER, 2),
    CardEffect.BLOCK_NEUTRAL: EffectSpec(EffectCategory.BLOCK_FLAG, 0, is_global=True),
    CardEffect.BLOCK_ATTACK: EffectSpec(EffectCategory.BLOCK_FLAG, 0, is_global=True),
}


@dataclass
class EffectContext:
    """Everything a handler may need about the card play that triggered it."""
    player_id: str
    card: "CardDefinition"
    catalog: "Catalog"
    target_id: str | None = None


EffectHandler = Callable[[GameState, CardEffect, EffectContext], list[GameEvent]]


def _global_turns(state: GameState, card: "CardDefinition") -> int:
    """Global effects last `duration` full rounds, counted in player turns."""
    alive = sum(1 for p in state.players if not p.is_eliminated)
    return max(1, card.duration or 1) * max(1, alive)


def add_turn_effect(
    state: GameState,
    effect: CardEffect,
    ctx: EffectContext,
    territory_id: str | None = None,
) -> TurnEffect:
    spec = EFFECT_SPECS[effect]
    state.effect_id_counter += 1
    turn_effect = TurnEffect(
        id=f"effect_{state.effect_id_counter:04d}",
        effect=effect.value,
        owner_id=ctx.player_id,
        magnitude=spec.magnitude,
        territory_id=territory_id,
        is_global=spec.is_global,
        remaining_turns=_global_turns(state, ctx.card) if spec.is_global else None,
        source_card_id=ctx.card.id,
    )
    state.turn_effects.append(turn_effect)
    refresh_block_flags(state)
    return turn_effect


def _handle_draw(state: GameState, effect: CardEffect, ctx: EffectContext) -> list[GameEvent]:
    # Local import: utils imports the definitions module which imports this one.
    from tianxia.engine.utils import draw_cards_for_player
    return draw_cards_for_player(state, ctx.player_id, EFFECT_SPECS[effect].magnitude, ctx.catalog)


def _handle_discard_all(state: GameState, effect: CardEffect, ctx: EffectContext) -> list[GameEvent]:
    """Every non-eliminated player discards the first (oldest) card in hand."""
    events: list[GameEvent] = []
    for player in state.players:
        if player.is_eliminated or not player.hand:
            continue
        for _ in range(EFFECT_SPECS[effect].magnitude):
            if not player.hand:
                break
            card = player.hand.pop(0)
            state.discard_pile.append(card)
            events.append(card_discarded(player.id, card.instance_id, card.card_id))
    return events


def _handle_attack_modifier(state: GameState, effect: CardEffect, ctx: EffectContext) -> list[GameEvent]:
    turn_effect = add_turn_effect(state, effect, ctx)
    return [turn_effect_added(turn_effect.to_dict())]


def _handle_territory_defense(state: GameState, effect: CardEffect, ctx: EffectContext) -> list[GameEvent]:
    """Fortify target_id when it is the player's own territory, otherwise their first territory."""
    player = state.get_player(ctx.player_id)
    if player is None or not player.territories:
        return []
    territory_id = ctx.target_id if ctx.target_id in player.territories else player.territories[0]
    turn_effect = add_turn_effect(state, effect, ctx, territory_id=territory_id)
    return [turn_effect_added(turn_effect.to_dict())]


def _handle_block_flag(state: GameState, effect: CardEffect, ctx: EffectContext) -> list[GameEvent]:
    turn_effect = add_turn_effect(state, effect, ctx)
    return [turn_effect_added(turn_effect.to_dict())]


EFFECT_HANDLERS: dict[CardEffect, EffectHandler] = {
    CardEffect.DRAW_1: _handle_draw,
    CardEffect.DRAW_3: _handle_draw,
    CardEffect.DISCARD_ALL_1: _handle_discard_all,
    CardEffect.ATTACK_BOOST: _handle_attack_modifier,
    CardEffect.ATTACK_BOOST_SMALL: _handle_attack_modifier,
    CardEffect.ATTACK_BUFF: _handle_attack_modifier,
    CardEffect.ATTACK_DEBUFF: _handle_attack_modifier,
    CardEffect.TERRITORY_DEFENSE: _handle_territory_defense,
    CardEffect.BLOCK_NEUTRAL: _handle_block_flag,
    CardEffect.BLOCK_ATTACK: _handle_block_flag,
}


def apply_card_effect(state: GameState, effect: CardEffect, ctx: EffectContext) -> list[GameEvent]:
    """Dispatch one effect through the handler table. Mutates state in place."""
    return EFFECT_HANDLERS[effect](state, effect, ctx)


def register_active_event(state: GameState, ctx: EffectContext) -> ActiveEvent:
    active = ActiveEvent(
        card_id=ctx.card.id,
        player_id=ctx.player_id,
        remaining_turns=_global_turns(state, ctx.card),
    )
    state.active_events.append(active)
    return active


# ===== Modifier queries (used by combat) =====

def _category(effect_tag: str) -> EffectCategory | None:
    try:
        return EFFECT_SPECS[CardEffect(effect_tag)].category
    except ValueError:
        return None


def attack_modifier_for(state: GameState, attacker_id: str) -> int:
    """Sum of attack boosts owned by the attacker plus every global attack modifier."""
    total = 0
    for effect in state.turn_effects:
        if _category(effect.effect) != EffectCategory.ATTACK_MODIFIER:
            continue
        if effect.is_global or effect.owner_id == attacker_id:
            total += effect.magnitude
    return total


def defense_modifier_for(state: GameState, territory_id: str) -> int:
    """Fortifications on the territory, counted only while their caster still holds it."""
    territory = state.territories.get(territory_id)
    owner_id = territory.owner if territory is not None else None
    return sum(
        effect.magnitude
        for effect in state.turn_effects
        if _category(effect.effect) == EffectCategory.DEFENSE_MODIFIER
        and effect.territory_id == territory_id
        and effect.owner_id == owner_id
    )


# ===== Expiry =====

def refresh_block_flags(state: GameState) -> None:
    """Block flags mirror the BLOCK_* effects currently in force."""
    tags = {effect.effect for effect in state.turn_effects}
    state.attacks_blocked = CardEffect.BLOCK_ATTACK.value in tags
    state.neutral_capture_blocked = CardEffect.BLOCK_NEUTRAL.value in tags


def purge_owner_effects(state: GameState, player_id: str) -> list[GameEvent]:
    """Drop the player's own (non-global) effects at the start of their next turn."""
    events: list[GameEvent] = []
    kept: list[TurnEffect] = []
    for effect in state.turn_effects:
        if not effect.is_global and effect.owner_id == player_id:
            events.append(turn_effect_expired(effect.id, effect.effect, effect.owner_id))
        else:
            kept.append(effect)
    state.turn_effects = kept
    refresh_block_flags(state)
    return events


def drop_territory_effects(state: GameState, territory_id: str) -> list[GameEvent]:
    """Drop fortifications on a territory that just changed hands."""
    events: list[GameEvent] = []
    kept: list[TurnEffect] = []
    for effect in state.turn_effects:
        if effect.territory_id == territory_id and not effect.is_global:
            events.append(turn_effect_expired(effect.id, effect.effect, effect.owner_id))
        else:
            kept.append(effect)
    state.turn_effects = kept
    return events


def tick_global_effects(state: GameState) -> list[GameEvent]:
    """
    Count down global effects and active events by one player turn.
    Called once per ended turn, whoever's turn it was.
    """
    events: list[GameEvent] = []
    kept: list[TurnEffect] = []
    for effect in state.turn_effects:
        if effect.is_global:
            effect.remaining_turns = (effect.remaining_turns or 0) - 1
            if effect.remaining_turns <= 0:
                events.append(turn_effect_expired(effect.id, effect.effect, effect.owner_id))
                continue
        kept.append(effect)
    state.turn_effects = kept
    for active in state.active_events:
        active.remaining_turns -= 1
    state.active_events = [a for a in state.active_events if a.remaining_turns > 0]
    refresh_block_flags(state)
    return events
