"""
Combat resolution.
One attack, one optional defense, resolved once: attacker wins only on strictly greater power.
Strategy cards contribute by role:
  attack set:  SIEGE / AMBUSH add their value to attack power, BURN lowers defense power
  defense set: REINFORCE adds its value to defense power, anything else is spent for nothing
"""

from dataclasses import dataclass

from tianxia.engine.state import GameState, Combat, CombatResult, CardInstance
from tianxia.engine.definitions import Catalog, CardDefinition
from tianxia.engine.effects import (
    StrategyEffect,
    attack_modifier_for,
    defense_modifier_for,
    drop_territory_effects,
    purge_owner_effects,
)
from tianxia.engine.events import (
    GameEvent,
    combat_resolved,
    territory_captured,
    player_eliminated,
)

ATTACKER = "attacker"
DEFENDER = "defender"

# Strategy role table: which side a strategy counts for and where its value goes
ATTACK_POWER_STRATEGIES = frozenset({StrategyEffect.SIEGE, StrategyEffect.AMBUSH})
DEFENSE_REDUCING_STRATEGIES = frozenset({StrategyEffect.BURN})
DEFENSE_POWER_STRATEGIES = frozenset({StrategyEffect.REINFORCE})


@dataclass
class AttackBreakdown:
    generals: int = 0
    strategies: int = 0
    tactician: int = 0
    modifiers: int = 0
    burn: int = 0

    @property
    def total(self) -> int:
        return max(0, self.generals + self.strategies + self.tactician + self.modifiers)


@dataclass
class DefenseBreakdown:
    terrain: int = 0
    fortification: int = 0
    garrison: int = 0
    generals: int = 0
    reinforcements: int = 0
    burn: int = 0

    @property
    def total(self) -> int:
        raw = self.terrain + self.fortification + self.garrison + self.generals + self.reinforcements
        return max(0, raw - self.burn)


def _definitions(cards: list[CardInstance], catalog: Catalog) -> list[tuple[CardInstance, CardDefinition]]:
    out = []
    for card in cards:
        card_def = catalog.card(card.card_id)
        if card_def is not None:
            out.append((card, card_def))
    return out


def compute_attack_breakdown(state: GameState, combat: Combat, catalog: Catalog) -> AttackBreakdown:
    breakdown = AttackBreakdown()
    for _card, card_def in _definitions(combat.attack_cards, catalog):
        if card_def.is_general:
            breakdown.generals += card_def.attack
        elif card_def.type == "strategy":
            if card_def.effect in ATTACK_POWER_STRATEGIES:
                breakdown.strategies += card_def.value
            elif card_def.effect in DEFENSE_REDUCING_STRATEGIES:
                breakdown.burn += card_def.value

    # Tactician only counts while the card it backs is actually in the attack set
    if combat.tactician_card is not None:
        tactician_def = catalog.card(combat.tactician_card.card_id)
        target_present = any(
            c.instance_id == combat.tactician_target_instance_id for c in combat.attack_cards
        )
        if tactician_def is not None and tactician_def.type == "tactician" and target_present:
            breakdown.tactician = tactician_def.tactics

    breakdown.modifiers = attack_modifier_for(state, combat.attacker_id)
    return breakdown


def compute_defense_breakdown(
    state: GameState, combat: Combat, catalog: Catalog, burn: int = 0
) -> DefenseBreakdown:
    breakdown = DefenseBreakdown(burn=burn)
    territory_def = catalog.territories.get(combat.territory_id)
    if territory_def is not None:
        breakdown.terrain = territory_def.defense_bonus
    breakdown.fortification = defense_modifier_for(state, combat.territory_id)

    territory = state.territories.get(combat.territory_id)
    if territory is not None:
        for _card, card_def in _definitions(territory.garrison, catalog):
            if card_def.is_general:
                breakdown.garrison += card_def.defense

    for _card, card_def in _definitions(combat.defense_cards, catalog):
        if card_def.is_general:
            breakdown.generals += card_def.defense
        elif card_def.type == "strategy" and card_def.effect in DEFENSE_POWER_STRATEGIES:
            breakdown.reinforcements += card_def.value
    return breakdown


def compute_attack_power(state: GameState, combat: Combat, catalog: Catalog) -> int:
    return compute_attack_breakdown(state, combat, catalog).total


def compute_defense_power(state: GameState, combat: Combat, catalog: Catalog) -> int:
    burn = compute_attack_breakdown(state, combat, catalog).burn
    return compute_defense_breakdown(state, combat, catalog, burn=burn).total


def resolve_combat(state: GameState, catalog: Catalog) -> list[GameEvent]:
    """
    Resolve the pending combat in place. Only acts on a combat in the "resolving" phase,
    so calling it again on a resolved combat changes nothing.
    Victory is not checked here; the reducer does that right after.
    """
    combat = state.combat
    if combat is None or combat.phase != "resolving":
        return []
    territory = state.territories.get(combat.territory_id)
    if territory is None:
        return []

    attack = compute_attack_breakdown(state, combat, catalog)
    defense = compute_defense_breakdown(state, combat, catalog, burn=attack.burn)
    attack_power = attack.total
    defense_power = defense.total
    attacker_wins = attack_power > defense_power

    combat.result = CombatResult(
        attack_power=attack_power,
        defense_power=defense_power,
        winner=ATTACKER if attacker_wins else DEFENDER,
        difference=abs(attack_power - defense_power),
    )
    combat.phase = "resolved"

    events: list[GameEvent] = [
        combat_resolved(
            combat.territory_id,
            attack_power,
            defense_power,
            combat.result.winner,
            combat.attacker_id,
            combat.defender_id,
        )
    ]
    territory_def = catalog.territories.get(combat.territory_id)
    territory_name = territory_def.display_name if territory_def else combat.territory_id

    if attacker_wins:
        previous_owner = territory.owner
        if previous_owner:
            defender = state.get_player(previous_owner)
            if defender is not None:
                defender.territories = [t for t in defender.territories if t != combat.territory_id]
                if not defender.territories:
                    defender.is_eliminated = True
                    defender.is_active = False
                    state.add_log(previous_owner, f"{defender.name} lost every territory and is eliminated")
                    events.append(player_eliminated(previous_owner, combat.attacker_id))
                    # Their next turn never comes, so their own effects go now
                    events.extend(purge_owner_effects(state, previous_owner))

        events.extend(drop_territory_effects(state, combat.territory_id))
        # Garrison goes to the discard pile, never destroyed
        state.discard_pile.extend(territory.garrison)
        territory.garrison = []
        territory.owner = combat.attacker_id
        attacker = state.get_player(combat.attacker_id)
        if attacker is not None and combat.territory_id not in attacker.territories:
            attacker.territories.append(combat.territory_id)

        events.append(territory_captured(combat.territory_id, previous_owner, combat.attacker_id))
        state.add_log(
            combat.attacker_id,
            f"Captured {territory_name} ({attack_power} vs {defense_power})",
        )
    else:
        state.add_log(
            combat.attacker_id,
            f"Attack on {territory_name} failed ({attack_power} vs {defense_power})",
        )

    state.discard_pile.extend(combat.committed_cards())
    return events
