"""
Computer opponent.
Plays through the same apply_action entry point as a human seat; holds nothing but its
difficulty and a random source, so a seeded rng gives a reproducible opponent.
"""

import random
from dataclasses import dataclass, field

from tianxia.engine.state import GameState, PlayerState, CardInstance
from tianxia.engine.definitions import Catalog
from tianxia.engine.effects import StrategyEffect
from tianxia.engine.combat import compute_attack_power, compute_defense_power
from tianxia.engine.queries import get_attackable_territory_ids, get_frontline_territory_ids
from tianxia.engine.reducer import apply_action
from tianxia.engine.events import GameEvent, ACTION_REJECTED
from tianxia.engine import actions as act

DIFFICULTIES = ("easy", "normal", "hard")

AI_NAMES = [
    "Cao Cao (AI)",
    "Liu Bei (AI)",
    "Sun Quan (AI)",
    "Lu Bu (AI)",
    "Guan Yu (AI)",
    "Zhang Fei (AI)",
    "Zhuge Liang (AI)",
    "Sima Yi (AI)",
]

# Lowest rank is discarded first
DISCARD_PRIORITY = {
    "event": 1,
    "resource": 2,
    "strategy": 3,
    "tactician": 4,
    "general": 5,
}

# Safety net against a decision loop that keeps getting rejected
MAX_DECISIONS_PER_TURN = 50


def get_ai_name(index: int) -> str:
    return AI_NAMES[index % len(AI_NAMES)]


@dataclass
class DifficultyProfile:
    attack_chance: float
    deploy_chance: float
    defense_chance: float
    max_attack_generals: int
    use_attack_strategies: bool
    score_targets: bool
    prefer_connected_targets: bool
    use_reinforcements: bool


PROFILES = {
    "easy": DifficultyProfile(0.3, 0.2, 0.3, 1, False, False, False, False),
    "normal": DifficultyProfile(0.5, 0.4, 0.5, 2, False, True, False, True),
    "hard": DifficultyProfile(0.7, 0.6, 0.8, 3, True, True, True, True),
}


@dataclass
class Decision:
    action: str  # "attack", "deploy", "end_turn"
    card_instance_ids: list[str] = field(default_factory=list)
    territory_id: str | None = None
    tactician_target_instance_id: str | None = None


class AIPlayer:
    def __init__(self, difficulty: str = "normal", rng: random.Random | None = None):
        if difficulty not in PROFILES:
            raise ValueError(f"Unknown AI difficulty '{difficulty}'")
        self.difficulty = difficulty
        self.profile = PROFILES[difficulty]
        self.rng = rng or random.Random()

    # ===== Turn driver =====

    def execute_full_turn(self, state: GameState, catalog: Catalog) -> tuple[GameState, list[GameEvent]]:
        """
        Play the current AI seat's whole turn: draw, act while points remain, end, discard.

        Returns early, with the turn unfinished, when an attack waits on a human defender.
        Call again once the defense is in and the turn picks up where it stopped.
        """
        events: list[GameEvent] = []
        if state.phase != "playing" or not state.current_player.is_ai:
            return state, events
        player_id = state.current_player.id

        def still_my_turn() -> bool:
            return state.phase == "playing" and state.current_player.id == player_id

        def apply(action: act.Action) -> bool:
            nonlocal state
            state, new_events = apply_action(state, action, catalog)
            events.extend(new_events)
            return not any(e.type == ACTION_REJECTED for e in new_events)

        if state.combat is not None and state.combat.phase == "defending":
            if not self._defender_is_ai(state):
                return state, events
            state, defense_events = self.respond_to_combat(state, catalog)
            events.extend(defense_events)

        if still_my_turn() and state.turn_phase == "draw":
            apply(act.draw_cards(player_id))

        for _ in range(MAX_DECISIONS_PER_TURN):
            if not still_my_turn() or state.turn_phase != "action":
                break
            if state.combat is not None and state.combat.phase == "resolved":
                apply(act.clear_combat(player_id))
                continue
            if state.current_player.actions <= 0:
                break

            decision = self.decide_action(state, catalog)
            if decision.action == "end_turn":
                break
            if not apply(self._to_action(player_id, decision)):
                break

            if state.combat is not None and state.combat.phase == "defending":
                if not self._defender_is_ai(state):
                    return state, events
                state, defense_events = self.respond_to_combat(state, catalog)
                events.extend(defense_events)

        if still_my_turn() and state.turn_phase == "action":
            apply(act.end_turn(player_id))

        while still_my_turn() and state.turn_phase == "discard":
            card = self.select_card_to_discard(state.current_player, catalog)
            if card is None or not apply(act.discard_card(player_id, card.instance_id)):
                break

        return state, events

    def respond_to_combat(self, state: GameState, catalog: Catalog) -> tuple[GameState, list[GameEvent]]:
        """Defend (or skip) a combat waiting on an AI defender. Anything else is left alone."""
        combat = state.combat
        if combat is None or combat.phase != "defending" or not self._defender_is_ai(state):
            return state, []
        defender = state.get_player(combat.defender_id)
        cards = self.select_defense_cards(state, defender, catalog)
        if cards:
            action = act.defend(defender.id, [c.instance_id for c in cards])
        else:
            action = act.skip_defense(defender.id)
        return apply_action(state, action, catalog)

    # ===== Decisions =====

    def decide_action(self, state: GameState, catalog: Catalog) -> Decision:
        player = state.current_player
        generals = self._cards_of_type(player, catalog, "general")

        attackable = get_attackable_territory_ids(state, player.id, catalog)
        if attackable and generals and self.rng.random() < self.profile.attack_chance:
            target = self.select_attack_target(state, attackable, catalog)
            attack_cards = self.select_attack_cards(player, catalog)
            if target and attack_cards:
                card_ids = [c.instance_id for c in attack_cards]
                tacticians = self._cards_of_type(player, catalog, "tactician")
                tactician_target = None
                if tacticians:
                    card_ids.append(tacticians[0].instance_id)
                    tactician_target = attack_cards[0].instance_id
                return Decision("attack", card_ids, target, tactician_target)

        if generals and player.territories and self.rng.random() < self.profile.deploy_chance:
            target = self.select_deploy_target(state, catalog)
            if target:
                return Decision("deploy", [generals[0].instance_id], target)

        return Decision("end_turn")

    def select_attack_target(self, state: GameState, attackable: list[str], catalog: Catalog) -> str | None:
        """
        Easy picks at random. Otherwise highest score of
        value*2 - terrain defense - 3 per garrisoned general, +5 if unowned (+ degree on hard).
        Ties keep catalog order.
        """
        if not attackable:
            return None
        if not self.profile.score_targets:
            return self.rng.choice(attackable)

        def score(territory_id: str) -> int:
            territory_def = catalog.territories[territory_id]
            territory = state.territories[territory_id]
            value = territory_def.value * 2 - territory_def.defense_bonus - 3 * len(territory.garrison)
            if territory.owner is None:
                value += 5
            if self.profile.prefer_connected_targets:
                value += len(catalog.neighbors(territory_id))
            return value

        return max(attackable, key=score)

    def select_attack_cards(self, player: PlayerState, catalog: Catalog) -> list[CardInstance]:
        generals = sorted(
            self._cards_of_type(player, catalog, "general"),
            key=lambda c: catalog.cards[c.card_id].attack,
            reverse=True,
        )
        selected = generals[: self.profile.max_attack_generals]
        if self.profile.use_attack_strategies:
            for card in self._cards_of_type(player, catalog, "strategy"):
                if catalog.cards[card.card_id].effect in (StrategyEffect.SIEGE, StrategyEffect.AMBUSH):
                    selected.append(card)
                    break
        return selected

    def select_deploy_target(self, state: GameState, catalog: Catalog) -> str | None:
        """Frontline territory with the smallest garrison, else any owned territory."""
        player = state.current_player
        candidates = get_frontline_territory_ids(state, player.id, catalog) or list(player.territories)
        if not candidates:
            return None
        return min(candidates, key=lambda tid: len(state.territories[tid].garrison))

    def select_defense_cards(
        self, state: GameState, defender: PlayerState, catalog: Catalog
    ) -> list[CardInstance]:
        combat = state.combat
        if combat is None or self.rng.random() > self.profile.defense_chance:
            return []

        attack_power = compute_attack_power(state, combat, catalog)
        defense_power = compute_defense_power(state, combat, catalog)
        selected: list[CardInstance] = []
        generals = sorted(
            self._cards_of_type(defender, catalog, "general"),
            key=lambda c: catalog.cards[c.card_id].defense,
            reverse=True,
        )
        for card in generals:
            if defense_power >= attack_power:
                break
            selected.append(card)
            defense_power += catalog.cards[card.card_id].defense

        if self.profile.use_reinforcements and defense_power < attack_power:
            for card in self._cards_of_type(defender, catalog, "strategy"):
                if catalog.cards[card.card_id].effect == StrategyEffect.REINFORCE:
                    selected.append(card)
                    break
        return selected

    def select_card_to_discard(self, player: PlayerState, catalog: Catalog) -> CardInstance | None:
        if not player.hand:
            return None

        def rank(card: CardInstance) -> int:
            card_def = catalog.card(card.card_id)
            return DISCARD_PRIORITY.get(card_def.type, 0) if card_def else 0

        return min(player.hand, key=rank)

    # ===== Helpers =====

    @staticmethod
    def _cards_of_type(player: PlayerState, catalog: Catalog, card_type: str) -> list[CardInstance]:
        cards = []
        for card in player.hand:
            card_def = catalog.card(card.card_id)
            if card_def is not None and card_def.type == card_type:
                cards.append(card)
        return cards

    @staticmethod
    def _defender_is_ai(state: GameState) -> bool:
        defender = state.get_player(state.combat.defender_id) if state.combat else None
        return defender is not None and defender.is_ai

    @staticmethod
    def _to_action(player_id: str, decision: Decision) -> act.Action:
        if decision.action == "attack":
            return act.start_attack(
                player_id,
                decision.territory_id,
                decision.card_instance_ids,
                decision.tactician_target_instance_id,
            )
        return act.deploy_general(player_id, decision.card_instance_ids[0], decision.territory_id)
