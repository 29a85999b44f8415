"""
Game state representation.
All state is immutable from the caller's side; the reducer works on a deep copy.
Includes JSON serialization for transmission to clients and save/load.
"""

import json
from dataclasses import dataclass, field
from copy import deepcopy
from typing import Any

from tianxia.engine import (
    VICTORY_TERRITORIES,
    VICTORY_VALUE,
    VICTORY_CONFIRMATION_TURNS,
)


def _ensure_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(x) for x in value]
    return []


def _int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


@dataclass
class CardInstance:
    """One physical copy of a card. card_id points into the catalog."""
    instance_id: str  # Unique per copy (e.g., "guan_yu_0007")
    card_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"instance_id": self.instance_id, "card_id": self.card_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CardInstance":
        data = _dict(data)
        return cls(
            instance_id=str(data.get("instance_id") or ""),
            card_id=str(data.get("card_id") or ""),
        )


def _cards(value: Any) -> list[CardInstance]:
    return [CardInstance.from_dict(c) for c in _list(value) if isinstance(c, dict)]


@dataclass
class TerritoryState:
    """Dynamic state of a single territory. Static data lives in TerritoryDefinition."""
    owner: str | None = None  # player_id or None if unowned
    garrison: list[CardInstance] = field(default_factory=list)  # deployed generals

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "garrison": [c.to_dict() for c in self.garrison],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TerritoryState":
        data = _dict(data)
        owner = data.get("owner")
        return cls(
            owner=str(owner) if owner else None,
            garrison=_cards(data.get("garrison")),
        )


@dataclass
class PlayerState:
    id: str  # "player-0" .. "player-3"
    name: str
    color: str
    hand: list[CardInstance] = field(default_factory=list)
    territories: list[str] = field(default_factory=list)
    actions: int = 0
    is_active: bool = False
    is_eliminated: bool = False
    is_ai: bool = False
    resources: int = 0
    next_turn_action_penalty: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "hand": [c.to_dict() for c in self.hand],
            "hand_size": len(self.hand),
            "territories": list(self.territories),
            "actions": self.actions,
            "is_active": self.is_active,
            "is_eliminated": self.is_eliminated,
            "is_ai": self.is_ai,
            "resources": self.resources,
            "next_turn_action_penalty": self.next_turn_action_penalty,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlayerState":
        data = _dict(data)
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            color=str(data.get("color") or ""),
            hand=_cards(data.get("hand")),
            territories=_ensure_str_list(data.get("territories")),
            actions=_int(data.get("actions"), 0),
            is_active=bool(data.get("is_active", False)),
            is_eliminated=bool(data.get("is_eliminated", False)),
            is_ai=bool(data.get("is_ai", False)),
            resources=_int(data.get("resources"), 0),
            next_turn_action_penalty=_int(data.get("next_turn_action_penalty"), 0),
        )


@dataclass
class CombatResult:
    attack_power: int
    defense_power: int
    winner: str  # "attacker" or "defender"
    difference: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "attack_power": self.attack_power,
            "defense_power": self.defense_power,
            "winner": self.winner,
            "difference": self.difference,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CombatResult":
        data = _dict(data)
        return cls(
            attack_power=_int(data.get("attack_power"), 0),
            defense_power=_int(data.get("defense_power"), 0),
            winner=str(data.get("winner") or "defender"),
            difference=_int(data.get("difference"), 0),
        )


@dataclass
class Combat:
    """
    The single pending combat of a game.
    Committed cards live here (out of every hand) until resolution sends them to the discard pile.
    """
    attacker_id: str
    defender_id: str | None  # None when the target was unowned
    territory_id: str
    attack_cards: list[CardInstance] = field(default_factory=list)
    defense_cards: list[CardInstance] = field(default_factory=list)
    tactician_card: CardInstance | None = None
    tactician_target_instance_id: str | None = None
    phase: str = "defending"  # "defending", "resolving", "resolved"
    result: CombatResult | None = None

    def committed_cards(self) -> list[CardInstance]:
        cards = list(self.attack_cards) + list(self.defense_cards)
        if self.tactician_card is not None:
            cards.append(self.tactician_card)
        return cards

    def to_dict(self) -> dict[str, Any]:
        return {
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "territory_id": self.territory_id,
            "attack_cards": [c.to_dict() for c in self.attack_cards],
            "defense_cards": [c.to_dict() for c in self.defense_cards],
            "tactician_card": self.tactician_card.to_dict() if self.tactician_card else None,
            "tactician_target_instance_id": self.tactician_target_instance_id,
            "phase": self.phase,
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Combat":
        data = _dict(data)
        defender = data.get("defender_id")
        tactician = data.get("tactician_card")
        return cls(
            attacker_id=str(data.get("attacker_id") or ""),
            defender_id=str(defender) if defender else None,
            territory_id=str(data.get("territory_id") or ""),
            attack_cards=_cards(data.get("attack_cards")),
            defense_cards=_cards(data.get("defense_cards")),
            tactician_card=CardInstance.from_dict(tactician) if isinstance(tactician, dict) else None,
            tactician_target_instance_id=data.get("tactician_target_instance_id"),
            phase=str(data.get("phase") or "defending"),
            result=CombatResult.from_dict(data["result"]) if data.get("result") else None,
        )


@dataclass
class TurnEffect:
    """Transient modifier created by a resource or event card."""
    id: str
    effect: str  # CardEffect tag
    owner_id: str
    magnitude: int
    territory_id: str | None = None
    is_global: bool = False
    # Global effects only: player turns left before expiry
    remaining_turns: int | None = None
    source_card_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "effect": self.effect,
            "owner_id": self.owner_id,
            "magnitude": self.magnitude,
            "territory_id": self.territory_id,
            "is_global": self.is_global,
            "remaining_turns": self.remaining_turns,
            "source_card_id": self.source_card_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TurnEffect":
        data = _dict(data)
        remaining = data.get("remaining_turns")
        return cls(
            id=str(data.get("id") or ""),
            effect=str(data.get("effect") or ""),
            owner_id=str(data.get("owner_id") or ""),
            magnitude=_int(data.get("magnitude"), 0),
            territory_id=data.get("territory_id"),
            is_global=bool(data.get("is_global", False)),
            remaining_turns=_int(remaining, 0) if remaining is not None else None,
            source_card_id=data.get("source_card_id"),
        )


@dataclass
class ActiveEvent:
    """A global event card currently in force."""
    card_id: str
    player_id: str
    remaining_turns: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "card_id": self.card_id,
            "player_id": self.player_id,
            "remaining_turns": self.remaining_turns,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActiveEvent":
        data = _dict(data)
        return cls(
            card_id=str(data.get("card_id") or ""),
            player_id=str(data.get("player_id") or ""),
            remaining_turns=_int(data.get("remaining_turns"), 0),
        )


@dataclass
class VictoryCandidate:
    player_id: str
    since_turn: int  # turn number the threshold was first seen held

    def to_dict(self) -> dict[str, Any]:
        return {"player_id": self.player_id, "since_turn": self.since_turn}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VictoryCandidate":
        data = _dict(data)
        return cls(
            player_id=str(data.get("player_id") or ""),
            since_turn=_int(data.get("since_turn"), 1),
        )


@dataclass
class LogEntry:
    id: int
    turn: int
    player_id: str  # "system" for engine messages
    message: str
    rejected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "turn": self.turn,
            "player_id": self.player_id,
            "message": self.message,
            "rejected": self.rejected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEntry":
        data = _dict(data)
        return cls(
            id=_int(data.get("id"), 0),
            turn=_int(data.get("turn"), 1),
            player_id=str(data.get("player_id") or ""),
            message=str(data.get("message") or ""),
            rejected=bool(data.get("rejected", False)),
        )


@dataclass
class GameOptions:
    """Per-game settings chosen at initialization."""
    setup_id: str | None = None
    victory_territories: int = VICTORY_TERRITORIES
    victory_value: int = VICTORY_VALUE
    victory_confirmation_turns: int = VICTORY_CONFIRMATION_TURNS
    # Guarantee at least one non-general card per draw_cards batch
    ensure_variety: bool = True
    ai_seats: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "setup_id": self.setup_id,
            "victory_territories": self.victory_territories,
            "victory_value": self.victory_value,
            "victory_confirmation_turns": self.victory_confirmation_turns,
            "ensure_variety": self.ensure_variety,
            "ai_seats": list(self.ai_seats),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "GameOptions":
        data = _dict(data)
        return cls(
            setup_id=data.get("setup_id"),
            victory_territories=_int(data.get("victory_territories"), VICTORY_TERRITORIES),
            victory_value=_int(data.get("victory_value"), VICTORY_VALUE),
            victory_confirmation_turns=max(
                0, _int(data.get("victory_confirmation_turns"), VICTORY_CONFIRMATION_TURNS)
            ),
            ensure_variety=bool(data.get("ensure_variety", True)),
            ai_seats=[_int(x, -1) for x in _list(data.get("ai_seats"))],
        )


@dataclass
class GameState:
    """Complete game state."""
    turn_number: int
    current_player_index: int
    players: list[PlayerState]
    territories: dict[str, TerritoryState]  # territory_id -> TerritoryState
    phase: str = "playing"  # "playing" or "finished"
    turn_phase: str = "draw"  # "draw", "action", "discard"
    deck: list[CardInstance] = field(default_factory=list)
    discard_pile: list[CardInstance] = field(default_factory=list)
    active_events: list[ActiveEvent] = field(default_factory=list)
    turn_effects: list[TurnEffect] = field(default_factory=list)
    combat: Combat | None = None
    winner: str | None = None
    victory_candidate: VictoryCandidate | None = None
    log: list[LogEntry] = field(default_factory=list)
    neutral_capture_blocked: bool = False
    attacks_blocked: bool = False
    options: GameOptions = field(default_factory=GameOptions)
    # Shuffle source: random.Random(f"{seed}:{shuffle_count}") makes every reshuffle replayable
    seed: int = 0
    shuffle_count: int = 0
    card_id_counter: int = 0
    effect_id_counter: int = 0

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    @property
    def current_player(self) -> PlayerState:
        return self.players[self.current_player_index]

    def get_player(self, player_id: str | None) -> PlayerState | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def active_players(self) -> list[PlayerState]:
        return [p for p in self.players if not p.is_eliminated]

    def generate_card_instance_id(self, card_id: str) -> str:
        """Generate a unique instance ID for a card copy."""
        self.card_id_counter += 1
        return f"{card_id}_{self.card_id_counter:04d}"

    def add_log(self, player_id: str, message: str, rejected: bool = False) -> LogEntry:
        entry = LogEntry(
            id=len(self.log) + 1,
            turn=self.turn_number,
            player_id=player_id,
            message=message,
            rejected=rejected,
        )
        self.log.append(entry)
        return entry

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "phase": self.phase,
            "turn_number": self.turn_number,
            "current_player_index": self.current_player_index,
            "turn_phase": self.turn_phase,
            "players": [p.to_dict() for p in self.players],
            "territories": {
                tid: ts.to_dict() for tid, ts in self.territories.items()
            },
            "deck": [c.to_dict() for c in self.deck],
            "discard_pile": [c.to_dict() for c in self.discard_pile],
            "active_events": [a.to_dict() for a in self.active_events],
            "turn_effects": [e.to_dict() for e in self.turn_effects],
            "combat": self.combat.to_dict() if self.combat else None,
            "winner": self.winner,
            "victory_candidate": self.victory_candidate.to_dict() if self.victory_candidate else None,
            "log": [entry.to_dict() for entry in self.log],
            "neutral_capture_blocked": self.neutral_capture_blocked,
            "attacks_blocked": self.attacks_blocked,
            "options": self.options.to_dict(),
            "seed": self.seed,
            "shuffle_count": self.shuffle_count,
            "card_id_counter": self.card_id_counter,
            "effect_id_counter": self.effect_id_counter,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (missing fields fall back to defaults)."""
        territories_data = _dict(data.get("territories"))
        candidate = data.get("victory_candidate")
        return cls(
            phase=str(data.get("phase") or "playing"),
            turn_number=_int(data.get("turn_number"), 1),
            current_player_index=_int(data.get("current_player_index"), 0),
            turn_phase=str(data.get("turn_phase") or "draw"),
            players=[PlayerState.from_dict(p) for p in _list(data.get("players")) if isinstance(p, dict)],
            territories={
                tid: TerritoryState.from_dict(ts)
                for tid, ts in territories_data.items()
                if isinstance(ts, dict)
            },
            deck=_cards(data.get("deck")),
            discard_pile=_cards(data.get("discard_pile")),
            active_events=[ActiveEvent.from_dict(a) for a in _list(data.get("active_events")) if isinstance(a, dict)],
            turn_effects=[TurnEffect.from_dict(e) for e in _list(data.get("turn_effects")) if isinstance(e, dict)],
            combat=Combat.from_dict(data["combat"]) if data.get("combat") else None,
            winner=data.get("winner"),
            victory_candidate=VictoryCandidate.from_dict(candidate) if isinstance(candidate, dict) else None,
            log=[LogEntry.from_dict(e) for e in _list(data.get("log")) if isinstance(e, dict)],
            neutral_capture_blocked=bool(data.get("neutral_capture_blocked", False)),
            attacks_blocked=bool(data.get("attacks_blocked", False)),
            options=GameOptions.from_dict(data.get("options")),
            seed=_int(data.get("seed"), 0),
            shuffle_count=_int(data.get("shuffle_count"), 0),
            card_id_counter=_int(data.get("card_id_counter"), 0),
            effect_id_counter=_int(data.get("effect_id_counter"), 0),
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str))

    def save(self, filepath: str) -> None:
        """Save GameState to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "GameState":
        """Load GameState from a JSON file."""
        with open(filepath, "r", encoding="utf-8") as f:
            return cls.from_json(f.read())
