"""
Static definitions for cards, territories, and regions (the content catalog).
All setup data lives under data/setups/<setup_id>/: cards.json, territories.json, regions.json,
and manifest.json (display_name, map_asset, starting_positions, victory_criteria).
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional

from tianxia.engine.effects import CardEffect, StrategyEffect
from tianxia.engine import (
    VICTORY_TERRITORIES,
    VICTORY_VALUE,
    VICTORY_CONFIRMATION_TURNS,
)

DATA_DIR = Path(__file__).parent.parent / "data"
SETUPS_DIR = DATA_DIR / "setups"

CARD_TYPES = ("general", "strategy", "resource", "event", "tactician")
FACTIONS = ("wei", "shu", "wu", "neutral")
RARITIES = ("common", "rare", "legendary")


def _default_setup_id() -> str:
    """Single place for default: tianxia.config.DEFAULT_SETUP_ID."""
    from tianxia.config import DEFAULT_SETUP_ID
    return DEFAULT_SETUP_ID


def _setup_dir(setup_id: str) -> Path:
    return SETUPS_DIR / setup_id


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def list_setups() -> list[dict]:
    """Return [{ id, display_name, map_asset }, ...] for all setups with a cards.json."""
    out = []
    if not SETUPS_DIR.exists():
        return out
    for d in sorted(SETUPS_DIR.iterdir()):
        if not d.is_dir() or not (d / "cards.json").exists():
            continue
        setup_id = d.name
        try:
            m = _read_json(d / "manifest.json")
        except (json.JSONDecodeError, OSError):
            m = {}
        out.append({
            "id": m.get("id", setup_id),
            "display_name": m.get("display_name", setup_id),
            "map_asset": m.get("map_asset", setup_id),
        })
    return out


@dataclass
class CardDefinition:
    """Defines immutable properties of a card. Type-specific fields default to empty."""
    id: str
    display_name: str
    localized_name: str
    type: str  # "general", "strategy", "resource", "event", "tactician"
    faction: str  # "wei", "shu", "wu", "neutral"
    rarity: str  # "common", "rare", "legendary"
    cost: int  # action points spent when played from hand (resource/event)
    description: str = ""
    quantity: int = 1  # copies in the deck

    # general
    attack: int = 0
    defense: int = 0

    # strategy (effect) / resource (value)
    effect: Optional[StrategyEffect] = None
    value: int = 0
    target_type: Optional[str] = None  # "self", "enemy", "territory", "all"

    # resource
    bonus_effect: Optional[CardEffect] = None

    # event
    event_type: Optional[str] = None  # "weather", "rebellion", "diplomacy", "fortune"
    duration: int = 0
    global_effect: bool = False
    event_effect: Optional[CardEffect] = None

    # tactician
    tactics: int = 0
    timing: Optional[str] = None  # "attack_declare"
    slot: Optional[str] = None  # "item"
    apply_to: Optional[str] = None  # "single_attack_card"

    @property
    def is_general(self) -> bool:
        return self.type == "general"


@dataclass
class TerritoryDefinition:
    id: str
    display_name: str
    localized_name: str
    region: str
    value: int
    position: tuple[int, int]  # display only
    adjacent: list[str]  # as declared in the data file; may be one-sided
    defense_bonus: int = 0


@dataclass
class RegionDefinition:
    id: str
    display_name: str
    localized_name: str
    territories: list[str]
    bonus_draw: int = 0
    bonus_action: int = 0


@dataclass
class Catalog:
    """
    Everything the engine reads but never writes.
    regions keep file order: it decides which dominated region counts as "first".
    """
    setup_id: str
    display_name: str
    cards: dict[str, CardDefinition]
    territories: dict[str, TerritoryDefinition]
    regions: dict[str, RegionDefinition]
    adjacency: dict[str, frozenset[str]]  # symmetric
    starting_positions: dict[int, list[str]] = field(default_factory=dict)
    victory_criteria: dict[str, int] = field(default_factory=dict)
    non_general_multiplier: int = 1
    map_asset: Optional[str] = None

    def card(self, card_id: str) -> CardDefinition | None:
        return self.cards.get(card_id)

    def neighbors(self, territory_id: str) -> frozenset[str]:
        return self.adjacency.get(territory_id, frozenset())

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view for clients (GET /setups/{id}/catalog)."""
        return {
            "setup_id": self.setup_id,
            "display_name": self.display_name,
            "map_asset": self.map_asset,
            "cards": {cid: asdict(c) for cid, c in self.cards.items()},
            "territories": {
                tid: {**asdict(t), "adjacent": sorted(self.adjacency.get(tid, ()))}
                for tid, t in self.territories.items()
            },
            "regions": {rid: asdict(r) for rid, r in self.regions.items()},
            "starting_positions": {str(k): v for k, v in self.starting_positions.items()},
            "victory_criteria": self.victory_criteria,
        }


def build_adjacency_map(territories: dict[str, TerritoryDefinition]) -> dict[str, frozenset[str]]:
    """
    Make adjacency symmetric: if A lists B, B is adjacent to A even when the data omits it.
    Unknown ids in the data are dropped.
    """
    neighbors: dict[str, set[str]] = {tid: set() for tid in territories}
    for tid, territory in territories.items():
        for adjacent_id in territory.adjacent:
            if adjacent_id not in neighbors or adjacent_id == tid:
                continue
            neighbors[tid].add(adjacent_id)
            neighbors[adjacent_id].add(tid)
    return {tid: frozenset(adj) for tid, adj in neighbors.items()}


def _parse_enum(enum_cls, value: Any, card_id: str, field_name: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Card {card_id}: unknown {field_name} '{value}'") from None


def card_from_dict(data: dict[str, Any]) -> CardDefinition:
    card_id = data["id"]
    card_type = data["type"]
    if card_type not in CARD_TYPES:
        raise ValueError(f"Card {card_id}: unknown type '{card_type}'")
    if data.get("faction", "neutral") not in FACTIONS:
        raise ValueError(f"Card {card_id}: unknown faction '{data.get('faction')}'")
    # "effect" is a StrategyEffect on strategy cards and a CardEffect on event cards
    strategy_effect = None
    event_effect = None
    if card_type == "strategy":
        strategy_effect = _parse_enum(StrategyEffect, data.get("effect"), card_id, "strategy effect")
        if strategy_effect is None:
            raise ValueError(f"Card {card_id}: strategy card without effect")
    elif card_type == "event":
        event_effect = _parse_enum(CardEffect, data.get("effect"), card_id, "event effect")
    return CardDefinition(
        id=card_id,
        display_name=data["display_name"],
        localized_name=data.get("localized_name", data["display_name"]),
        type=card_type,
        faction=data.get("faction", "neutral"),
        rarity=data.get("rarity", "common"),
        cost=int(data.get("cost", 0)),
        description=data.get("description", ""),
        quantity=int(data.get("quantity", 1)),
        attack=int(data.get("attack", 0)),
        defense=int(data.get("defense", 0)),
        effect=strategy_effect,
        value=int(data.get("value", 0)),
        target_type=data.get("target_type"),
        bonus_effect=_parse_enum(CardEffect, data.get("bonus_effect"), card_id, "bonus effect"),
        event_type=data.get("event_type"),
        duration=int(data.get("duration", 0)),
        global_effect=bool(data.get("global_effect", False)),
        event_effect=event_effect,
        tactics=int(data.get("tactics", 0)),
        timing=data.get("timing"),
        slot=data.get("slot"),
        apply_to=data.get("apply_to"),
    )


def territory_from_dict(data: dict[str, Any]) -> TerritoryDefinition:
    position = data.get("position") or [0, 0]
    return TerritoryDefinition(
        id=data["id"],
        display_name=data["display_name"],
        localized_name=data.get("localized_name", data["display_name"]),
        region=data["region"],
        value=int(data["value"]),
        position=(int(position[0]), int(position[1])),
        adjacent=list(data.get("adjacent", [])),
        defense_bonus=int(data.get("defense_bonus", 0)),
    )


def region_from_dict(data: dict[str, Any]) -> RegionDefinition:
    bonus = data.get("bonus") or {}
    return RegionDefinition(
        id=data["id"],
        display_name=data["display_name"],
        localized_name=data.get("localized_name", data["display_name"]),
        territories=list(data.get("territories", [])),
        bonus_draw=int(bonus.get("draw", 0)),
        bonus_action=int(bonus.get("action", 0)),
    )


def build_catalog(
    cards: dict[str, CardDefinition],
    territories: dict[str, TerritoryDefinition],
    regions: dict[str, RegionDefinition],
    setup_id: str = "custom",
    display_name: str | None = None,
    starting_positions: dict[int, list[str]] | None = None,
    victory_criteria: dict[str, int] | None = None,
    non_general_multiplier: int = 1,
    map_asset: str | None = None,
) -> Catalog:
    """Assemble a Catalog from already-parsed definitions (used by loaders and tests)."""
    for region in regions.values():
        missing = [tid for tid in region.territories if tid not in territories]
        if missing:
            raise ValueError(f"Region {region.id} references unknown territories: {missing}")
    return Catalog(
        setup_id=setup_id,
        display_name=display_name or setup_id,
        cards=cards,
        territories=territories,
        regions=regions,
        adjacency=build_adjacency_map(territories),
        starting_positions=starting_positions or {},
        victory_criteria=victory_criteria or {
            "territories": VICTORY_TERRITORIES,
            "value": VICTORY_VALUE,
            "confirmation_turns": VICTORY_CONFIRMATION_TURNS,
        },
        non_general_multiplier=max(1, non_general_multiplier),
        map_asset=map_asset,
    )


def load_catalog(data_dir: Path | str | None = None, setup_id: str | None = None) -> Catalog:
    """
    Load the content catalog. Give data_dir, or setup_id, or neither to use the default setup.
    Raises FileNotFoundError for a missing setup and ValueError for malformed content.
    """
    if data_dir is not None:
        setup_dir = Path(data_dir)
    else:
        setup_dir = _setup_dir(setup_id or _default_setup_id())
    if not setup_dir.exists() or not setup_dir.is_dir():
        raise FileNotFoundError(f"Setup not found: {setup_dir.name}")

    cards_data = _read_json(setup_dir / "cards.json")
    territories_data = _read_json(setup_dir / "territories.json")
    regions_data = _read_json(setup_dir / "regions.json")
    manifest_path = setup_dir / "manifest.json"
    manifest = _read_json(manifest_path) if manifest_path.exists() else {}

    cards = {card_id: card_from_dict(data) for card_id, data in cards_data.items()}
    territories = {tid: territory_from_dict(data) for tid, data in territories_data.items()}
    regions = {rid: region_from_dict(data) for rid, data in regions_data.items()}

    starting_positions = {
        int(count): list(positions)
        for count, positions in (manifest.get("starting_positions") or {}).items()
    }
    vc = manifest.get("victory_criteria") or {}
    victory_criteria = {
        "territories": int(vc.get("territories", VICTORY_TERRITORIES)),
        "value": int(vc.get("value", VICTORY_VALUE)),
        "confirmation_turns": int(vc.get("confirmation_turns", VICTORY_CONFIRMATION_TURNS)),
    }
    return build_catalog(
        cards,
        territories,
        regions,
        setup_id=manifest.get("id", setup_dir.name),
        display_name=manifest.get("display_name"),
        starting_positions=starting_positions,
        victory_criteria=victory_criteria,
        non_general_multiplier=int(manifest.get("non_general_multiplier", 1)),
        map_asset=manifest.get("map_asset"),
    )
