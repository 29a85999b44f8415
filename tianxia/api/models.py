"""
Pydantic models for the websocket relay protocol.
Clients send camelCase JSON with a "type" discriminator; server messages are {type, payload}.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ===== Client -> server =====

class RoomCreate(WireModel):
    type: Literal["room:create"]
    max_players: int = Field(4, alias="maxPlayers")


class RoomJoin(WireModel):
    type: Literal["room:join"]
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)


class SeatSelect(WireModel):
    type: Literal["seat:select"]
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)
    seat_index: int = Field(alias="seatIndex")
    name: str = Field("", max_length=32)


class SeatReclaim(WireModel):
    type: Literal["seat:reclaim"]
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)
    seat_index: int = Field(alias="seatIndex")
    seat_token: str = Field(alias="seatToken", min_length=1)
    name: str | None = Field(None, max_length=32)


class RoomLeave(WireModel):
    type: Literal["room:leave"]
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)


class StartOptions(WireModel):
    """
    Per-game overrides; anything left out falls back to the setup's victory criteria.
    There is no seed field: the relay draws the shuffle seed itself, so no client can rebuild the deck.
    """
    victory_territories: int | None = Field(None, alias="victoryTerritories", ge=1)
    victory_value: int | None = Field(None, alias="victoryValue", ge=1)
    victory_confirmation_turns: int | None = Field(None, alias="victoryConfirmationTurns", ge=0)
    ensure_variety: bool = Field(True, alias="ensureVariety")


class RoomStart(WireModel):
    type: Literal["room:start"]
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)
    options: StartOptions | None = None


GameActionName = Literal[
    "drawCards",
    "advancePhase",
    "endTurn",
    "attack",
    "defend",
    "skipDefense",
    "clearCombat",
    "deployGeneral",
    "playCard",
    "discardCard",
]


class GameActionMessage(WireModel):
    type: Literal["game:action"]
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)
    action: GameActionName
    acting_player_id: str = Field(alias="actingPlayerId")
    action_data: dict[str, Any] = Field(default_factory=dict, alias="actionData")


ClientMessage = Annotated[
    Union[RoomCreate, RoomJoin, SeatSelect, SeatReclaim, RoomLeave, RoomStart, GameActionMessage],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: Any) -> ClientMessage:
    """Raises pydantic.ValidationError for anything that is not a known, well-formed message."""
    return client_message_adapter.validate_python(data)


# ===== game:action payloads =====

class AttackData(WireModel):
    target_territory_id: str = Field(alias="targetTerritoryId")
    card_instance_ids: list[str] = Field(default_factory=list, alias="cardInstanceIds")
    tactician_target_instance_id: str | None = Field(None, alias="tacticianTargetInstanceId")


class DefendData(WireModel):
    card_instance_ids: list[str] = Field(default_factory=list, alias="cardInstanceIds")


class DeployData(WireModel):
    card_instance_id: str = Field(alias="cardInstanceId")
    territory_id: str = Field(alias="territoryId")


class PlayCardData(WireModel):
    card_instance_id: str = Field(alias="cardInstanceId")
    target_id: str | None = Field(None, alias="targetId")


class DiscardData(WireModel):
    card_instance_id: str = Field(alias="cardInstanceId")


# ===== Server -> client =====

class SeatInfo(WireModel):
    index: int
    name: str | None
    color: str
    occupied: bool
    reserved: bool


class RoomInfo(WireModel):
    code: str
    max_players: int = Field(serialization_alias="maxPlayers")
    seats: list[SeatInfo]
    host_seat_index: int | None = Field(serialization_alias="hostSeatIndex")
    is_started: bool = Field(serialization_alias="isStarted")


class SeatConfirmed(WireModel):
    room_code: str = Field(serialization_alias="roomCode")
    seat_index: int = Field(serialization_alias="seatIndex")
    player_id: str = Field(serialization_alias="playerId")
    seat_token: str = Field(serialization_alias="seatToken")


def server_message(message_type: str, payload: Any) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True)
    return {"type": message_type, "payload": payload}


def error_message(message: str) -> dict[str, Any]:
    return server_message("room:error", {"message": message})
