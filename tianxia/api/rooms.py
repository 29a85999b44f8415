"""
Room registry for networked games.

Rooms are independent aggregates: each owns its seats, its member connections and at most one
engine GameState. The registry is synchronous and transport-agnostic. Every operation returns
an outbox of (connection_id, message) pairs for the websocket layer to deliver, and raises
RoomError for anything the sender must be told was refused.
"""

import asyncio
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import ValidationError

from tianxia.config import (
    SEAT_RESERVE_SECONDS,
    EMPTY_ROOM_TTL_SECONDS,
    LOBBY_ROOM_TTL_SECONDS,
    ACTIVE_ROOM_TTL_SECONDS,
    ROOM_CODE_LENGTH,
    SEAT_TOKEN_SECRET,
)
from tianxia.engine import MIN_PLAYERS, MAX_PLAYERS, PLAYER_COLORS
from tianxia.engine import actions as act
from tianxia.engine.definitions import Catalog
from tianxia.engine.reducer import apply_action
from tianxia.engine.state import GameState, GameOptions
from tianxia.engine.utils import initialize_game_state
from .auth import create_seat_token, verify_seat_token
from .models import (
    AttackData,
    DefendData,
    DeployData,
    PlayCardData,
    DiscardData,
    StartOptions,
    RoomInfo,
    SeatInfo,
    SeatConfirmed,
    server_message,
)

logger = logging.getLogger(__name__)

ROOM_CODE_CHARS = string.ascii_uppercase + string.digits

Outgoing = tuple[str, dict[str, Any]]

DEFENDER_ACTIONS = ("defend", "skipDefense")


class RoomError(Exception):
    """A session command the sender is not allowed to make (sent back as room:error)."""


@dataclass
class Seat:
    index: int
    color: str
    name: str | None = None
    connection_id: str | None = None
    seat_token: str | None = None
    reserved_until: float | None = None
    last_seen_at: float | None = None

    @property
    def player_id(self) -> str:
        return f"player-{self.index}"

    @property
    def occupied(self) -> bool:
        return self.connection_id is not None

    def is_reserved(self, now: float) -> bool:
        return self.connection_id is None and self.reserved_until is not None and self.reserved_until > now

    def release(self, now: float, preserve_token: bool, reserve_seconds: float) -> None:
        """Drop the live connection. With preserve_token the seat stays reclaimable for a while."""
        self.connection_id = None
        self.last_seen_at = now
        if preserve_token:
            self.reserved_until = now + reserve_seconds
            return
        self.clear()

    def clear(self) -> None:
        self.name = None
        self.seat_token = None
        self.reserved_until = None
        self.last_seen_at = None


@dataclass
class Room:
    code: str
    max_players: int
    seats: list[Seat]
    created_at: float
    last_activity_at: float
    host_connection_id: str | None = None
    members: set[str] = field(default_factory=set)
    game_state: GameState | None = None
    # Held by the websocket layer around apply + broadcast
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_started(self) -> bool:
        return self.game_state is not None

    def seat_for_connection(self, connection_id: str) -> Seat | None:
        for seat in self.seats:
            if seat.connection_id == connection_id:
                return seat
        return None

    def touch(self, now: float) -> None:
        self.last_activity_at = now


# ===== Redaction and authorization =====

def redact_state(state: GameState, viewer_player_id: str | None) -> dict[str, Any]:
    """
    State as one client may see it: other players' hands become [] (hand_size stays),
    the deck becomes deck_size, and the shuffle seed is withheld.
    """
    data = state.to_dict()
    for player in data["players"]:
        if player["id"] != viewer_player_id:
            player["hand"] = []
    data["deck_size"] = len(data.pop("deck"))
    data.pop("seed", None)
    return data


def is_action_allowed(state: GameState, player_id: str, action_name: str) -> bool:
    """The current player may send anything; the defender may defend a combat awaiting defense."""
    if state.current_player.id == player_id:
        return True
    combat = state.combat
    if action_name not in DEFENDER_ACTIONS or combat is None:
        return False
    return combat.phase == "defending" and combat.defender_id == player_id


def build_engine_action(action_name: str, player_id: str, data: dict[str, Any]) -> act.Action:
    """Translate a game:action envelope into an engine Action. Raises RoomError on bad data."""
    try:
        if action_name == "drawCards":
            return act.draw_cards(player_id)
        if action_name == "advancePhase":
            return act.advance_phase(player_id)
        if action_name == "endTurn":
            return act.end_turn(player_id)
        if action_name == "attack":
            attack = AttackData.model_validate(data)
            return act.start_attack(
                player_id,
                attack.target_territory_id,
                attack.card_instance_ids,
                attack.tactician_target_instance_id,
            )
        if action_name == "defend":
            return act.defend(player_id, DefendData.model_validate(data).card_instance_ids)
        if action_name == "skipDefense":
            return act.skip_defense(player_id)
        if action_name == "clearCombat":
            return act.clear_combat(player_id)
        if action_name == "deployGeneral":
            deploy = DeployData.model_validate(data)
            return act.deploy_general(player_id, deploy.card_instance_id, deploy.territory_id)
        if action_name == "playCard":
            play = PlayCardData.model_validate(data)
            return act.play_card(player_id, play.card_instance_id, play.target_id)
        if action_name == "discardCard":
            return act.discard_card(player_id, DiscardData.model_validate(data).card_instance_id)
    except ValidationError as exc:
        raise RoomError(f"Malformed data for {action_name}") from exc
    raise RoomError(f"Unknown action {action_name}")


# ===== Registry =====

class RoomRegistry:
    """
    Every room of one relay process. Constructed by the entry point and handed to create_app;
    nothing here is global.
    """

    def __init__(
        self,
        catalog: Catalog,
        clock: Callable[[], float] = time.time,
        seat_reserve_seconds: float = SEAT_RESERVE_SECONDS,
        empty_room_ttl: float = EMPTY_ROOM_TTL_SECONDS,
        lobby_room_ttl: float = LOBBY_ROOM_TTL_SECONDS,
        active_room_ttl: float = ACTIVE_ROOM_TTL_SECONDS,
        code_length: int = ROOM_CODE_LENGTH,
        token_secret: str = SEAT_TOKEN_SECRET,
    ):
        self.catalog = catalog
        self.clock = clock
        self.seat_reserve_seconds = seat_reserve_seconds
        self.empty_room_ttl = empty_room_ttl
        self.lobby_room_ttl = lobby_room_ttl
        self.active_room_ttl = active_room_ttl
        self.code_length = code_length
        self.token_secret = token_secret
        self.rooms: dict[str, Room] = {}

    # ----- lookups -----

    def get_room(self, code: str) -> Room:
        room = self.rooms.get(code.upper())
        if room is None:
            raise RoomError("Room not found")
        return room

    def room_info(self, room: Room) -> RoomInfo:
        now = self.clock()
        self._expire_reservations(room, now)
        host_seat = room.seat_for_connection(room.host_connection_id) if room.host_connection_id else None
        return RoomInfo(
            code=room.code,
            max_players=room.max_players,
            seats=[
                SeatInfo(
                    index=seat.index,
                    name=seat.name,
                    color=seat.color,
                    occupied=seat.occupied,
                    reserved=seat.is_reserved(now),
                )
                for seat in room.seats
            ],
            host_seat_index=host_seat.index if host_seat else None,
            is_started=room.is_started,
        )

    def rooms_for_connection(self, connection_id: str) -> list[Room]:
        return [room for room in self.rooms.values() if connection_id in room.members]

    # ----- room lifecycle -----

    def create_room(self, connection_id: str, max_players: int) -> tuple[Room, list[Outgoing]]:
        now = self.clock()
        clamped = max(MIN_PLAYERS, min(MAX_PLAYERS, max_players))
        room = Room(
            code=self._new_room_code(),
            max_players=clamped,
            seats=[Seat(index=i, color=PLAYER_COLORS[i]) for i in range(clamped)],
            created_at=now,
            last_activity_at=now,
            host_connection_id=connection_id,
            members={connection_id},
        )
        self.rooms[room.code] = room
        logger.info("room %s created by %s (%d seats)", room.code, connection_id, clamped)
        return room, [(connection_id, server_message("room:update", self.room_info(room)))]

    def join_room(self, connection_id: str, code: str) -> list[Outgoing]:
        room = self.get_room(code)
        room.members.add(connection_id)
        room.touch(self.clock())
        outbox: list[Outgoing] = [(connection_id, server_message("room:update", self.room_info(room)))]
        if room.game_state is not None:
            outbox.append(self._game_update_for(room, connection_id))
        return outbox

    def select_seat(self, connection_id: str, code: str, seat_index: int, name: str) -> list[Outgoing]:
        room = self.get_room(code)
        seat = self._seat(room, seat_index)
        now = self.clock()
        self._expire_reservations(room, now)

        if seat.connection_id is not None and seat.connection_id != connection_id:
            raise RoomError("Seat is taken")
        if seat.is_reserved(now):
            raise RoomError("Seat is reserved")

        for other in room.seats:
            if other.connection_id == connection_id and other is not seat:
                other.release(now, preserve_token=False, reserve_seconds=self.seat_reserve_seconds)

        seat.connection_id = connection_id
        seat.name = name.strip() or f"Player {seat_index + 1}"
        seat.seat_token = create_seat_token(room.code, seat_index, self.token_secret)
        seat.reserved_until = None
        seat.last_seen_at = now
        room.members.add(connection_id)
        if room.host_connection_id is None:
            room.host_connection_id = connection_id
        room.touch(now)
        logger.info("room %s seat %d taken by %s", room.code, seat_index, connection_id)
        return self._seat_outbox(room, seat, connection_id)

    def reclaim_seat(
        self,
        connection_id: str,
        code: str,
        seat_index: int,
        seat_token: str,
        name: str | None = None,
    ) -> list[Outgoing]:
        room = self.get_room(code)
        seat = self._seat(room, seat_index)
        now = self.clock()

        if seat.seat_token is None:
            raise RoomError("Seat has no reservation")
        if seat.connection_id is None and seat.reserved_until is not None and seat.reserved_until <= now:
            seat.clear()
            raise RoomError("Seat reservation expired")
        if seat_token != seat.seat_token or not verify_seat_token(
            seat_token, room.code, seat_index, self.token_secret
        ):
            raise RoomError("Invalid seat token")
        if seat.connection_id is not None and seat.connection_id != connection_id:
            raise RoomError("Seat is taken")

        seat.connection_id = connection_id
        seat.reserved_until = None
        seat.last_seen_at = now
        if name and name.strip():
            seat.name = name.strip()
        elif not seat.name:
            seat.name = f"Player {seat_index + 1}"
        room.members.add(connection_id)
        if room.host_connection_id is None:
            room.host_connection_id = connection_id
        room.touch(now)
        logger.info("room %s seat %d reclaimed by %s", room.code, seat_index, connection_id)
        return self._seat_outbox(room, seat, connection_id)

    def leave_room(self, connection_id: str, code: str) -> list[Outgoing]:
        room = self.get_room(code)
        now = self.clock()
        for seat in room.seats:
            if seat.connection_id == connection_id:
                seat.release(now, preserve_token=False, reserve_seconds=self.seat_reserve_seconds)
        room.members.discard(connection_id)
        self._refresh_host(room)
        room.touch(now)
        return self._broadcast(room, server_message("room:update", self.room_info(room)))

    def disconnect(self, connection_id: str) -> list[Outgoing]:
        """A dropped connection keeps its seat token for the reservation window."""
        now = self.clock()
        outbox: list[Outgoing] = []
        for room in self.rooms_for_connection(connection_id):
            for seat in room.seats:
                if seat.connection_id == connection_id:
                    seat.release(now, preserve_token=True, reserve_seconds=self.seat_reserve_seconds)
            room.members.discard(connection_id)
            self._refresh_host(room)
            room.touch(now)
            outbox.extend(self._broadcast(room, server_message("room:update", self.room_info(room))))
        return outbox

    def start_game(
        self,
        connection_id: str,
        code: str,
        options: StartOptions | None = None,
        seed: int | None = None,
    ) -> list[Outgoing]:
        """Start the room's game. `seed` is for local callers only; the websocket layer never passes it."""
        room = self.get_room(code)
        if room.host_connection_id != connection_id:
            raise RoomError("Only the host can start the game")
        if room.is_started:
            raise RoomError("Game already started")
        if any(not seat.occupied for seat in room.seats):
            raise RoomError("Need all seats filled to start")

        options = options or StartOptions()
        criteria = self.catalog.victory_criteria
        game_options = GameOptions(
            setup_id=self.catalog.setup_id,
            victory_territories=options.victory_territories or criteria["territories"],
            victory_value=options.victory_value or criteria["value"],
            victory_confirmation_turns=(
                options.victory_confirmation_turns
                if options.victory_confirmation_turns is not None
                else criteria["confirmation_turns"]
            ),
            ensure_variety=options.ensure_variety,
        )
        if seed is None:
            seed = secrets.randbits(31)
        names = [seat.name or f"Player {seat.index + 1}" for seat in room.seats]
        room.game_state = initialize_game_state(names, self.catalog, game_options, seed=seed)
        room.touch(self.clock())
        logger.info("room %s started a %d-player game", room.code, len(names))

        outbox = self._broadcast(room, server_message("room:update", self.room_info(room)))
        outbox.extend(self._game_updates(room))
        return outbox

    def apply_game_action(
        self,
        connection_id: str,
        code: str,
        action_name: str,
        acting_player_id: str,
        action_data: dict[str, Any] | None = None,
    ) -> list[Outgoing]:
        """Authorize, translate and apply one game action, then fan out redacted state."""
        room = self.get_room(code)
        if room.game_state is None:
            raise RoomError("Game has not started")
        seat = room.seat_for_connection(connection_id)
        if seat is None or seat.player_id != acting_player_id:
            raise RoomError("You do not hold that seat")
        if not is_action_allowed(room.game_state, acting_player_id, action_name):
            raise RoomError("Not your turn")

        action = build_engine_action(action_name, acting_player_id, action_data or {})
        room.game_state, _events = apply_action(room.game_state, action, self.catalog)
        room.touch(self.clock())
        return self._game_updates(room)

    # ----- cleanup -----

    def room_ttl(self, room: Room, now: float) -> float:
        has_live_seat = any(seat.occupied or seat.is_reserved(now) for seat in room.seats)
        if not has_live_seat:
            return self.empty_room_ttl
        return self.active_room_ttl if room.is_started else self.lobby_room_ttl

    def cleanup(self) -> list[Outgoing]:
        """Close every room idle for longer than its TTL."""
        now = self.clock()
        outbox: list[Outgoing] = []
        for code, room in list(self.rooms.items()):
            if now - room.last_activity_at < self.room_ttl(room, now):
                continue
            outbox.extend(self._broadcast(room, server_message(
                "room:closed", {"message": "The room was closed after being idle"}
            )))
            del self.rooms[code]
            logger.info("room %s closed (idle)", code)
        return outbox

    # ----- helpers -----

    def _new_room_code(self) -> str:
        for _ in range(100):
            code = "".join(secrets.choice(ROOM_CODE_CHARS) for _ in range(self.code_length))
            if code not in self.rooms:
                return code
        raise RoomError("Could not generate a unique room code")

    def _seat(self, room: Room, seat_index: int) -> Seat:
        if seat_index < 0 or seat_index >= room.max_players:
            raise RoomError("No such seat")
        return room.seats[seat_index]

    def _expire_reservations(self, room: Room, now: float) -> None:
        for seat in room.seats:
            if seat.connection_id is None and seat.reserved_until is not None and seat.reserved_until <= now:
                seat.clear()

    def _refresh_host(self, room: Room) -> None:
        if room.host_connection_id and room.seat_for_connection(room.host_connection_id):
            return
        next_host = next((seat for seat in room.seats if seat.occupied), None)
        room.host_connection_id = next_host.connection_id if next_host else None

    def _broadcast(self, room: Room, message: dict[str, Any]) -> list[Outgoing]:
        return [(member, message) for member in sorted(room.members)]

    def _game_update_for(self, room: Room, connection_id: str) -> Outgoing:
        seat = room.seat_for_connection(connection_id)
        viewer = seat.player_id if seat else None
        return connection_id, server_message("game:update", redact_state(room.game_state, viewer))

    def _game_updates(self, room: Room) -> list[Outgoing]:
        if room.game_state is None:
            return []
        return [self._game_update_for(room, member) for member in sorted(room.members)]

    def _seat_outbox(self, room: Room, seat: Seat, connection_id: str) -> list[Outgoing]:
        outbox = self._broadcast(room, server_message("room:update", self.room_info(room)))
        outbox.append((connection_id, server_message("seat:confirmed", SeatConfirmed(
            room_code=room.code,
            seat_index=seat.index,
            player_id=seat.player_id,
            seat_token=seat.seat_token,
        ))))
        if room.game_state is not None:
            outbox.append(self._game_update_for(room, connection_id))
        return outbox
