"""
FastAPI relay for Tianxia.
One websocket endpoint carries the room protocol; a few HTTP endpoints expose setups,
catalogs and room summaries. All room state lives in the RoomRegistry handed to create_app.
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from tianxia import __version__
from tianxia.config import CORS_ORIGINS, CLEANUP_INTERVAL_SECONDS
from tianxia.engine.definitions import list_setups, load_catalog
from .connection_manager import ConnectionManager
from .models import (
    RoomCreate,
    RoomJoin,
    SeatSelect,
    SeatReclaim,
    RoomLeave,
    RoomStart,
    GameActionMessage,
    error_message,
    parse_client_message,
)
from .rooms import RoomError, RoomRegistry

logger = logging.getLogger(__name__)


class RoomJanitor:
    """Background task closing idle rooms every interval until stopped."""

    def __init__(self, registry: RoomRegistry, manager: ConnectionManager, interval_seconds: float):
        self.registry = registry
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._stop_event = asyncio.Event()
            self._task = asyncio.get_running_loop().create_task(self._run_loop(), name="tianxia-room-cleanup")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        await task
        self._task = None

    async def run_once(self) -> None:
        outbox = self.registry.cleanup()
        await self.manager.deliver(outbox)

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except TimeoutError:
                pass
            try:
                await self.run_once()
            except Exception:
                logger.exception("room cleanup failed")


def create_app(
    registry: RoomRegistry | None = None,
    cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
) -> FastAPI:
    """Build the relay app around a registry (a fresh one on the default setup if omitted)."""
    if registry is None:
        registry = RoomRegistry(load_catalog())
    manager = ConnectionManager()
    janitor = RoomJanitor(registry, manager, cleanup_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        janitor.start()
        try:
            yield
        finally:
            await janitor.stop()

    app = FastAPI(
        title="Tianxia Relay",
        description="Room relay and catalog API for Tianxia, a territory-conquest card game",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.connections = manager
    app.state.janitor = janitor

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log method and path of failing requests so 500s can be traced to the endpoint."""
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s raised", request.method, request.url.path)
            raise
        if response.status_code >= 500:
            logger.error("[%d] %s %s", response.status_code, request.method, request.url.path)
        return response

    @app.get("/")
    def root():
        return {
            "name": "tianxia",
            "version": __version__,
            "setup_id": registry.catalog.setup_id,
            "rooms": len(registry.rooms),
        }

    @app.get("/setups")
    def get_setups():
        return {"setups": list_setups()}

    @app.get("/setups/{setup_id}/catalog")
    def get_catalog(setup_id: str):
        if setup_id == registry.catalog.setup_id:
            return registry.catalog.to_dict()
        try:
            return load_catalog(setup_id=setup_id).to_dict()
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail=f"Setup {setup_id} not found")
        except ValueError as e:
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/rooms/{code}")
    def get_room(code: str):
        try:
            room = registry.get_room(code)
        except RoomError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return registry.room_info(room).model_dump(by_alias=True)

    async def dispatch(connection_id: str, message) -> None:
        if isinstance(message, RoomCreate):
            _room, outbox = registry.create_room(connection_id, message.max_players)
            await manager.deliver(outbox)
            return

        room = registry.get_room(message.room_code)
        async with room.lock:
            if isinstance(message, RoomJoin):
                outbox = registry.join_room(connection_id, room.code)
            elif isinstance(message, SeatSelect):
                outbox = registry.select_seat(connection_id, room.code, message.seat_index, message.name)
            elif isinstance(message, SeatReclaim):
                outbox = registry.reclaim_seat(
                    connection_id, room.code, message.seat_index, message.seat_token, message.name
                )
            elif isinstance(message, RoomLeave):
                outbox = registry.leave_room(connection_id, room.code)
            elif isinstance(message, RoomStart):
                outbox = registry.start_game(connection_id, room.code, message.options)
            elif isinstance(message, GameActionMessage):
                outbox = registry.apply_game_action(
                    connection_id,
                    room.code,
                    message.action,
                    message.acting_player_id,
                    message.action_data,
                )
            else:
                raise RoomError("Unsupported message")
            await manager.deliver(outbox)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Room protocol: JSON messages with a "type" field, answered with {type, payload}."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        manager.add_connection(connection_id, websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    await manager.send_to_connection(connection_id, error_message("Malformed message"))
                    continue
                try:
                    message = parse_client_message(data)
                    await dispatch(connection_id, message)
                except ValidationError as e:
                    logger.warning("malformed message from %s: %s", connection_id, e.errors()[:1])
                    await manager.send_to_connection(connection_id, error_message("Malformed message"))
                except RoomError as e:
                    logger.warning("rejected %s from %s: %s", data.get("type"), connection_id, e)
                    await manager.send_to_connection(connection_id, error_message(str(e)))
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("websocket %s failed", connection_id)
        finally:
            manager.disconnect(connection_id)
            await manager.deliver(registry.disconnect(connection_id))

    return app
