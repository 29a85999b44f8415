"""
Single place for process-level configuration.
Every value can be overridden from the environment; rule constants live in tianxia.engine.
"""

import os


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# Setup id from data/setups/<id>/. This is the default catalog for new games.
DEFAULT_SETUP_ID = os.environ.get("TIANXIA_SETUP", "three_kingdoms")

# Session relay: seat reservation grace window and idle-room cleanup
SEAT_RESERVE_SECONDS = _int_env("SEAT_RESERVE_SECONDS", 5 * 60)
CLEANUP_INTERVAL_SECONDS = _int_env("CLEANUP_INTERVAL_SECONDS", 60)
EMPTY_ROOM_TTL_SECONDS = _int_env("EMPTY_ROOM_TTL_SECONDS", 5 * 60)
LOBBY_ROOM_TTL_SECONDS = _int_env("LOBBY_ROOM_TTL_SECONDS", 30 * 60)
ACTIVE_ROOM_TTL_SECONDS = _int_env("ACTIVE_ROOM_TTL_SECONDS", 60 * 60)
ROOM_CODE_LENGTH = _int_env("ROOM_CODE_LENGTH", 6)

SEAT_TOKEN_SECRET = os.environ.get("SEAT_TOKEN_SECRET", "change-me-in-production-use-env")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    ).split(",")
    if origin.strip()
]

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = _int_env("PORT", 8000)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
