"""
Relay server entry point.
Builds the room registry on the configured setup and serves the FastAPI app with uvicorn.
"""

import logging

import uvicorn

from tianxia.api.main import create_app
from tianxia.api.rooms import RoomRegistry
from tianxia.config import DEFAULT_SETUP_ID, HOST, PORT, LOG_LEVEL
from tianxia.engine.definitions import load_catalog

logger = logging.getLogger("tianxia.server")


def build_app():
    catalog = load_catalog(setup_id=DEFAULT_SETUP_ID)
    registry = RoomRegistry(catalog)
    logger.info("serving setup %s (%d territories)", catalog.setup_id, len(catalog.territories))
    return create_app(registry)


if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(build_app(), host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
