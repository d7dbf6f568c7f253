"""FastAPI WebSocket server for the Uno card game."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from config import config
from constants import ROOM_CODE_LENGTH
from game import Player
from handlers import HANDLERS, ConnectionContext
from logging_config import player_id_var, room_code_var, setup_logging
from room import RoomManager
from routers.health import router as health_router, set_health_dependencies
from routers.rooms import router as rooms_router, set_room_manager
from services.stats_service import close_stats_service, get_stats_service

# Initialize Sentry if configured
if config.SENTRY_DSN:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.starlette import StarletteIntegration

        sentry_sdk.init(
            dsn=config.SENTRY_DSN,
            environment=config.ENVIRONMENT,
            traces_sample_rate=0.1 if config.ENVIRONMENT == "production" else 1.0,
            integrations=[
                StarletteIntegration(transaction_style="endpoint"),
                FastApiIntegration(transaction_style="endpoint"),
            ],
        )
        logging.getLogger(__name__).info("Sentry error tracking initialized")
    except ImportError:
        logging.getLogger(__name__).warning("sentry-sdk not installed, error tracking disabled")

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Registries
# =============================================================================

room_manager = RoomManager(code_length=ROOM_CODE_LENGTH)

# Connection id -> player, one entry per open WebSocket
connections: dict[str, Player] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for service wiring."""
    get_stats_service()
    set_health_dependencies(room_manager=room_manager, connections=connections)
    set_room_manager(room_manager)

    logger.info(f"Uno server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    close_stats_service()
    logger.info("Shutdown complete")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for websocket in list(room.sockets.values()):
            try:
                await websocket.close(code=1001, reason="Server shutting down")
            except Exception as e:
                logger.debug(f"Close failed during shutdown: {e}")
    logger.info("All WebSocket connections closed")


app = FastAPI(
    title="Uno Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(rooms_router)


# =============================================================================
# WebSocket Endpoint
# =============================================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = uuid.uuid4().hex
    player = Player(id=connection_id)
    connections[connection_id] = player
    player_id_var.set(connection_id)
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player=player,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(
        room_manager=room_manager,
        handle_player_leave=handle_player_leave,
    )

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                logger.debug("Ignored malformed message")
                continue

            if not isinstance(data, dict):
                continue

            handler = HANDLERS.get(data.get("type"))
            if handler:
                await handler(data, ctx, **handler_deps)
                room_code_var.set(player.room_code or None)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    except Exception:
        logger.exception(f"Error handling WebSocket {connection_id}")
    finally:
        await handle_player_leave(player, replace=True)
        connections.pop(connection_id, None)


async def handle_player_leave(player: Player, replace: bool = True):
    """
    Remove a player from their room, if they are in one.

    A disconnect hands the seat to a bot; an explicit leave frees it.
    Empty rooms are dropped from the manager by the room itself.
    """
    if not player.in_room:
        return

    room = room_manager.get_room(player.room_code)
    if not room:
        return

    async with room.game_lock:
        await room.remove_player(player, replace=replace)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Uno server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
