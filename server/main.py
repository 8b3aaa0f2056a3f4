"""FastAPI WebSocket server for the Crazy Eights card game."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from handlers import HANDLERS, ConnectionContext, leave_session
from logging_config import connection_id_var, game_id_var, player_id_var, setup_logging
from session import SessionManager

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


session_manager = SessionManager(max_sessions=config.MAX_SESSIONS)


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for session in list(session_manager.sessions.values()):
        for session_player in list(session.players.values()):
            if session_player.websocket:
                try:
                    await session_player.websocket.close(code=1001, reason="Server shutting down")
                except Exception as e:
                    logger.debug(f"Close of {session_player.connection_id} failed: {e}")
    logger.info("All WebSocket connections closed")


async def _shutdown_services():
    """Gracefully shut down all sessions."""
    await _close_all_websockets()

    for code in list(session_manager.sessions):
        session_manager.remove_session(code)
    logger.info("All sessions cleaned up")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    from routers.health import set_health_dependencies
    set_health_dependencies(session_manager=session_manager)

    logger.info(f"Crazy Eights server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Crazy Eights",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.health import router as health_router
app.include_router(health_router)


# =============================================================================
# WebSocket
# =============================================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    connection_id_var.set(connection_id)
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
    )
    player_id_var.set(ctx.player_id)

    # Shared dependencies passed to every handler
    handler_deps = dict(
        session_manager=session_manager,
        game_defaults=config.game_defaults,
    )

    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue
            handler = HANDLERS.get(data.get("type"))
            if handler:
                await handler(data, ctx, **handler_deps)
                if ctx.current_session:
                    game_id_var.set(ctx.current_session.game.game_id)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
        await leave_session(ctx, session_manager)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Crazy Eights server on {config.HOST}:{config.PORT}")
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
