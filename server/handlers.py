"""WebSocket message handlers for the Crazy Eights server.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict in main.py.
"""

from dataclasses import dataclass
from typing import Literal, Optional, Type, TypeVar

from fastapi import WebSocket
from pydantic import BaseModel, Field, ValidationError

from constants import HUMAN_PLAYER_ID, RANK_COUNT
from game import Card, Suit
from logging_config import get_logger
from session import GameSession, SessionLimitError

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: int = HUMAN_PLAYER_ID
    current_session: Optional[GameSession] = None


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

class CreateGamePayload(BaseModel):
    player_name: str = Field(default="Player", min_length=1, max_length=32)


class CardPayload(BaseModel):
    rank: int = Field(ge=0, lt=RANK_COUNT)
    suit: Literal["hearts", "spades", "diamonds", "clubs"]

    def to_card(self) -> Card:
        return Card(rank=self.rank, suit=Suit(self.suit))


class PlayCardPayload(BaseModel):
    card: CardPayload


PayloadT = TypeVar("PayloadT", bound=BaseModel)


async def parse_payload(model: Type[PayloadT], data: dict, ctx: ConnectionContext) -> Optional[PayloadT]:
    """Validate a message, replying with an error message if it is malformed."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Rejected {data.get('type')} from {ctx.connection_id}: {e.error_count()} errors")
        await ctx.websocket.send_json({
            "type": "error",
            "message": f"Invalid {data.get('type', 'message')} payload",
            "details": e.errors(include_url=False, include_context=False, include_input=False),
        })
        return None


# ---------------------------------------------------------------------------
# Session handlers
# ---------------------------------------------------------------------------

async def handle_create_game(data: dict, ctx: ConnectionContext, *, session_manager, game_defaults=None, **kw) -> None:
    payload = await parse_payload(CreateGamePayload, data, ctx)
    if payload is None:
        return

    if ctx.current_session:
        await leave_session(ctx, session_manager)

    try:
        session = session_manager.create_session(payload.player_name, defaults=game_defaults)
    except SessionLimitError as e:
        await ctx.websocket.send_json({"type": "error", "message": str(e)})
        return

    session.add_connection(ctx.connection_id, ctx.websocket, ctx.player_id)
    ctx.current_session = session
    logger.with_context(session_code=session.code, player_id=ctx.player_id).info(
        f"{payload.player_name} joined as player {ctx.player_id}"
    )

    await ctx.websocket.send_json({
        "type": "game_created",
        "session_code": session.code,
        "game_id": session.game.game_id,
        "player_id": ctx.player_id,
    })
    await session.send_to(ctx.connection_id, session.state_for(ctx.player_id))


async def handle_start_game(data: dict, ctx: ConnectionContext, **kw) -> None:
    session = ctx.current_session
    if not session:
        return

    async with session.game_lock:
        session.game.start_game()
        await session.flush()
        await session.broadcast_state()


async def handle_reset_game(data: dict, ctx: ConnectionContext, **kw) -> None:
    session = ctx.current_session
    if not session:
        return

    async with session.game_lock:
        session.game.reset_game()
        await session.flush()
        await session.broadcast_state()


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_play_card(data: dict, ctx: ConnectionContext, **kw) -> None:
    session = ctx.current_session
    if not session:
        return

    payload = await parse_payload(PlayCardPayload, data, ctx)
    if payload is None:
        return

    async with session.game_lock:
        card = payload.card.to_card()
        if session.game.play_card(card, player_id=ctx.player_id):
            await session.flush()
        else:
            logger.with_context(session_code=session.code).debug(
                f"Rejected play of {card} from {ctx.connection_id}"
            )


async def handle_draw_card(data: dict, ctx: ConnectionContext, **kw) -> None:
    session = ctx.current_session
    if not session:
        return

    async with session.game_lock:
        game = session.game
        if not game.dealt or game.current_player().id != ctx.player_id:
            return
        if game.draw_card_for_current_player() is not None:
            await session.flush()


async def handle_get_state(data: dict, ctx: ConnectionContext, **kw) -> None:
    session = ctx.current_session
    if not session:
        await ctx.websocket.send_json({"type": "error", "message": "Not in a game"})
        return
    await session.send_to(ctx.connection_id, session.state_for(ctx.player_id))


# ---------------------------------------------------------------------------
# Leave handlers
# ---------------------------------------------------------------------------

async def leave_session(ctx: ConnectionContext, session_manager) -> None:
    """Detach the connection from its session, closing the session if empty."""
    session = ctx.current_session
    if not session:
        return
    session.remove_connection(ctx.connection_id)
    if session.is_empty():
        session_manager.remove_session(session.code)
    ctx.current_session = None


async def handle_leave_game(data: dict, ctx: ConnectionContext, *, session_manager, **kw) -> None:
    await leave_session(ctx, session_manager)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_game": handle_create_game,
    "start_game": handle_start_game,
    "reset_game": handle_reset_game,
    "play_card": handle_play_card,
    "draw_card": handle_draw_card,
    "get_state": handle_get_state,
    "leave_game": handle_leave_game,
}
