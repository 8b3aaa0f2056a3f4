"""
Session management for Crazy Eights games.

This module ties one game engine to the WebSocket connections watching it.

A GameSession contains:
    - A unique 4-letter code
    - A Game with one human seat and one CPU seat
    - The strategies driving each seat
    - The scheduler running the game's timed steps
    - The connected sockets that receive the game's events
"""

import asyncio
import logging
import random
import string
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import WebSocket

from ai import PlayerStrategy, create_strategy
from config import GameDefaults
from constants import CPU_PLAYER_ID, HUMAN_PLAYER_ID
from game import Game, GameOptions, Player
from models.events import GameEvent
from scheduler import AsyncioScheduler

logger = logging.getLogger(__name__)


class SessionLimitError(Exception):
    """Raised when the server already hosts its maximum number of sessions."""


@dataclass
class SessionPlayer:
    """
    A connection watching a session.

    This is separate from game.Player - SessionPlayer tracks the socket and
    which seat the connection views the table from, while game.Player tracks
    the hand.

    Attributes:
        connection_id: Unique id of the WebSocket connection.
        player_id: Seat this connection plays (the human seat).
        websocket: The connection.
    """

    connection_id: str
    player_id: int
    websocket: Optional[WebSocket] = None


@dataclass
class GameSession:
    """
    One human-versus-CPU game and the sockets attached to it.

    Attributes:
        code: 4-letter session code.
        game: The engine.
        scheduler: Scheduler the engine and the CPU use for delays.
        strategies: One strategy per seat, attached to the game.
        players: Connections keyed by connection_id.
        game_lock: asyncio.Lock for serializing game mutations.
    """

    code: str
    game: Game
    scheduler: Any
    strategies: list[PlayerStrategy] = field(default_factory=list)
    players: dict[str, SessionPlayer] = field(default_factory=dict)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _outbox: deque = field(default_factory=deque, repr=False)
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    _flush_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        code: str,
        player_name: str,
        scheduler: Any = None,
        defaults: Optional[GameDefaults] = None,
    ) -> "GameSession":
        """
        Build a session with a human seat and a CPU seat.

        Args:
            code: Session code.
            player_name: Display name of the human player.
            scheduler: Scheduler for the engine (AsyncioScheduler if None).
            defaults: Game settings (GameDefaults() if None).
        """
        defaults = defaults or GameDefaults()
        scheduler = scheduler or AsyncioScheduler()
        players = [
            Player(id=HUMAN_PLAYER_ID, name=player_name),
            Player(id=CPU_PLAYER_ID, name="CPU", is_cpu=True),
        ]
        game = Game(players, scheduler, options=GameOptions.from_defaults(defaults))
        session = cls(code=code, game=game, scheduler=scheduler)

        for player in players:
            strategy = create_strategy(
                player,
                think_delay=defaults.cpu_think_delay,
                draw_delay=defaults.cpu_draw_delay,
            )
            strategy.attach(game)
            session.strategies.append(strategy)

        game.subscribe(session._on_event)
        return session

    def add_connection(self, connection_id: str, websocket: WebSocket,
                       player_id: int = HUMAN_PLAYER_ID) -> SessionPlayer:
        """Attach a socket to this session."""
        session_player = SessionPlayer(
            connection_id=connection_id,
            player_id=player_id,
            websocket=websocket,
        )
        self.players[connection_id] = session_player
        return session_player

    def remove_connection(self, connection_id: str) -> Optional[SessionPlayer]:
        return self.players.pop(connection_id, None)

    def is_empty(self) -> bool:
        """Check if no sockets are attached."""
        return len(self.players) == 0

    def close(self) -> None:
        """Stop the game: cancel its pending steps and detach every listener."""
        self.game.reset_game()
        for strategy in self.strategies:
            strategy.detach()
        self.game.unsubscribe(self._on_event)
        self._outbox.clear()

    # -------------------------------------------------------------------------
    # Event Delivery
    # -------------------------------------------------------------------------

    def _on_event(self, event: GameEvent) -> None:
        """
        Queue an engine event for the attached sockets.

        The engine calls listeners synchronously; sending is async, so events
        are queued and a flush task is started if none is running.
        """
        self._outbox.append(event)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = loop.create_task(self.flush())

    async def flush(self) -> None:
        """Send every queued event, in order, to every attached socket."""
        async with self._send_lock:
            while self._outbox:
                event = self._outbox.popleft()
                for session_player in list(self.players.values()):
                    await self._send(session_player, {
                        "type": "event",
                        "event": event.to_client_dict(session_player.player_id),
                    })

    def state_for(self, player_id: int) -> dict:
        """Get the game_state message for one seat."""
        return {
            "type": "game_state",
            "session_code": self.code,
            "game_state": self.game.get_state(player_id),
        }

    async def broadcast_state(self) -> None:
        """Send each socket the table as its own seat sees it."""
        for session_player in list(self.players.values()):
            await self._send(session_player, self.state_for(session_player.player_id))

    async def send_to(self, connection_id: str, message: dict) -> None:
        """
        Send a message to a specific connection.

        Args:
            connection_id: ID of the recipient connection.
            message: JSON-serializable message dict.
        """
        session_player = self.players.get(connection_id)
        if session_player:
            await self._send(session_player, message)

    async def _send(self, session_player: SessionPlayer, message: dict) -> None:
        if session_player.websocket is None:
            return
        try:
            await session_player.websocket.send_json(message)
        except Exception as e:
            logger.debug(
                f"Send to {session_player.connection_id} in session {self.code} failed: {e}"
            )


class SessionManager:
    """
    Manages all active game sessions.

    Provides session creation with unique codes, lookup, and cleanup.
    A single SessionManager instance is used by the server.
    """

    def __init__(self, max_sessions: int = 100, scheduler_factory: Optional[Callable[[], Any]] = None) -> None:
        """
        Args:
            max_sessions: Most sessions hosted at once.
            scheduler_factory: Builds the scheduler for each new session.
                               Defaults to AsyncioScheduler.
        """
        self.max_sessions = max_sessions
        self.scheduler_factory = scheduler_factory or AsyncioScheduler
        self.sessions: dict[str, GameSession] = {}

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique 4-letter session code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.ascii_uppercase, k=4))
            if code not in self.sessions:
                return code
        raise RuntimeError("Could not generate unique session code")

    def create_session(
        self,
        player_name: str,
        scheduler: Any = None,
        defaults: Optional[GameDefaults] = None,
    ) -> GameSession:
        """
        Create a new session with a unique code.

        Raises:
            SessionLimitError: If max_sessions are already active.
        """
        if len(self.sessions) >= self.max_sessions:
            raise SessionLimitError(f"Server is full ({self.max_sessions} sessions)")
        code = self._generate_code()
        session = GameSession.create(
            code,
            player_name,
            scheduler=scheduler or self.scheduler_factory(),
            defaults=defaults,
        )
        self.sessions[code] = session
        logger.info(
            f"Session {code} created for {player_name}",
            extra={"session_code": code, "game_id": session.game.game_id},
        )
        return session

    def get_session(self, code: str) -> Optional[GameSession]:
        """Get a session by its code (case-insensitive)."""
        return self.sessions.get(code.upper())

    def remove_session(self, code: str) -> None:
        """Close and delete a session."""
        code = code.upper()
        session = self.sessions.pop(code, None)
        if session is not None:
            session.close()
            logger.info(f"Session {code} removed", extra={"session_code": code})

    def find_connection_session(self, connection_id: str) -> Optional[GameSession]:
        """Find the session a connection is attached to."""
        for session in self.sessions.values():
            if connection_id in session.players:
                return session
        return None

    def __len__(self) -> int:
        return len(self.sessions)
