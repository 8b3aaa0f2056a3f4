"""Player strategies for Crazy Eights: the human seat and the CPU opponent."""

import logging
import os
from typing import Optional

from constants import CPU_DRAW_DELAY, CPU_THINK_DELAY
from game import Game, GamePhase, Player
from models.events import EventType, GameEvent


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

# Create a dedicated logger for AI decisions
ai_logger = logging.getLogger("crazy_eights.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    # Add console handler if not already present
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# CPU Turn Timing Configuration (seconds)
# =============================================================================

CPU_TIMING = {
    # Pause before the CPU commits to a play or a draw
    "think": CPU_THINK_DELAY,
    # Pause between asking for a draw and taking the card (draw animation)
    "draw": CPU_DRAW_DELAY,
}


class PlayerStrategy:
    """
    Decision maker for one seat.

    A strategy subscribes to its game's events and reacts when the turn
    passes to its own player. Subclasses implement on_turn().
    """

    def __init__(self, player_id: int):
        self.player_id = player_id
        self.game: Optional[Game] = None

    def attach(self, game: Game) -> None:
        """Start listening to a game's events."""
        self.detach()
        self.game = game
        game.subscribe(self.on_event)

    def detach(self) -> None:
        if self.game is not None:
            self.game.unsubscribe(self.on_event)
            self.game = None

    @property
    def player(self) -> Player:
        return self.game.get_player(self.player_id)

    def on_event(self, event: GameEvent) -> None:
        if event.event_type == EventType.TURN_CHANGED and event.player_id == self.player_id:
            self.on_turn()

    def on_turn(self) -> None:
        raise NotImplementedError


class HumanStrategy(PlayerStrategy):
    """
    The human seat.

    Plays arrive from the client through Game.play_card(). The strategy only
    steps in when the hand has nothing playable, putting the player into the
    forced-draw state so the client can offer the deck.
    """

    def on_turn(self) -> None:
        game = self.game
        if not self.player.has_legal_move(game.top_card):
            game.request_draw(self.player_id)


class CPUStrategy(PlayerStrategy):
    """
    The CPU opponent.

    Thinks for a moment, then plays the first legal card in its hand. With
    nothing playable it draws one card, or passes if the deck has run out.
    """

    def __init__(
        self,
        player_id: int,
        think_delay: float = CPU_TIMING["think"],
        draw_delay: float = CPU_TIMING["draw"],
    ):
        super().__init__(player_id)
        self.think_delay = think_delay
        self.draw_delay = draw_delay

    def on_turn(self) -> None:
        ai_log(f"Player {self.player_id} thinking for {self.think_delay:.2f}s")
        self.game.schedule(self.think_delay, self.take_turn)

    def take_turn(self) -> None:
        """Make the turn's decision. Called by the think continuation."""
        game = self.game
        if game is None or game.phase != GamePhase.AWAITING_MOVE:
            return
        if game.current_player().id != self.player_id or game.move_taken_this_turn:
            return

        card = self.player.first_legal_move(game.top_card)
        if card is not None:
            ai_log(f"Player {self.player_id} plays {card} on {game.top_card}")
            game.play_card(card, player_id=self.player_id)
            return

        if game.deck_exhausted:
            ai_log(f"Player {self.player_id} has no move and the deck is empty, passing")
            game.request_draw(self.player_id)
            return

        ai_log(f"Player {self.player_id} has no move on {game.top_card}, drawing")
        if game.request_draw(self.player_id) and game.must_draw:
            game.schedule(self.draw_delay, game.draw_card_for_current_player)


def create_strategy(player: Player, think_delay: float = CPU_THINK_DELAY,
                    draw_delay: float = CPU_DRAW_DELAY) -> PlayerStrategy:
    """Build the strategy matching a player's seat type."""
    if player.is_cpu:
        return CPUStrategy(player.id, think_delay=think_delay, draw_delay=draw_delay)
    return HumanStrategy(player.id)
