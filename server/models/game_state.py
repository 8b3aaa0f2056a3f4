"""
Game state rebuilder for event replay.

This module reconstructs a game's table from its event stream. The
RebuiltGameState class mirrors the Game class structure but is built
entirely from events rather than direct mutation, which makes it useful
for checking that the events a client receives are enough to follow the game.

Replay needs the unfiltered events (GameEvent.to_dict), since the per-viewer
form hides the opponent's card faces.

Usage:
    events = []
    game.subscribe(events.append)
    ...
    state = rebuild_state(events)
    print(state.phase, state.current_player_id)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from models.events import GameEvent, EventType

DECK_SIZE = 52
WINNER_NONE = -1


class GamePhase(str, Enum):
    """Game phases matching game.py GamePhase."""
    NOT_STARTED = "not_started"
    DEALING = "dealing"
    AWAITING_MOVE = "awaiting_move"
    ENDED = "ended"


@dataclass(frozen=True)
class CardState:
    """
    A card as it appears in the event stream.

    Attributes:
        rank: Card rank, 0 (Ace) to 12 (King).
        suit: Suit name (hearts, spades, diamonds, clubs).
    """
    rank: int
    suit: str

    def to_dict(self) -> dict:
        return {"rank": self.rank, "suit": self.suit}

    @classmethod
    def from_dict(cls, d: dict) -> "CardState":
        return cls(rank=int(d["rank"]), suit=d["suit"])


@dataclass
class PlayerState:
    """
    A player's state during replay.

    Attributes:
        id: Seat number.
        hand: Cards held, in the order they were received.
    """
    id: int
    hand: list[CardState] = field(default_factory=list)


@dataclass
class RebuiltGameState:
    """
    Game state rebuilt from events.

    Attributes:
        game_id: UUID of the game.
        phase: Current game phase.
        players: Map of player_id -> PlayerState.
        player_order: Player IDs in seat order.
        current_player_id: Whose turn it is, once the top card is revealed.
        top_card: The face-up card.
        discard_count: Cards covered by later plays.
        deck_remaining: Cards left in the draw pile.
        deck_exhausted: Whether the last card has been drawn.
        must_draw: Whether the current player was put into forced draw.
        winner_id: -1 while in progress, -2 for a draw, else the winner.
        deck_seed: Seed the deck was shuffled with.
        turns: Number of turn_changed events applied this game.
        sequence_num: Last applied event sequence.
    """
    game_id: str
    phase: GamePhase = GamePhase.NOT_STARTED
    players: dict[int, PlayerState] = field(default_factory=dict)
    player_order: list[int] = field(default_factory=list)
    current_player_id: Optional[int] = None
    top_card: Optional[CardState] = None
    discard_count: int = 0
    deck_remaining: int = DECK_SIZE
    deck_exhausted: bool = False
    must_draw: bool = False
    winner_id: int = WINNER_NONE
    deck_seed: Optional[int] = None
    turns: int = 0
    sequence_num: int = 0

    def apply(self, event: GameEvent) -> "RebuiltGameState":
        """
        Apply an event to produce new state.

        Events must be applied in sequence order. The first event applied may
        carry any sequence number, so a replay can begin at a game_started
        event in the middle of a session.

        Returns:
            self for chaining.

        Raises:
            ValueError: If event is out of sequence or unknown type.
        """
        if self.sequence_num > 0 and event.sequence_num != self.sequence_num + 1:
            raise ValueError(
                f"Expected sequence {self.sequence_num + 1}, got {event.sequence_num}"
            )

        handler = getattr(self, f"_apply_{event.event_type.value}", None)
        if handler is None:
            raise ValueError(f"Unknown event type: {event.event_type}")

        handler(event)
        self.sequence_num = event.sequence_num
        return self

    # -------------------------------------------------------------------------
    # Lifecycle Event Handlers
    # -------------------------------------------------------------------------

    def _apply_game_started(self, event: GameEvent) -> None:
        self._clear_table()
        self.phase = GamePhase.DEALING
        self.player_order = list(event.data["player_order"])
        self.players = {pid: PlayerState(id=pid) for pid in self.player_order}
        self.deck_seed = event.data.get("deck_seed")

    def _apply_game_reset(self, event: GameEvent) -> None:
        self._clear_table()
        for player in self.players.values():
            player.hand = []
        self.phase = GamePhase.NOT_STARTED

    def _apply_game_ended(self, event: GameEvent) -> None:
        self.phase = GamePhase.ENDED
        self.winner_id = event.data["winner_id"]

    def _clear_table(self) -> None:
        self.current_player_id = None
        self.top_card = None
        self.discard_count = 0
        self.deck_remaining = DECK_SIZE
        self.deck_exhausted = False
        self.must_draw = False
        self.winner_id = WINNER_NONE
        self.turns = 0

    # -------------------------------------------------------------------------
    # Dealing Event Handlers
    # -------------------------------------------------------------------------

    def _apply_card_dealt(self, event: GameEvent) -> None:
        self._take_from_deck(event)

    def _apply_top_card_revealed(self, event: GameEvent) -> None:
        self.top_card = CardState.from_dict(event.data["card"])
        self.deck_remaining -= 1
        self.phase = GamePhase.AWAITING_MOVE

    # -------------------------------------------------------------------------
    # Gameplay Event Handlers
    # -------------------------------------------------------------------------

    def _apply_turn_changed(self, event: GameEvent) -> None:
        self.current_player_id = event.player_id
        self.must_draw = False
        self.turns += 1

    def _apply_draw_requested(self, event: GameEvent) -> None:
        self.must_draw = True

    def _apply_card_played(self, event: GameEvent) -> None:
        card = CardState.from_dict(event.data["card"])
        player = self.players.get(event.player_id)
        if player and card in player.hand:
            player.hand.remove(card)
        if self.top_card is not None:
            self.discard_count += 1
        self.top_card = card

    def _apply_card_drawn(self, event: GameEvent) -> None:
        self._take_from_deck(event)
        self.must_draw = False

    def _apply_turn_passed(self, event: GameEvent) -> None:
        self.must_draw = False

    def _apply_deck_exhausted(self, event: GameEvent) -> None:
        self.deck_exhausted = True

    def _take_from_deck(self, event: GameEvent) -> None:
        player = self.players.get(event.player_id)
        if player is None:
            return
        card_data = event.data.get("card")
        if card_data is None:
            raise ValueError(
                f"Event {event.sequence_num} has no card face; replay needs unfiltered events"
            )
        player.hand.append(CardState.from_dict(card_data))
        self.deck_remaining -= 1

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def current_player(self) -> Optional[PlayerState]:
        """Get the current player's state."""
        if self.current_player_id is None:
            return None
        return self.players.get(self.current_player_id)

    def get_player(self, player_id: int) -> Optional[PlayerState]:
        """Get a player's state by ID."""
        return self.players.get(player_id)

    def hand_sizes(self) -> dict[int, int]:
        return {pid: len(p.hand) for pid, p in self.players.items()}


def rebuild_state(events: list[GameEvent]) -> RebuiltGameState:
    """
    Rebuild game state from a list of events.

    Args:
        events: List of events in sequence order.

    Returns:
        Reconstructed game state.

    Raises:
        ValueError: If events list is empty or has invalid sequence.
    """
    if not events:
        raise ValueError("Cannot rebuild state from empty event list")

    state = RebuiltGameState(game_id=events[0].game_id)
    for event in events:
        state.apply(event)

    return state
