"""
Game logic for Crazy Eights.

This module implements the rules core of a two-player Crazy Eights game:
card/deck management, move legality, player hands, turn sequencing and
win/draw detection. Nothing here knows about rendering, sound or sockets;
the engine reports what happened through GameEvents and defers its timed
steps to an injected scheduler (see scheduler.py).

Crazy Eights Rules Summary:
    - Each player is dealt 7 cards; one more card is turned up as the top card
    - On your turn, play a card matching the top card's rank or suit
    - Eights are wild and can always be played
    - With no legal play you must draw one card, which ends your turn
    - First player to empty their hand wins
    - If the deck runs out and nobody can play, the game is a draw

Lifecycle:
    NOT_STARTED -> DEALING -> AWAITING_MOVE (repeats each turn) -> ENDED
    reset_game() returns to NOT_STARTED from any phase.
"""

import logging
import random
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from constants import (
    DEAL_STAGGER,
    DECK_SIZE,
    END_TURN_DELAY,
    HAND_SIZE,
    OWNER_DECK,
    OWNER_IN_PLAY,
    RANK_COUNT,
    RANK_NAMES,
    WILD_RANK,
    WINNER_DRAW,
    WINNER_NONE,
)
from models.events import EventType, GameEvent
from scheduler import TimerHandle

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================
# Illegal moves from players are not errors (they are silently ignored).
# These exceptions mean an engine invariant has been broken.


class GameError(Exception):
    """Base class for broken engine invariants."""


class EmptyDeckError(GameError):
    """Raised when drawing from a deck with no cards left."""


class CardNotInHandError(GameError):
    """Raised when removing a card the player does not hold."""


class CardConservationError(GameError):
    """Raised when a card identity is duplicated or lost across the table."""


class InvalidTransitionError(GameError):
    """Raised when the engine attempts an undefined phase transition."""


# =============================================================================
# Cards
# =============================================================================


class Suit(Enum):
    """Card suits, in deck identity order."""

    HEARTS = "hearts"
    SPADES = "spades"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"

    @property
    def index(self) -> int:
        return SUIT_ORDER.index(self)

    @property
    def symbol(self) -> str:
        return SUIT_SYMBOLS[self]


SUIT_ORDER: list[Suit] = list(Suit)

SUIT_SYMBOLS: dict[Suit, str] = {
    Suit.HEARTS: "♥",
    Suit.SPADES: "♠",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
}


@dataclass(unsafe_hash=True)
class Card:
    """
    A playing card.

    Two cards are equal when rank and suit match; owner is mutable bookkeeping
    and does not take part in equality.

    Attributes:
        rank: 0 (Ace) through 12 (King). Rank 7 is the wild eight.
        suit: The card's suit.
        owner: Player id holding the card, OWNER_DECK, or OWNER_IN_PLAY.
    """

    rank: int
    suit: Suit
    owner: int = field(default=OWNER_DECK, compare=False)

    @property
    def identity(self) -> int:
        """Card number 0-51 (rank + suit_index * 13)."""
        return self.rank + self.suit.index * RANK_COUNT

    @classmethod
    def from_identity(cls, identity: int) -> "Card":
        if not 0 <= identity < DECK_SIZE:
            raise ValueError(f"Card identity out of range: {identity}")
        return cls(rank=identity % RANK_COUNT, suit=SUIT_ORDER[identity // RANK_COUNT])

    @property
    def is_wild(self) -> bool:
        return self.rank == WILD_RANK

    @property
    def label(self) -> str:
        """Short display name, e.g. '8♥'."""
        return f"{RANK_NAMES[self.rank]}{self.suit.symbol}"

    def to_dict(self) -> dict:
        return {"rank": self.rank, "suit": self.suit.value}

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(rank=int(d["rank"]), suit=Suit(d["suit"]))

    def __str__(self) -> str:
        return self.label


def is_legal_move(top_card: Card, candidate: Card) -> bool:
    """
    Check whether candidate may be played on top_card.

    A play is legal if it matches the top card's rank or suit, or if the
    candidate is wild. Only the candidate's rank is checked for wildness:
    an eight on top still has to be matched by suit or rank.
    """
    return (
        candidate.rank == top_card.rank
        or candidate.suit == top_card.suit
        or candidate.rank == WILD_RANK
    )


class Deck:
    """
    The draw pile.

    Holds card identities in draw order; draws come off the end of the list.
    The deck owns its own random.Random seeded from `seed`, so shuffles are
    reproducible and unaffected by any other use of the random module.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        on_exhausted: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Args:
            seed: Seed for the shuffle. If None, a random seed is generated
                  and stored so the game can be replayed.
            on_exhausted: Called as soon as a draw leaves the deck empty.
        """
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self.rng = random.Random(self.seed)
        self.on_exhausted = on_exhausted
        self.cards: list[int] = []

    def reseed(self, seed: int) -> None:
        """Restart the shuffle stream from a new seed."""
        self.seed = seed
        self.rng = random.Random(seed)

    def reset(self) -> None:
        """Refill with all 52 identities and shuffle."""
        self.cards = list(range(DECK_SIZE))
        self.shuffle()

    def shuffle(self) -> None:
        """Fisher-Yates: swap each position with a uniform pick from the rest."""
        n = len(self.cards)
        for i in range(n):
            r = i + self.rng.randrange(n - i)
            self.cards[i], self.cards[r] = self.cards[r], self.cards[i]

    def draw(self) -> Card:
        """
        Draw the next card.

        Raises:
            EmptyDeckError: If the deck has no cards left.
        """
        if not self.cards:
            raise EmptyDeckError("Cannot draw from an empty deck")
        card = Card.from_identity(self.cards.pop())
        if not self.cards and self.on_exhausted is not None:
            self.on_exhausted()
        return card

    def cards_remaining(self) -> int:
        return len(self.cards)

    def is_empty(self) -> bool:
        return not self.cards

    @property
    def order(self) -> list[int]:
        """Remaining identities, bottom first (the last one is drawn next)."""
        return list(self.cards)


def game_seed(base_seed: int, game_number: int) -> int:
    """
    Seed for the nth game (0-based) of a table created with base_seed.

    The first game uses base_seed itself. Each later game gets its own seed,
    so Deck(seed=...).reset() replays any game's shuffle on its own.
    """
    if game_number == 0:
        return base_seed
    return random.Random(base_seed * 1_000_003 + game_number).randrange(2**31)


# =============================================================================
# Players
# =============================================================================


@dataclass
class Player:
    """
    A player in a Crazy Eights game.

    Player objects live for the whole session and are reused across games;
    only the hand is cleared between games.

    Attributes:
        id: Seat number (0 = human, 1 = CPU in the standard table).
        name: Display name.
        is_cpu: Whether a CPUStrategy drives this player.
        hand: Cards held, in the order they were received.
    """

    id: int
    name: str
    is_cpu: bool = False
    hand: list[Card] = field(default_factory=list)

    def receive(self, card: Card) -> None:
        card.owner = self.id
        self.hand.append(card)

    def remove(self, card: Card) -> Card:
        """
        Remove a card from the hand.

        Returns:
            The card object that was held.

        Raises:
            CardNotInHandError: If the card is not in this hand.
        """
        for i, held in enumerate(self.hand):
            if held == card:
                return self.hand.pop(i)
        raise CardNotInHandError(f"Player {self.id} does not hold {card}")

    def holds(self, card: Card) -> bool:
        return card in self.hand

    def first_legal_move(self, top_card: Optional[Card]) -> Optional[Card]:
        """
        Return the first card in hand order that can be played, or None.

        Hand order is the order cards were received, so the choice is
        deterministic for a given deal.
        """
        if top_card is None:
            return None
        for card in self.hand:
            if is_legal_move(top_card, card):
                return card
        return None

    def has_legal_move(self, top_card: Optional[Card]) -> bool:
        return self.first_legal_move(top_card) is not None

    def reset_hand(self) -> list[Card]:
        """Empty the hand, returning the cards to the deck owner."""
        cards = self.hand
        self.hand = []
        for card in cards:
            card.owner = OWNER_DECK
        return cards

    def to_dict(self, reveal: bool = False) -> dict:
        """
        Convert player to dictionary for client display.

        Args:
            reveal: Include the hand's card faces (only for the owner).
        """
        d = {
            "id": self.id,
            "name": self.name,
            "is_cpu": self.is_cpu,
            "card_count": len(self.hand),
        }
        if reveal:
            d["hand"] = [c.to_dict() for c in self.hand]
        return d


# =============================================================================
# Phases
# =============================================================================


class GamePhase(Enum):
    """
    Phases of a Crazy Eights game.

    Flow: NOT_STARTED -> DEALING -> AWAITING_MOVE -> ENDED
    """

    NOT_STARTED = "not_started"      # No cards out; waiting for start_game()
    DEALING = "dealing"              # Hands dealt, top card not yet revealed
    AWAITING_MOVE = "awaiting_move"  # Current player may play or draw
    ENDED = "ended"                  # Somebody won or the game is drawn


class PhaseTrigger(Enum):
    """Things that move the game from one phase to another."""

    START = "start"
    REVEAL = "reveal"
    ADVANCE = "advance"
    WIN = "win"
    DRAW = "draw"
    RESET = "reset"


PHASE_TRANSITIONS: dict[tuple[GamePhase, PhaseTrigger], GamePhase] = {
    (GamePhase.NOT_STARTED, PhaseTrigger.START): GamePhase.DEALING,
    (GamePhase.DEALING, PhaseTrigger.REVEAL): GamePhase.AWAITING_MOVE,
    (GamePhase.AWAITING_MOVE, PhaseTrigger.ADVANCE): GamePhase.AWAITING_MOVE,
    (GamePhase.AWAITING_MOVE, PhaseTrigger.WIN): GamePhase.ENDED,
    (GamePhase.AWAITING_MOVE, PhaseTrigger.DRAW): GamePhase.ENDED,
}


def next_phase(phase: GamePhase, trigger: PhaseTrigger) -> GamePhase:
    """
    Pure phase transition function.

    RESET is accepted from every phase.

    Raises:
        InvalidTransitionError: If the trigger is not valid in this phase.
    """
    if trigger == PhaseTrigger.RESET:
        return GamePhase.NOT_STARTED
    try:
        return PHASE_TRANSITIONS[(phase, trigger)]
    except KeyError:
        raise InvalidTransitionError(
            f"No transition from {phase.value} on {trigger.value}"
        ) from None


@dataclass
class GameOptions:
    """
    Per-game settings.

    Delays are in seconds on whatever clock the scheduler runs.
    """

    hand_size: int = HAND_SIZE
    deal_stagger: float = DEAL_STAGGER
    """Gap between consecutive dealt cards, reported in card_dealt events."""

    end_turn_delay: float = END_TURN_DELAY
    """Pause between a completed action and the next turn."""

    deck_seed: Optional[int] = None
    """Seed for the deck and the starting-player pick. None = random."""

    @classmethod
    def from_defaults(cls, defaults: Any) -> "GameOptions":
        """Build options from config.GameDefaults."""
        return cls(
            hand_size=defaults.hand_size,
            deal_stagger=defaults.deal_stagger,
            end_turn_delay=defaults.end_turn_delay,
            deck_seed=defaults.deck_seed,
        )


# =============================================================================
# Engine
# =============================================================================


class Game:
    """
    Game state and turn controller for Crazy Eights.

    The engine owns the deck, the players' hands, the top card and the turn
    index. Presentation code drives it through start_game(), reset_game(),
    play_card() and draw_card_for_current_player(), and learns the outcome
    by subscribing to events.

    Attributes:
        players: Seated players, indexed by current_player_index.
        deck: The draw pile.
        top_card: The face-up card plays are checked against.
        discard_pile: Cards covered by later plays (never reshuffled).
        current_player_index: Index of the player whose turn it is.
        phase: Current lifecycle phase.
        dealt: Whether the opening deal and reveal have completed.
        must_draw: The current player has no legal move and must draw.
        deck_exhausted: The last card has been drawn from the deck.
        move_taken_this_turn: Guards against a second action in one turn.
        winner_id: WINNER_NONE, WINNER_DRAW, or the winning player's id.
        game_id: Unique identifier carried by every event.
    """

    def __init__(
        self,
        players: list[Player],
        scheduler: Any,
        options: Optional[GameOptions] = None,
        game_id: Optional[str] = None,
    ) -> None:
        self.options = options or GameOptions()
        if len(players) < 2:
            raise ValueError("Crazy Eights needs at least two players")
        if self.options.hand_size * len(players) >= DECK_SIZE:
            raise ValueError("Hands too large to leave a top card")

        self.players = players
        self.scheduler = scheduler
        self.game_id = game_id or str(uuid.uuid4())

        self.deck = Deck(seed=self.options.deck_seed, on_exhausted=self.notify_deck_exhausted)
        self.base_seed = self.deck.seed
        self.games_started = 0
        # Separate stream so the starting seat does not disturb the shuffle order
        self.turn_rng = random.Random(self.deck.seed + 1)

        self.phase = GamePhase.NOT_STARTED
        self.top_card: Optional[Card] = None
        self.discard_pile: list[Card] = []
        self.current_player_index = 0
        self.dealt = False
        self.must_draw = False
        self.deck_exhausted = False
        self.move_taken_this_turn = False
        self.winner_id = WINNER_NONE

        self._listeners: list[Callable[[GameEvent], None]] = []
        self._outbox: deque[GameEvent] = deque()
        self._dispatching = False
        self._sequence_num = 0

        # Continuations scheduled before a reset must not touch the new game
        self._epoch = 0
        self._pending: set[TimerHandle] = set()
        self._end_turn_pending = False

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Callable[[GameEvent], None]) -> None:
        """
        Register a listener for every event this game emits.

        Listeners are called in registration order. An event emitted while
        another is being delivered is queued and delivered afterwards, so
        every listener sees events in sequence order.
        """
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[GameEvent], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event_type: EventType, player_id: Optional[int] = None, **data: Any) -> None:
        self._sequence_num += 1
        self._outbox.append(
            GameEvent(
                event_type=event_type,
                game_id=self.game_id,
                sequence_num=self._sequence_num,
                player_id=player_id,
                data=data,
            )
        )
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._outbox:
                event = self._outbox.popleft()
                for listener in list(self._listeners):
                    listener(event)
        finally:
            self._dispatching = False

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Run callback after delay, unless the game is reset first.

        Strategies use this for their think/draw pauses so that a reset
        also discards their pending decisions.
        """
        epoch = self._epoch
        handle: Optional[TimerHandle] = None

        def run() -> None:
            self._pending.discard(handle)
            if epoch != self._epoch:
                logger.debug(f"Dropping stale continuation for game {self.game_id}")
                return
            callback()

        handle = self.scheduler.call_later(delay, run)
        self._pending.add(handle)
        return handle

    def _cancel_pending(self) -> None:
        for handle in self._pending:
            handle.cancel()
        self._pending.clear()
        self._end_turn_pending = False

    def _transition(self, trigger: PhaseTrigger) -> None:
        self.phase = next_phase(self.phase, trigger)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def current_player(self) -> Player:
        """Get the player whose turn it currently is."""
        return self.players[self.current_player_index]

    def get_player(self, player_id: int) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    @property
    def is_started(self) -> bool:
        return self.phase in (GamePhase.DEALING, GamePhase.AWAITING_MOVE)

    @property
    def can_draw(self) -> bool:
        """Whether the deck should offer the draw affordance right now."""
        return (
            self.phase == GamePhase.AWAITING_MOVE
            and self.must_draw
            and not self.deck_exhausted
            and not self.move_taken_this_turn
        )

    @property
    def deal_duration(self) -> float:
        """Time from game_started to the opening reveal."""
        return self.options.hand_size * len(self.players) * self.options.deal_stagger

    def any_legal_move(self) -> bool:
        """Whether any player holds a card playable on the top card."""
        return any(p.has_legal_move(self.top_card) for p in self.players)

    def _accepting_moves(self) -> bool:
        return self.phase == GamePhase.AWAITING_MOVE and not self.move_taken_this_turn

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start_game(self) -> None:
        """
        Shuffle, deal and begin a new game.

        Does nothing while a game is in progress. An ended game is reset
        first. Every game is shuffled from its own seed (see game_seed),
        reported in game_started. Each player receives hand_size cards,
        dealt alternately; the top card is revealed by a continuation once
        the deal stagger has elapsed.
        """
        if self.is_started:
            logger.debug(f"start_game ignored, game {self.game_id} already {self.phase.value}")
            return
        if self.phase == GamePhase.ENDED:
            self.reset_game()

        self._transition(PhaseTrigger.START)
        seed = game_seed(self.base_seed, self.games_started)
        self.games_started += 1
        self.deck.reseed(seed)
        self.turn_rng = random.Random(seed + 1)
        self.deck.reset()
        self.deck_exhausted = False
        self.winner_id = WINNER_NONE

        self._emit(
            EventType.GAME_STARTED,
            deck_seed=self.deck.seed,
            player_order=[p.id for p in self.players],
            hand_size=self.options.hand_size,
        )

        sequence = 0
        for _ in range(self.options.hand_size):
            for player in self.players:
                card = self.deck.draw()
                player.receive(card)
                self._emit(
                    EventType.CARD_DEALT,
                    player_id=player.id,
                    card=card.to_dict(),
                    sequence_delay=round(sequence * self.options.deal_stagger, 6),
                )
                sequence += 1

        logger.info(
            f"Game {self.game_id} dealt {self.options.hand_size} cards to "
            f"{len(self.players)} players (seed={self.deck.seed})"
        )
        self.schedule(self.deal_duration, self._reveal_first_card)

    def _reveal_first_card(self) -> None:
        card = self.deck.draw()
        card.owner = OWNER_IN_PLAY
        self.top_card = card

        self.dealt = True
        self.deck_exhausted = self.deck.is_empty()
        self.move_taken_this_turn = False
        self.must_draw = False

        # Every seat is eligible to start
        self.current_player_index = self.turn_rng.randrange(len(self.players))

        self._transition(PhaseTrigger.REVEAL)
        self._emit(EventType.TOP_CARD_REVEALED, card=card.to_dict())
        self._announce_turn()

    def _announce_turn(self) -> None:
        player = self.current_player()
        logger.debug(f"Game {self.game_id}: turn -> player {player.id}")
        self._emit(
            EventType.TURN_CHANGED,
            player_id=player.id,
            turn_index=self.current_player_index,
        )

    def reset_game(self) -> None:
        """
        Abandon the current game and return every card to the deck owner.

        Pending continuations (turn endings, CPU decisions) are cancelled and
        any that still fire are ignored.
        """
        self._epoch += 1
        self._cancel_pending()

        for player in self.players:
            player.reset_hand()
        if self.top_card is not None:
            self.top_card.owner = OWNER_DECK
            self.top_card = None
        for card in self.discard_pile:
            card.owner = OWNER_DECK
        self.discard_pile = []

        self.winner_id = WINNER_NONE
        self.must_draw = False
        self.move_taken_this_turn = False
        self.deck_exhausted = False
        self.dealt = False

        self._transition(PhaseTrigger.RESET)
        self._emit(EventType.GAME_RESET)

    # -------------------------------------------------------------------------
    # Player Actions
    # -------------------------------------------------------------------------

    def play_card(self, card: Card, player_id: Optional[int] = None) -> bool:
        """
        Play a card from the current player's hand onto the top card.

        Illegal plays, plays out of turn and second plays in one turn are
        ignored.

        Args:
            card: The card to play (matched by rank and suit).
            player_id: If given, the play is ignored unless it is this
                       player's turn.

        Returns:
            True if the card was played.
        """
        if not self._accepting_moves():
            logger.debug(f"play_card ignored in game {self.game_id}: not accepting moves")
            return False

        player = self.current_player()
        if player_id is not None and player_id != player.id:
            logger.debug(f"play_card ignored: player {player_id} acted on player {player.id}'s turn")
            return False
        if not player.holds(card):
            logger.debug(f"play_card ignored: player {player.id} does not hold {card}")
            return False
        if not is_legal_move(self.top_card, card):
            logger.debug(f"play_card ignored: {card} cannot go on {self.top_card}")
            return False

        self.move_taken_this_turn = True
        self.must_draw = False

        played = player.remove(card)
        played.owner = OWNER_IN_PLAY
        previous = self.top_card
        self.discard_pile.append(previous)
        self.top_card = played

        self._emit(
            EventType.CARD_PLAYED,
            player_id=player.id,
            card=played.to_dict(),
            previous_top=previous.to_dict(),
            cards_left=len(player.hand),
        )
        self.end_turn()
        return True

    def request_draw(self, player_id: int) -> bool:
        """
        Put the current player into the forced-draw state.

        Only a player with no legal move may draw. If the deck is already
        exhausted the turn is passed instead, since nothing can be drawn;
        the draw check at the end of the turn then decides whether the
        game is stuck.

        Returns:
            True if the request changed the game state.
        """
        if not self._accepting_moves():
            return False
        player = self.current_player()
        if player.id != player_id or self.must_draw:
            return False
        if player.has_legal_move(self.top_card):
            logger.debug(f"request_draw ignored: player {player_id} has a legal move")
            return False

        if self.deck_exhausted:
            self.move_taken_this_turn = True
            self._emit(EventType.TURN_PASSED, player_id=player.id)
            self.end_turn()
            return True

        self.must_draw = True
        self._emit(EventType.DRAW_REQUESTED, player_id=player.id, prompt=not player.is_cpu)
        return True

    def draw_card_for_current_player(self) -> Optional[Card]:
        """
        Draw one card for a player in the forced-draw state and end the turn.

        Ignored unless must_draw is set and the deck still has cards.

        Returns:
            The drawn card, or None if the draw was not permitted.
        """
        if not self.can_draw:
            logger.debug(f"draw ignored in game {self.game_id}: draw not permitted")
            return None

        player = self.current_player()
        card = self.deck.draw()
        player.receive(card)
        self.must_draw = False
        self.move_taken_this_turn = True

        self._emit(
            EventType.CARD_DRAWN,
            player_id=player.id,
            card=card.to_dict(),
            deck_remaining=self.deck.cards_remaining(),
        )
        self.end_turn()
        return card

    def notify_deck_exhausted(self) -> None:
        """Called by the deck when its last card has been drawn."""
        if self.deck_exhausted:
            return
        self.deck_exhausted = True
        self._emit(EventType.DECK_EXHAUSTED)

    # -------------------------------------------------------------------------
    # Turn Flow
    # -------------------------------------------------------------------------

    def end_turn(self) -> None:
        """
        Schedule the end of the current turn.

        At most one end-of-turn continuation is pending at a time.
        """
        if self._end_turn_pending:
            return
        self._end_turn_pending = True
        self.schedule(self.options.end_turn_delay, self._finish_turn)

    def _finish_turn(self) -> None:
        """
        Check for a winner, then for a draw, then pass the turn on.
        """
        self._end_turn_pending = False
        if self.phase != GamePhase.AWAITING_MOVE:
            return

        for player in self.players:
            if not player.hand:
                self._end_game(player.id, PhaseTrigger.WIN, reason="empty_hand")
                return

        if self.deck_exhausted and not self.any_legal_move():
            self._end_game(WINNER_DRAW, PhaseTrigger.DRAW, reason="no_moves")
            return

        self.current_player_index = (self.current_player_index + 1) % len(self.players)
        self.move_taken_this_turn = False
        self.must_draw = False
        self._transition(PhaseTrigger.ADVANCE)
        self._announce_turn()

    def _end_game(self, winner_id: int, trigger: PhaseTrigger, reason: str) -> None:
        self.winner_id = winner_id
        self._transition(trigger)
        logger.info(f"Game {self.game_id} ended: winner={winner_id} ({reason})")
        self._emit(EventType.GAME_ENDED, winner_id=winner_id, reason=reason)

    def resume(self) -> None:
        """
        Re-arm continuations after restoring from a snapshot.

        Pending timers are not part of a snapshot, so the step that was
        waiting (the reveal, a turn ending, or the current player's
        decision) is scheduled or announced again. The reveal waits out the
        whole deal, as it does after start_game(). A forced draw that had
        not happened yet is dropped and the turn announced afresh, so the
        player's strategy asks for the draw again.
        """
        if self.phase == GamePhase.DEALING:
            self.schedule(self.deal_duration, self._reveal_first_card)
        elif self.phase == GamePhase.AWAITING_MOVE:
            if self.move_taken_this_turn:
                self.end_turn()
            else:
                self.must_draw = False
                self._announce_turn()

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def check_card_conservation(self) -> None:
        """
        Verify that every card identity is in exactly one place.

        Raises:
            CardConservationError: If a card is duplicated or missing.
        """
        if self.phase == GamePhase.NOT_STARTED:
            return

        identities = list(self.deck.cards)
        for player in self.players:
            identities.extend(c.identity for c in player.hand)
        if self.top_card is not None:
            identities.append(self.top_card.identity)
        identities.extend(c.identity for c in self.discard_pile)

        if len(identities) != DECK_SIZE or len(set(identities)) != DECK_SIZE:
            counts = Counter(identities)
            dupes = sorted(i for i, n in counts.items() if n > 1)
            missing = sorted(set(range(DECK_SIZE)) - set(identities))
            raise CardConservationError(
                f"Card conservation broken in game {self.game_id}: "
                f"duplicates={dupes}, missing={missing}"
            )

    # -------------------------------------------------------------------------
    # State Views
    # -------------------------------------------------------------------------

    def get_state(self, for_player_id: Optional[int]) -> dict:
        """
        Get the table as seen by one player.

        Args:
            for_player_id: The viewer; only their own hand is revealed.
                           None gives a spectator view.
        """
        current = self.current_player() if self.dealt else None
        return {
            "game_id": self.game_id,
            "phase": self.phase.value,
            "players": [p.to_dict(reveal=p.id == for_player_id) for p in self.players],
            "current_player_id": current.id if current else None,
            "top_card": self.top_card.to_dict() if self.top_card else None,
            "discard_count": len(self.discard_pile),
            "deck_remaining": self.deck.cards_remaining(),
            "deck_exhausted": self.deck_exhausted,
            "must_draw": self.must_draw,
            "can_draw": self.can_draw,
            "winner_id": self.winner_id,
        }

    def to_snapshot(self) -> dict:
        """
        Serialize the full game state, including hidden cards and RNG state.

        The snapshot is JSON-compatible. Pending continuations are not
        included; call resume() after from_snapshot().
        """
        return {
            "game_id": self.game_id,
            "options": {
                "hand_size": self.options.hand_size,
                "deal_stagger": self.options.deal_stagger,
                "end_turn_delay": self.options.end_turn_delay,
                "deck_seed": self.base_seed,
            },
            "phase": self.phase.value,
            "players": [
                {
                    "id": p.id,
                    "name": p.name,
                    "is_cpu": p.is_cpu,
                    "hand": [c.identity for c in p.hand],
                }
                for p in self.players
            ],
            "deck": self.deck.order,
            "deck_seed": self.deck.seed,
            "games_started": self.games_started,
            "deck_rng_state": _rng_state_to_list(self.deck.rng),
            "turn_rng_state": _rng_state_to_list(self.turn_rng),
            "top_card": self.top_card.identity if self.top_card else None,
            "discard_pile": [c.identity for c in self.discard_pile],
            "current_player_index": self.current_player_index,
            "dealt": self.dealt,
            "must_draw": self.must_draw,
            "deck_exhausted": self.deck_exhausted,
            "move_taken_this_turn": self.move_taken_this_turn,
            "winner_id": self.winner_id,
            "sequence_num": self._sequence_num,
        }

    @classmethod
    def from_snapshot(cls, data: dict, scheduler: Any) -> "Game":
        """
        Rebuild a game from to_snapshot() output.

        Raises:
            CardConservationError: If the snapshot's cards do not add up.
        """
        players = []
        for pd in data["players"]:
            player = Player(id=pd["id"], name=pd["name"], is_cpu=pd["is_cpu"])
            for identity in pd["hand"]:
                player.receive(Card.from_identity(identity))
            players.append(player)

        game = cls(
            players=players,
            scheduler=scheduler,
            options=GameOptions(**data["options"]),
            game_id=data["game_id"],
        )
        game.deck.cards = list(data["deck"])
        game.deck.seed = data["deck_seed"]
        game.games_started = data["games_started"]
        _rng_state_from_list(game.deck.rng, data["deck_rng_state"])
        _rng_state_from_list(game.turn_rng, data["turn_rng_state"])

        if data["top_card"] is not None:
            game.top_card = Card.from_identity(data["top_card"])
            game.top_card.owner = OWNER_IN_PLAY
        for identity in data["discard_pile"]:
            card = Card.from_identity(identity)
            card.owner = OWNER_IN_PLAY
            game.discard_pile.append(card)

        game.phase = GamePhase(data["phase"])
        game.current_player_index = data["current_player_index"]
        game.dealt = data["dealt"]
        game.must_draw = data["must_draw"]
        game.deck_exhausted = data["deck_exhausted"]
        game.move_taken_this_turn = data["move_taken_this_turn"]
        game.winner_id = data["winner_id"]
        game._sequence_num = data["sequence_num"]

        game.check_card_conservation()
        return game


def _rng_state_to_list(rng: random.Random) -> list:
    version, internal, gauss_next = rng.getstate()
    return [version, list(internal), gauss_next]


def _rng_state_from_list(rng: random.Random, state: list) -> None:
    version, internal, gauss_next = state
    rng.setstate((version, tuple(internal), gauss_next))
