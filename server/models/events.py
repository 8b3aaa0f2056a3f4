"""
Event definitions for the Crazy Eights engine.

Every state change the engine makes is announced as an immutable event.
Events are how the presentation layer learns what happened (a card was dealt,
the turn changed, the game ended) and are complete enough to rebuild the
table state from scratch (see models/game_state.py).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import json


class EventType(str, Enum):
    """All possible event types in a Crazy Eights game."""

    # Lifecycle events
    GAME_STARTED = "game_started"
    GAME_ENDED = "game_ended"
    GAME_RESET = "game_reset"

    # Dealing
    CARD_DEALT = "card_dealt"
    TOP_CARD_REVEALED = "top_card_revealed"

    # Turn flow
    TURN_CHANGED = "turn_changed"
    DRAW_REQUESTED = "draw_requested"
    CARD_PLAYED = "card_played"
    CARD_DRAWN = "card_drawn"
    TURN_PASSED = "turn_passed"
    DECK_EXHAUSTED = "deck_exhausted"


# Events whose card face belongs to a single player's hand
PRIVATE_CARD_EVENTS = frozenset({EventType.CARD_DEALT, EventType.CARD_DRAWN})


@dataclass
class GameEvent:
    """
    A single engine event.

    Attributes:
        event_type: The type of event (from EventType enum).
        game_id: UUID of the game this event belongs to.
        sequence_num: Monotonically increasing sequence number within game.
        timestamp: When the event occurred (UTC).
        player_id: ID of the player the event concerns (if applicable).
        data: Event-specific payload data.
    """

    event_type: EventType
    game_id: str
    sequence_num: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    player_id: Optional[int] = None
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize event to dictionary for JSON storage."""
        return {
            "event_type": self.event_type.value,
            "game_id": self.game_id,
            "sequence_num": self.sequence_num,
            "timestamp": self.timestamp.isoformat(),
            "player_id": self.player_id,
            "data": self.data,
        }

    def to_client_dict(self, viewer_id: Optional[int]) -> dict:
        """
        Serialize event for a specific viewer.

        Card faces dealt or drawn into another player's hand are stripped,
        the same way face-down cards are hidden from opponents.

        Args:
            viewer_id: Player ID of the recipient, or None for a spectator.
        """
        d = self.to_dict()
        if self.event_type in PRIVATE_CARD_EVENTS and self.player_id != viewer_id:
            d["data"] = {k: v for k, v in self.data.items() if k != "card"}
        return d

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, d: dict) -> "GameEvent":
        """Deserialize event from dictionary."""
        timestamp = d["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        return cls(
            event_type=EventType(d["event_type"]),
            game_id=d["game_id"],
            sequence_num=d["sequence_num"],
            timestamp=timestamp,
            player_id=d.get("player_id"),
            data=d.get("data", {}),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "GameEvent":
        """Deserialize event from JSON string."""
        return cls.from_dict(json.loads(json_str))
