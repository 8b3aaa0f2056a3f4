"""Models package for the Crazy Eights server."""

from .events import EventType, GameEvent, PRIVATE_CARD_EVENTS
from .game_state import RebuiltGameState, rebuild_state, CardState, PlayerState, GamePhase

__all__ = [
    "EventType",
    "GameEvent",
    "PRIVATE_CARD_EVENTS",
    "RebuiltGameState",
    "rebuild_state",
    "CardState",
    "PlayerState",
    "GamePhase",
]
