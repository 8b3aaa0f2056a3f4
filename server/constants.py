"""
Rule constants for Crazy Eights.

This module is the single source of truth for deck composition, the wild
rank, ownership sentinels and default timings. The engine (game.py) and the
CPU strategy (ai.py) both read from here.

Rank numbering follows the deck layout used for card identities:
    rank 0 = Ace, 1..9 = 2..10, 10 = Jack, 11 = Queen, 12 = King

Card identity:
    identity = rank + suit_index * 13   (0..51)
"""

# =============================================================================
# Deck Composition
# =============================================================================

RANK_COUNT = 13
SUIT_COUNT = 4
DECK_SIZE = RANK_COUNT * SUIT_COUNT

RANK_NAMES: tuple[str, ...] = (
    "A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K",
)

# Eights can always be played (zero-indexed rank 7)
WILD_RANK = 7


# =============================================================================
# Table Setup
# =============================================================================

HAND_SIZE = 7
NUM_PLAYERS = 2

HUMAN_PLAYER_ID = 0
CPU_PLAYER_ID = 1


# =============================================================================
# Ownership and Outcome Sentinels
# =============================================================================

OWNER_DECK = -1       # Card is still in (or returned to) the deck
OWNER_IN_PLAY = -2    # Card is the top card or buried in the discard pile

WINNER_NONE = -1      # Game in progress
WINNER_DRAW = -2      # Deck exhausted and nobody can move


# =============================================================================
# Default Timings (seconds)
# =============================================================================
# Delays are sequencing guarantees for the presentation layer, not rules.

DEAL_STAGGER = 0.4
END_TURN_DELAY = 0.5
CPU_THINK_DELAY = 1.0
CPU_DRAW_DELAY = 0.4
