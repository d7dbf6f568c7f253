"""
Game constants for the Uno server.

Values that operators may want to tune come from config.py (and therefore
from environment variables). Deck composition is fixed by the rules and
lives here as the single source of truth.

Standard Uno deck (108 cards):
    - Per color: one 0, two each of 1-9, two each of +2/Reverse/Skip (25)
    - Four colors: 100 colored cards
    - Four Wildcards and four +4s, colorless until played
"""

from config import config


# =============================================================================
# Deck Composition
# =============================================================================

NUMBERS_PER_COLOR: dict[int, int] = {0: 1, **{n: 2 for n in range(1, 10)}}
ACTION_CARDS_PER_COLOR = 2
WILD_CARDS_PER_TYPE = 4

# Penalty drawn by a player who reaches one card without calling uno
UNO_PENALTY = 2


# =============================================================================
# Room Constants
# =============================================================================

MAX_PLAYERS = config.MAX_PLAYERS_PER_ROOM
MIN_PLAYERS = 2
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH
HAND_SIZE = config.game_defaults.hand_size
INACTIVITY_LIMIT = config.INACTIVITY_LIMIT_SECONDS


# =============================================================================
# Bots
# =============================================================================

BOT_NAMES = [
    "John",
    "James",
    "Alice",
    "Sean",
    "Joe",
    "Fred",
    "Bob",
    "Pat",
    "Jack",
    "Adam",
    "Nathaniel",
    "Freddie",
    "Baka",
    "Sussy",
]
