"""
Card, deck and player model for Uno.

This module holds the value types the room state machine is built from:
cards, the draw pile, per-player hand state and the per-room rule settings.
Turn flow, stacking and broadcasting live in room.py.

Uno Rules Summary:
    - Each player starts with 7 cards, one card starts the discard pile
    - On your turn: play a card matching the top card by color, number or
      symbol (wild cards always match), or draw until you can play
    - +2 / +4 make the next player draw, unless they counter with the same
      card, in which case the penalty stacks onto whoever cannot counter
    - Reverse flips seating direction, Skip jumps over the next player
    - Forgetting to call "uno" when down to one card costs two cards
    - First player with an empty hand wins
"""

import random
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from constants import (
    ACTION_CARDS_PER_COLOR,
    MAX_PLAYERS,
    MIN_PLAYERS,
    NUMBERS_PER_COLOR,
    WILD_CARDS_PER_TYPE,
)
from config import config


class CardColor(IntEnum):
    """
    Card colors. NONE marks a wild card whose color has not been chosen yet.

    Integer values are the wire format clients send when choosing a color.
    """

    RED = 0
    YELLOW = 1
    GREEN = 2
    BLUE = 3
    NONE = 4


REAL_COLORS = (CardColor.RED, CardColor.YELLOW, CardColor.GREEN, CardColor.BLUE)


class CardType(IntEnum):
    """Card symbols. NONE is a plain numbered card."""

    NONE = 0
    PLUS2 = 1
    REVERSE = 2
    SKIP = 3
    WILDCARD = 4
    PLUS4 = 5


WILD_TYPES = (CardType.WILDCARD, CardType.PLUS4)

PENALTY_VALUES: dict[CardType, int] = {
    CardType.PLUS2: 2,
    CardType.PLUS4: 4,
}


@dataclass
class Card:
    """
    A single Uno card.

    Attributes:
        number: Face number 0-9 (always 0 for action and wild cards).
        color: Card color, NONE for an unassigned wild card.
        type: Card symbol.
        id: Unique identity, stable across shuffles and hands.
        playable: Whether the holder may play it right now (recomputed per turn).
    """

    number: int
    color: CardColor
    type: CardType = CardType.NONE
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    playable: bool = False

    @property
    def is_wild(self) -> bool:
        """Wildcard and +4 take their color from whoever plays them."""
        return self.type in WILD_TYPES

    @property
    def penalty(self) -> int:
        """Cards a +2/+4 forces on the next player (0 for everything else)."""
        return PENALTY_VALUES.get(self.type, 0)

    def matches(self, top: "Card") -> bool:
        """
        Check normal play legality against the top of the discard pile.

        A card matches by color, by number (numbered cards only) or by symbol
        (action cards only). Wild cards always match.
        """
        if self.is_wild:
            return True
        if self.color != CardColor.NONE and self.color == top.color:
            return True
        if self.type == CardType.NONE:
            return top.type == CardType.NONE and self.number == top.number
        return self.type == top.type

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "number": self.number,
            "color": int(self.color),
            "type": int(self.type),
            "playable": self.playable,
        }


class Deck:
    """
    The draw pile.

    Cards are drawn from the front. The deck is rebuilt at every game start
    and refilled from the discard pile by the room when it runs dry.
    """

    def __init__(self) -> None:
        self.cards: list[Card] = []

    def generate(self) -> None:
        """
        Rebuild the full 108-card deck in a fixed order.

        Colors first (numbers, then +2/Reverse/Skip pairs), then the
        colorless wild group.
        """
        self.cards = []

        for color in REAL_COLORS:
            for number, count in NUMBERS_PER_COLOR.items():
                for _ in range(count):
                    self.cards.append(Card(number, color))

            for card_type in (CardType.PLUS2, CardType.REVERSE, CardType.SKIP):
                for _ in range(ACTION_CARDS_PER_COLOR):
                    self.cards.append(Card(0, color, card_type))

        for card_type in WILD_TYPES:
            for _ in range(WILD_CARDS_PER_TYPE):
                self.cards.append(Card(0, CardColor.NONE, card_type))

    def shuffle(self) -> None:
        """Randomize card order in place (random.shuffle is Fisher-Yates)."""
        random.shuffle(self.cards)

    def pick(self, index: int = 0) -> Optional[Card]:
        """
        Remove and return the card at `index` (the front by default).

        Returns:
            The card, or None if the deck is empty or the index is out of range.
        """
        if not -len(self.cards) <= index < len(self.cards):
            return None
        return self.cards.pop(index)

    def add_cards(self, cards: list[Card]) -> None:
        """Put cards back into the deck (used when recycling the discard pile)."""
        self.cards.extend(cards)

    def cards_remaining(self) -> int:
        """Return the number of cards left in the deck."""
        return len(self.cards)


@dataclass
class Player:
    """
    A seat at an Uno table, human or bot.

    Attributes:
        id: Unique identifier (connection id for humans, generated for bots).
        username: Display name.
        cards: The player's hand, kept sorted for display.
        is_bot: Whether the room plays this seat itself.
        can_draw: Set while it is this player's turn and they may draw.
        can_play: Set while it is this player's turn and they may play.
        drawing: Set while a paced draw sequence is running for this player.
        has_called_uno: Whether the player called uno this turn.
        must_stack: Set while the player owes a stacked penalty and can counter it.
        last_drawn_card: Hand index of the most recently drawn card.
        can_keep_card: Set after a voluntary draw the player may decline to play.
        room_code: Code of the room this player sits in ("" when not seated).
        in_room: Whether the player is currently seated.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    username: str = ""
    cards: list[Card] = field(default_factory=list)
    is_bot: bool = False
    can_draw: bool = False
    can_play: bool = False
    drawing: bool = False
    has_called_uno: bool = False
    must_stack: bool = False
    last_drawn_card: Optional[int] = None
    can_keep_card: bool = False
    room_code: str = ""
    in_room: bool = False

    def find_playable_cards(self, top_card: Optional[Card]) -> None:
        """
        Recompute the playable flag on every card in hand.

        While the player owes a stacked penalty only cards of the same
        penalty type as the top card may be played.
        """
        for card in self.cards:
            if top_card is None:
                card.playable = False
            elif self.must_stack:
                card.playable = card.type == top_card.type
            else:
                card.playable = card.matches(top_card)

    def clear_playable_cards(self) -> None:
        """Mark every card in hand unplayable."""
        for card in self.cards:
            card.playable = False

    def sort_cards(self) -> None:
        """Order the hand by color, numbers before symbols, then number."""
        self.cards.sort(key=lambda c: (c.color, c.type != CardType.NONE, c.number, c.type))

    def has_card_type(self, card_type: CardType) -> bool:
        """Check whether the hand holds at least one card of a type."""
        return any(c.type == card_type for c in self.cards)

    def playable_indices(self) -> list[int]:
        """Hand indices of all currently playable cards."""
        return [i for i, c in enumerate(self.cards) if c.playable]

    def reset_turn_flags(self) -> None:
        """Drop every turn-local permission and obligation."""
        self.can_draw = False
        self.can_play = False
        self.can_keep_card = False
        self.clear_playable_cards()

    def to_dict(self) -> dict:
        """Full view of this player, only ever sent to the player themselves."""
        return {
            "id": self.id,
            "username": self.username,
            "cards": [c.to_dict() for c in self.cards],
            "is_bot": self.is_bot,
            "can_draw": self.can_draw,
            "can_play": self.can_play,
            "drawing": self.drawing,
            "has_called_uno": self.has_called_uno,
            "must_stack": self.must_stack,
            "last_drawn_card": self.last_drawn_card,
            "can_keep_card": self.can_keep_card,
        }


@dataclass
class Settings:
    """
    Per-room rule configuration.

    All flags can be set by the room creator; unknown keys are ignored.
    """

    stacking: bool = True
    """Allow countering a +2/+4 with the same card so the penalty stacks."""

    force_play: bool = False
    """A playable card found by drawing must be played immediately."""

    bluffing: bool = False
    """Reserved. Accepted and echoed to clients but has no rule effect."""

    draw_to_play: bool = True
    """Keep drawing until a playable card turns up (False: draw one, then pass)."""

    public: bool = False
    """List the room in the public lobby browser."""

    max_players: int = MAX_PLAYERS
    """Seat limit, 2-4."""

    @classmethod
    def defaults(cls) -> "Settings":
        """Settings built from the server's configured defaults."""
        d = config.game_defaults
        return cls(
            stacking=d.stacking,
            force_play=d.force_play,
            draw_to_play=d.draw_to_play,
            public=d.public,
        )

    @classmethod
    def from_client_data(cls, data: dict) -> "Settings":
        """Build Settings from client WebSocket message data."""
        base = cls.defaults()
        max_players = data.get("max_players", base.max_players)
        if not isinstance(max_players, int):
            max_players = base.max_players

        return cls(
            stacking=bool(data.get("stacking", base.stacking)),
            force_play=bool(data.get("force_play", base.force_play)),
            bluffing=bool(data.get("bluffing", base.bluffing)),
            draw_to_play=bool(data.get("draw_to_play", base.draw_to_play)),
            public=bool(data.get("public", base.public)),
            max_players=max(MIN_PLAYERS, min(MAX_PLAYERS, max_players)),
        )

    def to_dict(self) -> dict:
        return {
            "stacking": self.stacking,
            "force_play": self.force_play,
            "bluffing": self.bluffing,
            "draw_to_play": self.draw_to_play,
            "public": self.public,
            "max_players": self.max_players,
        }
