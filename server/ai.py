"""Bot decision making for Uno."""

import asyncio
import logging
import os
import random
from collections import Counter
from typing import TYPE_CHECKING, Optional

from game import REAL_COLORS, CardColor, Player

if TYPE_CHECKING:
    from room import Room


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed bot decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

# Create a dedicated logger for bot decisions
ai_logger = logging.getLogger("uno.ai")
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
    """Log bot decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# Bot Turn Timing Configuration (seconds)
# =============================================================================

BOT_TIMING = {
    # Pause before the bot acts, so humans can follow the table
    "think": (0.6, 1.2),
}


class UnoAI:
    """Card and color choices for bot seats."""

    @staticmethod
    def choose_card(player: Player) -> Optional[int]:
        """
        Pick a hand index to play, or None if nothing is playable.

        Keeps wild cards for when nothing else fits.
        """
        playable = player.playable_indices()
        if not playable:
            return None

        if player.must_stack:
            ai_log(f"  {player.username} countering the stack")
            return random.choice(playable)

        colored = [i for i in playable if not player.cards[i].is_wild]
        return random.choice(colored or playable)

    @staticmethod
    def choose_color(player: Player, exclude_index: Optional[int] = None) -> CardColor:
        """
        Pick the color the bot holds most of (ties broken randomly).

        Args:
            player: The bot.
            exclude_index: Hand index of the wild card being played.
        """
        counts = Counter(
            card.color
            for i, card in enumerate(player.cards)
            if i != exclude_index and card.color != CardColor.NONE
        )
        if not counts:
            return random.choice(REAL_COLORS)

        best = max(counts.values())
        return random.choice([color for color, n in counts.items() if n == best])


async def _play(room: "Room", bot: Player, index: int) -> bool:
    card = bot.cards[index]
    if card.is_wild:
        card.color = UnoAI.choose_color(bot, exclude_index=index)
        ai_log(f"  {bot.username} names {card.color.name}")

    if len(bot.cards) == 2:
        await room.call_uno(bot)

    ai_log(f"  >> {bot.username} plays {card.type.name} {card.color.name} {card.number}")
    return await room.play_card(bot, index)


async def process_bot_turn(room: "Room", bot: Player) -> bool:
    """
    Take one turn for a bot seat.

    Plays a playable card if there is one, otherwise draws and then plays
    the drawn card when the draw left the turn with the bot.

    Returns:
        True if the bot acted, False if it was no longer its turn or it
        had nothing to do.
    """
    think = BOT_TIMING["think"]
    await asyncio.sleep(random.uniform(think[0], think[1]))

    if room.turn is not bot or room.winner is not None or room.is_room_empty:
        return False

    ai_log(f"--- {bot.username} ({len(bot.cards)} cards, stack={room.stack}) ---")

    index = UnoAI.choose_card(bot)
    if index is not None:
        return await _play(room, bot, index)

    if not bot.can_draw:
        return False

    ai_log(f"  >> {bot.username} draws")
    await room.draw_cards(bot)

    # Absorbed a stack, forfeited, or left the room: the draw ended the turn
    if room.turn is not bot or room.winner is not None or room.is_room_empty:
        return True

    index = UnoAI.choose_card(bot)
    if index is None:
        return False
    return await _play(room, bot, index)
