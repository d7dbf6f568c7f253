"""
Room management and turn engine for multiplayer Uno games.

This module handles room creation, seating, bot substitution, the
turn/stack/draw/play state machine and the per-player state broadcast.

A Room contains:
    - A unique 7-character code for joining
    - Seated Players (human or bot), in turn order
    - The draw pile (Deck) and the discard pile
    - Turn pointer, direction, pending stacked penalty and winner
    - Rule Settings chosen when the room was created

Room lifecycle:
    Lobby (started=False) -> In progress (start_game) -> Finished (winner set)

The room object outlives the game; it is disposed by its RoomManager once
no human is left in it.
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ai import process_bot_turn
from constants import BOT_NAMES, HAND_SIZE, INACTIVITY_LIMIT, MIN_PLAYERS, UNO_PENALTY
from game import REAL_COLORS, Card, CardColor, CardType, Deck, Player, Settings
from services.stats_service import decrement_stat, increment_stat

logger = logging.getLogger(__name__)


# =============================================================================
# Turn Timing Configuration (seconds)
# =============================================================================
# Pacing delays that let clients animate draws and skips.

TURN_TIMING = {
    # Between cards of a penalty draw
    "forced_draw": 0.4,
    # Between cards of a voluntary draw
    "voluntary_draw": 0.8,
    # After an unplayable draw before the turn passes (draw_to_play off)
    "forfeit": 0.4,
    # Pause on the skipped seat before its penalty is dealt
    "skip": 1.5,
    # Inactivity counter tick
    "inactivity_tick": 1.0,
}


@dataclass
class Room:
    """
    A game room that hosts one Uno game.

    Attributes:
        code: 7-character room code for joining.
        host: Player who controls the lobby (start, bots, kicks).
        settings: Rule settings for this room.
        players: Seated players in turn order (max 4).
        deck: The draw pile.
        pile: Discard pile, top card last.
        turn: Player whose turn it is.
        direction_reversed: True when play runs backwards through the seats.
        stack: Cumulative penalty waiting on a +2/+4 counter.
        winner: First player to empty their hand.
        started: Whether a game has been dealt.
        is_room_empty: Set once no human is left; the room is then disposed.
        inactivity_timer: Seconds since the last turn change.
        wildcard: Last wild card played, so clients can show its chosen color.
        sockets: WebSocket connections of seated humans, by player id.
        game_lock: asyncio.Lock serializing intents against this room.
        on_empty: Called with the room once it becomes empty.
    """

    code: str
    host: Player
    settings: Settings = field(default_factory=Settings.defaults)
    players: list[Player] = field(default_factory=list)
    deck: Deck = field(default_factory=Deck)
    pile: list[Card] = field(default_factory=list)
    turn: Optional[Player] = None
    direction_reversed: bool = False
    stack: int = 0
    winner: Optional[Player] = None
    started: bool = False
    is_room_empty: bool = False
    inactivity_timer: int = 0
    wildcard: Optional[Card] = None
    sockets: dict[str, Any] = field(default_factory=dict, repr=False)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    on_empty: Optional[Callable[["Room"], None]] = field(default=None, repr=False)
    _inactivity_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _driving_bots: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        if self.turn is None:
            self.turn = self.host

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_player(self, player_id: str) -> Optional[Player]:
        """Get a seated player by ID, or None if not found."""
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def human_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_bot]

    def is_full(self) -> bool:
        return len(self.players) >= self.settings.max_players

    def top_card(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        return self.pile[-1] if self.pile else None

    def seat_index(self, player: Player) -> int:
        """Seat position of a player, or -1 if they are not seated here."""
        for i, p in enumerate(self.players):
            if p.id == player.id:
                return i
        return -1

    def _is_seated(self, player: Player) -> bool:
        return not self.is_room_empty and self.seat_index(player) != -1

    def get_next_player(self, offset: int = 0) -> Optional[Player]:
        """
        Get the player `1 + offset` seats after the current turn.

        Walks backwards through the seats while direction is reversed and
        wraps around the table.
        """
        if not self.players:
            return None
        index = self.seat_index(self.turn) if self.turn else 0
        if index == -1:
            index = 0
        step = 1 + offset
        index = index - step if self.direction_reversed else index + step
        return self.players[index % len(self.players)]

    def player_at_offset(self, player: Player, offset: int) -> Player:
        """Seat `offset` places clockwise from `player`, ignoring direction."""
        index = self.seat_index(player)
        return self.players[(index + offset) % len(self.players)]

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific human player.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        websocket = self.sockets.get(player_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.debug(f"Send to {player_id} failed: {e}", extra={"room_code": self.code})

    async def broadcast_state(self) -> None:
        """Push each human their own projection of the room."""
        for player in list(self.players):
            if player.is_bot:
                continue
            await self.send_to(player.id, {
                "type": "state",
                "state": project_state(self, player),
            })

    # -------------------------------------------------------------------------
    # Seating
    # -------------------------------------------------------------------------

    async def add_player(self, player: Player, websocket: Any = None) -> None:
        """
        Seat a player at the end of the table.

        Args:
            player: The joining player.
            websocket: The player's connection (None for bots and tests).
        """
        player.room_code = self.code
        player.in_room = True
        self.players.append(player)
        if websocket is not None:
            self.sockets[player.id] = websocket

        logger.info(f"{player.username} joined", extra={"room_code": self.code, "player_id": player.id})
        await self.broadcast_state()

    def create_bot(self, player: Optional[Player] = None) -> Player:
        """
        Build a bot, optionally carrying over a departing player's hand.

        Args:
            player: Player whose seat the bot will take over.

        Returns:
            The new bot (not seated yet).
        """
        bot = Player(
            id=f"bot_{uuid.uuid4().hex[:8]}",
            username=f"Bot {random.choice(BOT_NAMES)}",
            is_bot=True,
            room_code=self.code,
            in_room=True,
        )
        if player is not None:
            bot.cards = list(player.cards)
            bot.must_stack = player.must_stack

        increment_stat("bots_used")
        return bot

    async def add_bot(self, bot: Player, player: Optional[Player] = None) -> bool:
        """
        Seat a bot, either in a new seat or in place of `player`.

        When the replaced player held the turn, the bot takes it over and
        plays immediately.

        Returns:
            True if the bot was seated.
        """
        if player is None:
            if self.started or self.is_full():
                return False
            self.players.append(bot)
            await self.broadcast_state()
            return True

        index = self.seat_index(player)
        if index == -1:
            return False
        self.players[index] = bot

        if self.turn is not None and self.turn.id == player.id:
            self.turn = bot
            if self.started and not self.winner:
                bot.can_draw = True
                bot.can_play = True
                bot.find_playable_cards(self.top_card())
                await self._drive_bots()
        return True

    async def remove_player(self, player: Player, replace: bool = True) -> None:
        """
        Remove a player from the table.

        Handles host reassignment and bot substitution:
            - Removing the last human empties the room (no replacement).
            - A departing host hands the lobby to a random remaining human.
            - With `replace` during a running game, a bot inherits the seat
              and hand; otherwise the seat disappears.
            - If a running game is left with a single human after a
              non-replacing removal, that human is removed as well.

        Args:
            player: The departing player.
            replace: Whether a bot should take over the seat.
        """
        index = self.seat_index(player)
        if index == -1:
            return

        humans = [p for p in self.players if not p.is_bot and p.id != player.id]
        if not humans:
            self._mark_empty()
        elif self.host.id == player.id:
            self.host = random.choice(humans)

        in_game = self.started and self.winner is None
        replaced = replace and in_game and not self.is_room_empty

        logger.info(
            f"{player.username} left (replaced={replaced})",
            extra={"room_code": self.code, "player_id": player.id},
        )

        if replaced:
            bot = self.create_bot(player)
            self._detach(player)
            await self.add_bot(bot, player)
        else:
            successor = None
            if in_game and self.turn is not None and self.turn.id == player.id:
                successor = self.get_next_player()
                if player.must_stack:
                    self.clear_stack()

            self.players.pop(index)
            self._detach(player)

            if successor is not None and successor.id != player.id and not self.is_room_empty:
                self.turn = successor
                successor.can_draw = True
                successor.can_play = True
                successor.find_playable_cards(self.top_card())
            elif self.turn is not None and self.turn.id == player.id and self.players:
                self.turn = self.players[0]

        await self.broadcast_state()

        if len(humans) == 1 and not replaced and self.started:
            last = humans[0]
            await self.send_to(last.id, {"type": "kicked"})
            await self.remove_player(last, replace=False)
        elif not replaced and in_game:
            await self._drive_bots()

    def _detach(self, player: Player) -> None:
        """Clear a departing player's room state."""
        player.room_code = ""
        player.in_room = False
        player.cards = []
        player.drawing = False
        player.must_stack = False
        player.has_called_uno = False
        player.last_drawn_card = None
        player.reset_turn_flags()
        self.sockets.pop(player.id, None)

    def _mark_empty(self) -> None:
        if self.is_room_empty:
            return
        self.is_room_empty = True
        decrement_stat("lobbies_online")
        self._stop_inactivity_timer()
        logger.info("Room empty", extra={"room_code": self.code})
        if self.on_empty:
            self.on_empty(self)

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    async def start_game(self) -> bool:
        """
        Deal a new game.

        Builds and shuffles the deck, turns the first card (a wild card gets
        a random color), deals a hand to every seat and hands the first turn
        to a random player.

        Returns:
            True if the game started, False if already started or too few seats.
        """
        if self.started or len(self.players) < MIN_PLAYERS:
            return False

        self.deck.generate()
        self.deck.shuffle()

        self.pile = [self.deck.pick()]
        top = self.top_card()
        if top.is_wild:
            top.color = random.choice(REAL_COLORS)

        self.direction_reversed = False
        self.stack = 0
        self.winner = None
        self.wildcard = None

        for player in self.players:
            player.cards = []
            player.must_stack = False
            player.has_called_uno = False
            player.last_drawn_card = None
            player.reset_turn_flags()
            for _ in range(HAND_SIZE):
                self.give_card(player)
            player.sort_cards()

        self.turn = random.choice(self.players)
        self.turn.find_playable_cards(top)
        self.turn.can_draw = True
        self.turn.can_play = True

        self.started = True
        self.inactivity_timer = 0
        self._start_inactivity_timer()

        logger.info(
            f"Game started with {len(self.players)} players, {self.turn.username} first",
            extra={"room_code": self.code},
        )

        await self.broadcast_state()

        if self.turn.is_bot:
            await self._drive_bots()
        return True

    def give_card(self, player: Player) -> Optional[Card]:
        """
        Move one card from the deck into a player's hand.

        Refills the deck from the discard pile when it is empty. Recomputes
        the player's playable cards if it is their turn.

        Returns:
            The dealt card, or None if no card is left anywhere.
        """
        if not self.deck.cards:
            self.refill_deck_from_pile()

        card = self.deck.pick()
        if card is None:
            logger.warning("No cards left to deal", extra={"room_code": self.code})
            return None

        card.playable = False
        player.cards.append(card)

        if self.started and self.turn is not None and self.turn.id == player.id:
            player.find_playable_cards(self.top_card())

        return card

    async def draw_cards(self, player: Player, amount: Optional[int] = None) -> None:
        """
        Draw cards into a player's hand, one at a time with pacing.

        Forced draw (`amount` given): exactly `amount` cards, used for
        penalties. Voluntary draw (`amount` None): the player's turn action;
        draws until a playable card arrives (or a single card when
        draw_to_play is off, passing the turn if it is unplayable). A player
        who owes a stacked penalty absorbs it instead.

        The sequence stops early if the player leaves the room.
        """
        if player.drawing:
            return

        voluntary = amount is None
        if voluntary:
            if (
                not player.can_draw
                or self.winner is not None
                or self.turn is None
                or self.turn.id != player.id
            ):
                return
            if player.must_stack and self.stack > 0:
                await self._absorb_stack(player)
                return
            player.can_draw = False
            player.can_play = False
            player.can_keep_card = False

        player.drawing = True
        delay = TURN_TIMING["voluntary_draw"] if voluntary else TURN_TIMING["forced_draw"]
        drawn: list[Card] = []

        try:
            while True:
                if not voluntary and len(drawn) >= amount:
                    break
                if voluntary and drawn and drawn[-1].playable:
                    break

                card = self.give_card(player)
                if card is None:
                    break
                drawn.append(card)
                player.sort_cards()
                player.last_drawn_card = next(
                    i for i, c in enumerate(player.cards) if c.id == card.id
                )

                await self.broadcast_state()
                await asyncio.sleep(delay)
                if not self._is_seated(player):
                    return

                if voluntary and not self.settings.draw_to_play:
                    break
        finally:
            player.drawing = False

        if voluntary:
            if not drawn or not drawn[-1].playable:
                await asyncio.sleep(TURN_TIMING["forfeit"])
                if self._is_seated(player) and self.turn.id == player.id:
                    await self.next_turn()
                return

            # Only the card just drawn may be played now
            player.clear_playable_cards()
            player.cards[player.last_drawn_card].playable = True
            player.can_play = True

            if not self.settings.force_play:
                player.can_keep_card = True
                await self.send_to(player.id, {"type": "can_keep_card"})

        await self.broadcast_state()

    async def _absorb_stack(self, player: Player) -> None:
        """Take the whole pending stack instead of countering it, then pass."""
        amount = self.stack
        self.clear_stack()
        player.can_draw = False
        player.can_play = False
        await self.draw_cards(player, amount)
        if self._is_seated(player) and self.turn.id == player.id:
            await self.next_turn()

    async def keep_card(self, player: Player) -> bool:
        """
        Decline to play the card just drawn and pass the turn.

        Only valid right after a voluntary draw when force_play is off.
        """
        if (
            self.winner is not None
            or self.turn is None
            or self.turn.id != player.id
            or not player.can_keep_card
            or player.drawing
        ):
            return False
        player.can_keep_card = False
        await self.next_turn()
        return True

    async def call_uno(self, player: Player) -> bool:
        """Record an uno call; only valid on your turn holding two cards."""
        if (
            not self.started
            or self.winner is not None
            or self.turn is None
            or self.turn.id != player.id
            or len(player.cards) != 2
        ):
            return False
        player.has_called_uno = True
        await self.broadcast_state()
        return True

    async def play_card(self, player: Player, card_index: int) -> bool:
        """
        Play a card from a player's hand.

        Wild cards must already carry the chosen color. Applies the card's
        effect, the missed-uno penalty and advances the turn.

        Returns:
            True if the card was played, False if the play was rejected.
        """
        if (
            not self.started
            or self.winner is not None
            or self.turn is None
            or self.turn.id != player.id
            or not player.can_play
            or player.drawing
            or not 0 <= card_index < len(player.cards)
        ):
            return False

        card = player.cards[card_index]
        if not card.playable or (card.is_wild and card.color == CardColor.NONE):
            return False

        increment_stat("cards_played")
        self.wildcard = None

        player.cards.pop(card_index)
        card.playable = False
        self.pile.append(card)
        player.can_keep_card = False
        player.last_drawn_card = None
        if card.is_wild:
            self.wildcard = card

        next_player = self.get_next_player()
        draw = 0

        if card.penalty:
            if card.type == CardType.PLUS4:
                increment_stat("plus4s_dealt")
            player.must_stack = False
            if (
                self.settings.stacking
                and next_player.id != player.id
                and next_player.has_card_type(card.type)
            ):
                next_player.must_stack = True
                self.stack += card.penalty
            else:
                draw = self.stack + card.penalty
                self.clear_stack()
        elif card.type == CardType.REVERSE:
            self.direction_reversed = not self.direction_reversed

        logger.debug(
            f"{player.username} played type={card.type.name} color={card.color.name} number={card.number}",
            extra={"room_code": self.code, "player_id": player.id},
        )

        if len(player.cards) == 1 and not player.has_called_uno:
            await self.draw_cards(player, UNO_PENALTY)
        player.has_called_uno = False

        if not self._is_seated(player):
            return True

        skip = card.type == CardType.SKIP or (card.penalty > 0 and not next_player.must_stack)
        await self.next_turn(skip=skip, forced_draw=draw)
        return True

    def clear_stack(self) -> None:
        self.stack = 0
        for player in self.players:
            player.must_stack = False

    async def next_turn(self, skip: bool = False, forced_draw: int = 0) -> None:
        """
        Advance the turn.

        With `skip` or a `forced_draw`, the next seat is visited first: it
        absorbs the penalty (after a short pause) and never gets to act.
        The seat after that receives the turn. Bots then play until a human
        is reached or someone wins.
        """
        if not self.started or self.is_room_empty or not self.players:
            return

        self.inactivity_timer = 0
        self.turn.reset_turn_flags()

        if skip or forced_draw:
            skipped = self.get_next_player()
            self.turn = skipped
            skipped.reset_turn_flags()

            await self.broadcast_state()
            await asyncio.sleep(TURN_TIMING["skip"])
            if self.turn is not skipped or not self._is_seated(skipped):
                return

            if forced_draw:
                await self.draw_cards(skipped, forced_draw)
                if self.turn is not skipped or not self._is_seated(skipped):
                    return
            skipped.reset_turn_flags()

        self.turn = self.get_next_player()
        self.turn.can_draw = True
        self.turn.can_play = True
        self.turn.find_playable_cards(self.top_card())

        self.check_for_winner()
        await self.broadcast_state()

        if self.winner is not None:
            increment_stat("games_played")
            logger.info(f"{self.winner.username} won", extra={"room_code": self.code})
            return

        if self.turn.is_bot:
            await self._drive_bots()

    async def _drive_bots(self) -> None:
        """
        Let bots take their turns until a human is up or the game ends.

        A bot's own play advances the turn through next_turn, which lands
        back here; only the outermost call runs the loop.
        """
        if self._driving_bots:
            return

        self._driving_bots = True
        try:
            while (
                self.started
                and self.winner is None
                and not self.is_room_empty
                and self.turn is not None
                and self.turn.is_bot
            ):
                bot = self.turn
                acted = await process_bot_turn(self, bot)
                if not acted:
                    logger.warning(f"{bot.username} could not act", extra={"room_code": self.code})
                    break
        finally:
            self._driving_bots = False

    def check_for_winner(self) -> Optional[Player]:
        """Record the first seat (in seating order) with an empty hand as winner."""
        if self.winner is None:
            for player in self.players:
                if not player.cards:
                    self.winner = player
                    break
        return self.winner

    def refill_deck_from_pile(self) -> None:
        """
        Recycle the discard pile into the deck.

        Keeps the top card on the pile, returns wild cards to colorless and
        reshuffles.
        """
        if len(self.pile) <= 1:
            return

        recycled = self.pile[:-1]
        self.pile = self.pile[-1:]
        for card in recycled:
            card.playable = False
            if card.is_wild:
                card.color = CardColor.NONE

        self.deck.add_cards(recycled)
        self.deck.shuffle()

    # -------------------------------------------------------------------------
    # Inactivity
    # -------------------------------------------------------------------------

    def _start_inactivity_timer(self) -> None:
        self._stop_inactivity_timer()
        self._inactivity_task = asyncio.create_task(self._inactivity_loop())

    def _stop_inactivity_timer(self) -> None:
        task = self._inactivity_task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
        self._inactivity_task = None

    async def _inactivity_loop(self) -> None:
        while not self.is_room_empty:
            await asyncio.sleep(TURN_TIMING["inactivity_tick"])
            self.inactivity_timer += 1
            if self.inactivity_timer >= INACTIVITY_LIMIT:
                async with self.game_lock:
                    await self.expire()
                return

    async def expire(self) -> None:
        """Remove every human from an abandoned game, notifying them."""
        logger.info("Room inactive, removing players", extra={"room_code": self.code})
        for player in self.human_players():
            if not player.in_room:
                continue
            await self.send_to(player.id, {"type": "kicked"})
            await self.remove_player(player, replace=False)


# =============================================================================
# State Projection
# =============================================================================

def _opponent_view(room: Room, player: Player) -> dict:
    """Public view of another seat: no cards, only the count."""
    return {
        "username": player.username,
        "count": len(player.cards),
        "id": player.id,
        "is_bot": player.is_bot,
        "called_uno": player.has_called_uno,
        "skip": not player.can_play and room.turn is not None and room.turn.id == player.id,
    }


def project_state(room: Room, viewer: Player) -> dict:
    """
    Build the room state as seen by one player.

    The viewer gets their own full hand; opponents are placed by fixed
    seat offsets (right = +1, top = +2, left = +3) and expose only public
    fields.

    Args:
        room: The room to describe.
        viewer: The player who will receive this state.

    Returns:
        JSON-serializable state dict.
    """
    seat_count = len(room.players)
    opponents = {"right": None, "top": None, "left": None}
    if room.seat_index(viewer) != -1:
        for offset, position in ((1, "right"), (2, "top"), (3, "left")):
            if seat_count > offset:
                opponents[position] = _opponent_view(room, room.player_at_offset(viewer, offset))

    is_turn = room.turn is not None and room.turn.id == viewer.id
    you = viewer.to_dict()
    you.update({
        "count": len(viewer.cards),
        "called_uno": viewer.has_called_uno,
        "skip": not viewer.can_play and is_turn,
    })

    winner = None
    if room.winner is not None:
        winner = {"username": room.winner.username, "id": room.winner.id}

    return {
        "id": room.code,
        "is_host": room.host.id == viewer.id,
        "host": room.host.id,
        "turn": room.turn.id if room.turn else None,
        "pile": [c.to_dict() for c in room.pile],
        "started": room.started,
        "direction_reversed": room.direction_reversed,
        "stack": room.stack,
        "player_count": seat_count,
        "max_players": room.settings.max_players,
        "settings": room.settings.to_dict(),
        "wildcard": room.wildcard.to_dict() if room.wildcard else None,
        "you": you,
        **opponents,
        "winner": winner,
    }


# =============================================================================
# Room Registry
# =============================================================================

class RoomManager:
    """
    Manages all active game rooms.

    Provides room creation with unique codes, lookup, and cleanup.
    A single RoomManager instance is used by the server.
    """

    def __init__(self, code_length: int = 7) -> None:
        self.rooms: dict[str, Room] = {}
        self.code_length = code_length

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique room code."""
        for _ in range(max_attempts):
            code = uuid.uuid4().hex[: self.code_length]
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(self, host: Player, settings: Optional[Settings] = None) -> Room:
        """
        Create a new room with a unique code.

        The host still has to be seated with Room.add_player.

        Returns:
            The newly created Room.
        """
        code = self._generate_code()
        room = Room(code=code, host=host, settings=settings or Settings.defaults())
        room.on_empty = self._dispose
        self.rooms[code] = room

        increment_stat("lobbies_created")
        increment_stat("lobbies_online")
        logger.info(f"Room created by {host.username}", extra={"room_code": code})
        return room

    def get_room(self, code: str) -> Optional[Room]:
        return self.rooms.get(code)

    def remove_room(self, code: str) -> None:
        if code in self.rooms:
            del self.rooms[code]

    def _dispose(self, room: Room) -> None:
        self.remove_room(room.code)

    def find_player_room(self, player_id: str) -> Optional[Room]:
        """Find which room a player is seated in."""
        for room in self.rooms.values():
            if room.get_player(player_id):
                return room
        return None

    def public_rooms(self) -> list[Room]:
        """Listed rooms that can still be joined."""
        return [
            room for room in self.rooms.values()
            if room.settings.public and not room.started and not room.is_full()
        ]
