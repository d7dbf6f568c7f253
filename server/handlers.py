"""WebSocket message handlers for the Uno server.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict in main.py.

Invalid intents (wrong turn, wrong lifecycle phase, not host, ...) are
dropped without a reply; the client only ever sees the state not change.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from constants import ROOM_CODE_LENGTH
from game import REAL_COLORS, CardColor, Player, Settings
from logging_config import get_logger
from room import Room, RoomManager

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player: Player

    @property
    def player_id(self) -> str:
        return self.player.id


def current_room(ctx: ConnectionContext, room_manager: RoomManager) -> Optional[Room]:
    """The room the connection's player is seated in, if any."""
    if not ctx.player.in_room:
        return None
    return room_manager.get_room(ctx.player.room_code)


def _ignore(ctx: ConnectionContext, intent: str, reason: str) -> None:
    logger.with_context(player_id=ctx.player_id, room_code=ctx.player.room_code or None).debug(
        f"Ignored {intent}: {reason}"
    )


def _username(data: dict) -> str:
    username = data.get("username", "")
    return username if isinstance(username, str) else ""


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    if ctx.player.in_room:
        _ignore(ctx, "create_room", "already in a room")
        return

    settings_data = data.get("settings", {})
    if not isinstance(settings_data, dict):
        settings_data = {}

    ctx.player.username = _username(data)
    room = room_manager.create_room(ctx.player, Settings.from_client_data(settings_data))
    async with room.game_lock:
        await room.add_player(ctx.player, ctx.websocket)


async def handle_join_room(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room_id = data.get("room_id", "")
    if not isinstance(room_id, str) or len(room_id) != ROOM_CODE_LENGTH:
        _ignore(ctx, "join_room", "bad room code")
        return

    room = room_manager.get_room(room_id)
    if not room or room.is_full() or room.started or ctx.player.in_room:
        _ignore(ctx, "join_room", "room unavailable")
        return

    ctx.player.username = _username(data)
    async with room.game_lock:
        await room.add_player(ctx.player, ctx.websocket)


async def handle_leave_room(data: dict, ctx: ConnectionContext, *, handle_player_leave, **kw) -> None:
    await handle_player_leave(ctx.player, replace=False)


async def handle_add_bot(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room:
        return

    if room.host.id != ctx.player_id or room.is_full() or room.started:
        _ignore(ctx, "add_bot", "not host or no free seat")
        return

    async with room.game_lock:
        await room.add_bot(room.create_bot())


async def handle_kick_player(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room:
        return

    if room.host.id != ctx.player_id:
        _ignore(ctx, "kick_player", "not host")
        return

    target = room.get_player(data.get("id", ""))
    if not target:
        return

    async with room.game_lock:
        await room.remove_player(target, replace=False)


async def handle_start_game(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room:
        return

    if room.started or room.host.id != ctx.player_id:
        _ignore(ctx, "start_game", "not host or already started")
        return

    async with room.game_lock:
        await room.start_game()


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_call_uno(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room:
        return

    async with room.game_lock:
        if not await room.call_uno(ctx.player):
            _ignore(ctx, "call_uno", "not allowed now")


async def handle_draw_card(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room or room.turn is None or room.turn.id != ctx.player_id:
        return

    async with room.game_lock:
        await room.draw_cards(ctx.player)


async def handle_play_card(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room or not room.started or room.turn is None or room.turn.id != ctx.player_id:
        return

    index = data.get("index")
    if not isinstance(index, int) or isinstance(index, bool):
        _ignore(ctx, "play_card", f"bad index {index!r}")
        return

    async with room.game_lock:
        if not 0 <= index < len(ctx.player.cards):
            _ignore(ctx, "play_card", f"index {index} out of range")
            return

        card = ctx.player.cards[index]
        if card.is_wild:
            color = data.get("color")
            if color not in [int(c) for c in REAL_COLORS] or isinstance(color, bool):
                _ignore(ctx, "play_card", f"bad color {color!r}")
                return
            card.color = CardColor(color)

        if not await room.play_card(ctx.player, index) and card.is_wild:
            card.color = CardColor.NONE


async def handle_keep_card(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = current_room(ctx, room_manager)
    if not room:
        return

    async with room.game_lock:
        await room.keep_card(ctx.player)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "leave_room": handle_leave_room,
    "add_bot": handle_add_bot,
    "kick_player": handle_kick_player,
    "start_game": handle_start_game,
    "call_uno": handle_call_uno,
    "draw_card": handle_draw_card,
    "play_card": handle_play_card,
    "keep_card": handle_keep_card,
}
