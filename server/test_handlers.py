"""
Test suite for WebSocket message handlers.

Tests handler flows and intent validation using mock WebSockets.

Run with: pytest test_handlers.py -v
"""

import pytest

from game import Card, CardColor, CardType, Player
from handlers import (
    HANDLERS,
    ConnectionContext,
    current_room,
    handle_add_bot,
    handle_call_uno,
    handle_create_room,
    handle_draw_card,
    handle_join_room,
    handle_keep_card,
    handle_kick_player,
    handle_leave_room,
    handle_play_card,
    handle_start_game,
)
from room import RoomManager


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]

    def last_state(self) -> dict:
        states = self.messages_of_type("state")
        return states[-1]["state"] if states else {}


def make_ctx(player_id="p0"):
    """Create a ConnectionContext with a fresh player."""
    return ConnectionContext(
        websocket=MockWebSocket(),
        connection_id=player_id,
        player=Player(id=player_id),
    )


async def leave(player, replace=True, *, room_manager):
    room = room_manager.get_room(player.room_code)
    if room:
        async with room.game_lock:
            await room.remove_player(player, replace=replace)


async def create_lobby(rm, *guests, settings=None):
    """Host creates a room and every guest joins it."""
    host = make_ctx("host")
    data = {"type": "create_room", "username": "Host"}
    if settings:
        data["settings"] = settings
    await handle_create_room(data, host, room_manager=rm)
    room = current_room(host, rm)
    for guest in guests:
        await handle_join_room(
            {"type": "join_room", "room_id": room.code, "username": guest.player_id},
            guest,
            room_manager=rm,
        )
    return host, room


def stage(room, hands, top, turn=0):
    """Put a created room mid-game with fixed hands."""
    room.deck.generate()
    for player, hand in zip(room.players, hands):
        player.cards = hand
    room.pile = [top]
    room.started = True
    room.turn = room.players[turn]
    room.turn.can_draw = True
    room.turn.can_play = True
    room.turn.find_playable_cards(top)


# =============================================================================
# Lobby handlers
# =============================================================================

class TestHandleCreateRoom:

    @pytest.mark.asyncio
    async def test_creates_room(self):
        ctx = make_ctx()
        rm = RoomManager()

        await handle_create_room({"type": "create_room", "username": "Alice"}, ctx, room_manager=rm)

        assert len(rm.rooms) == 1
        room = current_room(ctx, rm)
        assert room.host is ctx.player
        assert ctx.player.username == "Alice"
        state = ctx.websocket.last_state()
        assert state["is_host"] is True
        assert state["you"]["username"] == "Alice"

    @pytest.mark.asyncio
    async def test_applies_settings(self):
        ctx = make_ctx()
        rm = RoomManager()

        await handle_create_room(
            {"type": "create_room", "username": "A", "settings": {"public": True, "max_players": 3}},
            ctx,
            room_manager=rm,
        )

        room = current_room(ctx, rm)
        assert room.settings.public
        assert room.settings.max_players == 3

    @pytest.mark.asyncio
    async def test_second_create_ignored(self):
        ctx = make_ctx()
        rm = RoomManager()

        await handle_create_room({"type": "create_room", "username": "A"}, ctx, room_manager=rm)
        await handle_create_room({"type": "create_room", "username": "A"}, ctx, room_manager=rm)

        assert len(rm.rooms) == 1


class TestHandleJoinRoom:

    @pytest.mark.asyncio
    async def test_join_seats_player_and_broadcasts(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)

        assert room.get_player("guest") is guest.player
        assert host.websocket.last_state()["player_count"] == 2
        assert guest.websocket.last_state()["is_host"] is False

    @pytest.mark.asyncio
    async def test_wrong_code_length_ignored(self):
        rm = RoomManager()
        host, room = await create_lobby(rm)
        guest = make_ctx("guest")

        await handle_join_room({"room_id": room.code + "x", "username": "G"}, guest, room_manager=rm)

        assert not guest.player.in_room
        assert guest.websocket.messages == []

    @pytest.mark.asyncio
    async def test_unknown_room_ignored(self):
        rm = RoomManager()
        guest = make_ctx("guest")

        await handle_join_room({"room_id": "zzzzzzz", "username": "G"}, guest, room_manager=rm)

        assert not guest.player.in_room

    @pytest.mark.asyncio
    async def test_full_room_ignored(self):
        rm = RoomManager()
        guests = [make_ctx(f"g{i}") for i in range(3)]
        host, room = await create_lobby(rm, *guests)
        late = make_ctx("late")

        await handle_join_room({"room_id": room.code, "username": "L"}, late, room_manager=rm)

        assert len(room.players) == 4
        assert not late.player.in_room

    @pytest.mark.asyncio
    async def test_started_room_ignored(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, make_ctx("g1"))
        room.started = True
        late = make_ctx("late")

        await handle_join_room({"room_id": room.code, "username": "L"}, late, room_manager=rm)

        assert not late.player.in_room


class TestHandleLeaveRoom:

    @pytest.mark.asyncio
    async def test_leave_frees_seat(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)

        async def handle_player_leave(player, replace=True):
            await leave(player, replace, room_manager=rm)

        await handle_leave_room({}, guest, handle_player_leave=handle_player_leave)

        assert not guest.player.in_room
        assert len(room.players) == 1

    @pytest.mark.asyncio
    async def test_last_leave_disposes_room(self):
        rm = RoomManager()
        host, room = await create_lobby(rm)

        async def handle_player_leave(player, replace=True):
            await leave(player, replace, room_manager=rm)

        await handle_leave_room({}, host, handle_player_leave=handle_player_leave)

        assert rm.rooms == {}


class TestHandleAddBot:

    @pytest.mark.asyncio
    async def test_host_adds_bot(self):
        rm = RoomManager()
        host, room = await create_lobby(rm)

        await handle_add_bot({}, host, room_manager=rm)

        assert len(room.players) == 2
        assert room.players[1].is_bot
        assert host.websocket.last_state()["right"]["is_bot"] is True

    @pytest.mark.asyncio
    async def test_non_host_cannot_add_bot(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)

        await handle_add_bot({}, guest, room_manager=rm)

        assert len(room.players) == 2

    @pytest.mark.asyncio
    async def test_capacity_respected(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, settings={"max_players": 2})

        await handle_add_bot({}, host, room_manager=rm)
        await handle_add_bot({}, host, room_manager=rm)

        assert len(room.players) == 2


class TestHandleKickPlayer:

    @pytest.mark.asyncio
    async def test_host_kicks(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest, make_ctx("other"))

        await handle_kick_player({"id": "guest"}, host, room_manager=rm)

        assert room.get_player("guest") is None
        assert not guest.player.in_room

    @pytest.mark.asyncio
    async def test_non_host_cannot_kick(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)

        await handle_kick_player({"id": "host"}, guest, room_manager=rm)

        assert room.get_player("host") is host.player


class TestHandleStartGame:

    @pytest.mark.asyncio
    async def test_host_starts(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, make_ctx("guest"))

        await handle_start_game({}, host, room_manager=rm)
        room._stop_inactivity_timer()

        assert room.started
        assert host.websocket.last_state()["started"] is True

    @pytest.mark.asyncio
    async def test_guest_cannot_start(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)

        await handle_start_game({}, guest, room_manager=rm)

        assert not room.started


# =============================================================================
# Turn action handlers
# =============================================================================

class TestHandlePlayCard:

    @pytest.mark.asyncio
    async def test_plays_card(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)
        card = Card(3, CardColor.RED)
        stage(room, [[card, Card(1, CardColor.BLUE), Card(2, CardColor.BLUE)], [Card(9, CardColor.GREEN)]],
              Card(5, CardColor.RED))

        await handle_play_card({"index": 0}, host, room_manager=rm)

        assert room.top_card() is card
        assert room.turn is guest.player

    @pytest.mark.asyncio
    async def test_wild_requires_color(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, make_ctx("guest"))
        wild = Card(0, CardColor.NONE, CardType.WILDCARD)
        stage(room, [[wild, Card(1, CardColor.BLUE), Card(2, CardColor.BLUE)], [Card(9, CardColor.GREEN)]],
              Card(5, CardColor.RED))

        await handle_play_card({"index": 0}, host, room_manager=rm)
        await handle_play_card({"index": 0, "color": CardColor.NONE}, host, room_manager=rm)
        await handle_play_card({"index": 0, "color": 9}, host, room_manager=rm)

        assert len(room.pile) == 1
        assert wild.color == CardColor.NONE

    @pytest.mark.asyncio
    async def test_wild_with_color(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, make_ctx("guest"))
        wild = Card(0, CardColor.NONE, CardType.WILDCARD)
        stage(room, [[wild, Card(1, CardColor.BLUE), Card(2, CardColor.BLUE)], [Card(9, CardColor.GREEN)]],
              Card(5, CardColor.RED))

        await handle_play_card({"index": 0, "color": int(CardColor.YELLOW)}, host, room_manager=rm)

        assert room.top_card() is wild
        assert wild.color == CardColor.YELLOW

    @pytest.mark.asyncio
    async def test_bad_index_ignored(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, make_ctx("guest"))
        stage(room, [[Card(3, CardColor.RED)], [Card(9, CardColor.GREEN)]], Card(5, CardColor.RED))

        for index in (5, -1, "0", None, True):
            await handle_play_card({"index": index}, host, room_manager=rm)

        assert len(room.pile) == 1

    @pytest.mark.asyncio
    async def test_out_of_turn_ignored(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)
        stage(room, [[Card(3, CardColor.RED)], [Card(9, CardColor.RED), Card(8, CardColor.RED)]],
              Card(5, CardColor.RED))

        await handle_play_card({"index": 0}, guest, room_manager=rm)

        assert len(guest.player.cards) == 2


class TestHandleDrawAndKeep:

    @pytest.mark.asyncio
    async def test_draw_then_keep(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)
        stage(room, [[Card(9, CardColor.GREEN)], [Card(9, CardColor.BLUE)]], Card(5, CardColor.RED))
        room.deck.cards = [Card(3, CardColor.RED)]

        await handle_draw_card({}, host, room_manager=rm)

        assert host.websocket.messages_of_type("can_keep_card")
        assert len(host.player.cards) == 2

        await handle_keep_card({}, host, room_manager=rm)

        assert room.turn is guest.player

    @pytest.mark.asyncio
    async def test_draw_out_of_turn_ignored(self):
        rm = RoomManager()
        guest = make_ctx("guest")
        host, room = await create_lobby(rm, guest)
        stage(room, [[Card(9, CardColor.GREEN)], [Card(9, CardColor.BLUE)]], Card(5, CardColor.RED))

        await handle_draw_card({}, guest, room_manager=rm)

        assert len(guest.player.cards) == 1


class TestHandleCallUno:

    @pytest.mark.asyncio
    async def test_call_uno(self):
        rm = RoomManager()
        host, room = await create_lobby(rm, make_ctx("guest"))
        stage(room, [[Card(3, CardColor.RED), Card(4, CardColor.BLUE)], [Card(9, CardColor.GREEN)]],
              Card(5, CardColor.RED))

        await handle_call_uno({}, host, room_manager=rm)

        assert host.player.has_called_uno
        assert host.websocket.last_state()["you"]["called_uno"] is True

    @pytest.mark.asyncio
    async def test_outside_room_ignored(self):
        rm = RoomManager()
        ctx = make_ctx()

        await handle_call_uno({}, ctx, room_manager=rm)

        assert ctx.websocket.messages == []


class TestDispatchTable:

    def test_every_intent_registered(self):
        assert set(HANDLERS) == {
            "create_room", "join_room", "leave_room", "add_bot", "kick_player",
            "start_game", "call_uno", "draw_card", "play_card", "keep_card",
        }
