"""
Lobby browser API router.

Lists rooms created with the `public` setting that are still open for
joining (not started, not full).
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

# Set during app initialization
_room_manager = None


def set_room_manager(room_manager) -> None:
    global _room_manager
    _room_manager = room_manager


# =============================================================================
# Response Models
# =============================================================================


class PublicRoomResponse(BaseModel):
    """One joinable public room."""
    id: str
    host: str
    player_count: int
    max_players: int
    stacking: bool
    force_play: bool
    draw_to_play: bool


class PublicRoomsResponse(BaseModel):
    """Public lobby listing."""
    rooms: list[PublicRoomResponse]


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=PublicRoomsResponse)
async def list_public_rooms():
    """List public lobbies that can still be joined."""
    if _room_manager is None:
        return PublicRoomsResponse(rooms=[])

    return PublicRoomsResponse(rooms=[
        PublicRoomResponse(
            id=room.code,
            host=room.host.username,
            player_count=len(room.players),
            max_players=room.settings.max_players,
            stacking=room.settings.stacking,
            force_play=room.settings.force_play,
            draw_to_play=room.settings.draw_to_play,
        )
        for room in _room_manager.public_rooms()
    ])
