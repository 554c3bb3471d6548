from typing import List, Optional

from fastapi import APIRouter, Query, Request

from backend import room_registry
from logging_config import get_logger
from schemas.rooms import RoomScope

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/rooms", tags=["rooms"])


@rooms_router.get("", response_model=List[str])
async def list_rooms(
    request: Request,
    scope: Optional[str] = Query("active", description="'active' (default) or 'all' rooms seen since startup"),
):
    """
    List room ids, most recently active first.

    - active: rooms with at least one connected member
    - all: every room joined since the server started, including empty ones
    """
    resolved_scope = RoomScope.parse(scope)
    room_ids = room_registry.snapshot(resolved_scope)
    client_host = request.client.host if request.client else "unknown"
    logger.debug(f"Room list request from {client_host}: scope={resolved_scope.value}, {len(room_ids)} rooms")
    return room_ids
