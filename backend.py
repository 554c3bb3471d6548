import asyncio
import enum
import time
from typing import Callable, Dict, List, Optional, Set

from connection import Connection
from constants import MAX_ROOM_MEMBERS
from logging_config import get_logger
from schemas.rooms import RoomScope

logger = get_logger(__name__)


class JoinResult(enum.Enum):
    ACCEPTED = "accepted"
    FULL = "full"


class RoomRegistry:
    """In-process store of live rooms, the rooms ever seen, and their activity.

    All mutation happens on the event loop thread and completes before any
    await, so there is no locking here.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_members: int = MAX_ROOM_MEMBERS):
        self.clock = clock
        self.max_members = max_members
        # Live rooms: {room_id: {connection, ...}}, never holds an empty set
        self.rooms: Dict[str, Set[Connection]] = {}
        # Every room id joined since startup, in first-seen order. Never pruned.
        self.history: Dict[str, None] = {}
        self.last_activity: Dict[str, float] = {}
        logger.info(f"Initializing RoomRegistry (max {max_members} members per room)")

    def touch(self, room_id: str):
        self.last_activity[room_id] = self.clock()

    def members(self, room_id: str) -> Set[Connection]:
        return set(self.rooms.get(room_id, ()))

    def is_active(self, room_id: str) -> bool:
        return bool(self.rooms.get(room_id))

    def join(self, room_id: str, connection: Connection) -> JoinResult:
        members = self.rooms.get(room_id, set())
        if connection not in members and len(members) >= self.max_members:
            logger.info(f"Room {room_id} is full ({len(members)}/{self.max_members}), rejecting {connection.id}")
            return JoinResult.FULL

        members.add(connection)
        self.rooms[room_id] = members
        self.history.setdefault(room_id, None)
        self.touch(room_id)
        logger.debug(f"Connection {connection.id} added to room {room_id} ({len(members)}/{self.max_members})")
        return JoinResult.ACCEPTED

    def leave(self, room_id: str, connection: Connection) -> bool:
        """Remove a connection from a room. Returns True if the room is still occupied."""
        members = self.rooms.get(room_id)
        if not members or connection not in members:
            return bool(members)

        members.discard(connection)
        if not members:
            del self.rooms[room_id]
            logger.info(f"Room {room_id} is empty, removed from active rooms")
            return False

        self.touch(room_id)
        logger.debug(f"Connection {connection.id} removed from room {room_id} ({len(members)} remaining)")
        return True

    def snapshot(self, scope: RoomScope = RoomScope.ACTIVE) -> List[str]:
        """Room ids for the given scope, most recently active first."""
        if scope == RoomScope.ALL:
            room_ids = list(self.history)
        else:
            room_ids = [room_id for room_id, members in self.rooms.items() if members]
        # sorted() is stable, so ties keep first-seen order
        return sorted(room_ids, key=lambda room_id: self.last_activity.get(room_id, 0), reverse=True)

    async def broadcast(self, room_id: str, payload: dict, exclude: Optional[Connection] = None) -> int:
        """Send payload to every open member except `exclude`. Returns the number delivered."""
        recipients = [
            conn for conn in self.rooms.get(room_id, ())
            if conn is not exclude and conn.is_open
        ]
        if not recipients:
            return 0

        results = await asyncio.gather(
            *(conn.send_json(payload) for conn in recipients),
            return_exceptions=True,
        )

        delivered = 0
        for conn, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(f"Error sending to connection {conn.id} in room {room_id}: {result}")
            else:
                delivered += 1
        logger.debug(f"Broadcast {payload.get('type', 'unknown')} to {delivered}/{len(recipients)} connections in room {room_id}")
        return delivered

    def reset(self):
        self.rooms.clear()
        self.history.clear()
        self.last_activity.clear()


room_registry = RoomRegistry()
