import json
import time
from typing import Optional

from pydantic import ValidationError

from backend import JoinResult, RoomRegistry, room_registry
from connection import Connection
from constants import (
    CLOSE_POLICY_VIOLATION,
    DEFAULT_DISPLAY_NAME,
    DISPLAY_NAME_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
    ROOM_ID_MAX_LENGTH,
)
from logging_config import get_logger
from schemas.ws import ChatMessageOut, ErrorOut, JoinedOut, JoinIn, MsgIn, PongOut, SystemOut

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class RelayEngine:
    """Per-connection join/msg/close handling on top of a RoomRegistry.

    A connection is unjoined until a join is accepted, joined while
    `connection.room` is set, and closed once `on_close` has run.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    async def handle_frame(self, connection: Connection, raw: str):
        """Dispatch one inbound text frame. Anything unrecognized is dropped."""
        if connection.closed or connection.departed:
            # Frames that were already in flight when the connection was evicted
            logger.debug(f"Dropping frame for closed connection {connection.id}")
            return
        connection.mark_alive()

        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.debug(f"Dropping non-JSON frame from connection {connection.id}")
            return
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.debug(f"Dropping frame without a type from connection {connection.id}")
            return

        message_type = message["type"]
        try:
            if message_type == "join":
                join_in = JoinIn(**message)
                await self.join(connection, join_in.room, join_in.name)
            elif message_type == "msg":
                msg_in = MsgIn(**message)
                await self.send(connection, msg_in.text)
            elif message_type == "ping":
                await connection.send_json(PongOut().model_dump())
            elif message_type == "pong":
                # Already marked alive above
                pass
            else:
                logger.debug(f"Ignoring unknown message type {message_type!r} from connection {connection.id}")
        except ValidationError as e:
            logger.debug(f"Dropping invalid {message_type!r} frame from connection {connection.id}: {e}")

    async def join(self, connection: Connection, room: str, name: Optional[str] = None):
        room_id = (room or "")[:ROOM_ID_MAX_LENGTH]
        display_name = (name or "")[:DISPLAY_NAME_MAX_LENGTH] or DEFAULT_DISPLAY_NAME

        if not room_id:
            logger.info(f"Connection {connection.id} sent a join with an empty room id")
            await connection.send_json(ErrorOut(reason="invalid_room").model_dump())
            return

        if connection.room and connection.room != room_id:
            await self._leave_current_room(connection)

        result = self.registry.join(room_id, connection)
        if result is JoinResult.FULL:
            await connection.send_json(ErrorOut(reason="room_full").model_dump())
            await connection.close(code=CLOSE_POLICY_VIOLATION, reason="Room full")
            return

        connection.room = room_id
        connection.name = display_name
        logger.info(f"Connection {connection.id} ({display_name}) joined room {room_id}")

        await connection.send_json(JoinedOut(room=room_id, you=display_name).model_dump())
        await self.registry.broadcast(
            room_id,
            SystemOut(text=f"{display_name} joined the room").model_dump(),
            exclude=connection,
        )

    async def send(self, connection: Connection, text: str):
        if not connection.room:
            logger.debug(f"Dropping msg from unjoined connection {connection.id}")
            return

        text = (text or "").strip()
        if not text or len(text) > MESSAGE_MAX_LENGTH:
            logger.debug(f"Dropping msg of length {len(text)} from connection {connection.id}")
            return

        room_id = connection.room
        payload = ChatMessageOut(name=connection.name, text=text, ts=_now_ms()).model_dump()
        # Echo first so the sender renders its own message the same way the peer does
        try:
            await connection.send_json(payload)
        except Exception as e:
            logger.warning(f"Error echoing message to connection {connection.id} in room {room_id}: {e}")
        await self.registry.broadcast(room_id, payload, exclude=connection)
        self.registry.touch(room_id)

    async def on_close(self, connection: Connection):
        """Release the connection's room slot. Runs at most once per connection."""
        if connection.departed:
            return
        connection.departed = True

        if connection.room:
            await self._leave_current_room(connection)
        logger.info(f"Connection {connection.id} closed")

    async def _leave_current_room(self, connection: Connection):
        room_id, name = connection.room, connection.name
        connection.room = None

        still_occupied = self.registry.leave(room_id, connection)
        logger.info(f"Connection {connection.id} ({name}) left room {room_id}")
        if still_occupied:
            await self.registry.broadcast(room_id, SystemOut(text=f"{name} left the room").model_dump())


relay = RelayEngine(room_registry)
