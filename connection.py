import asyncio
import uuid
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from constants import DEFAULT_DISPLAY_NAME, CLOSE_GOING_AWAY
from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """One accepted WebSocket plus the relay's bookkeeping for it.

    `room` is a back-reference only; the room registry owns membership.
    """

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.websocket = websocket
        self.id = connection_id or str(uuid.uuid4())
        self.room: Optional[str] = None
        self.name: str = DEFAULT_DISPLAY_NAME
        self.is_alive = True
        self.closed = False
        # Set when a send raised; the peer is gone even if no disconnect arrived yet
        self.transport_failed = False
        # Set once the relay has run the departure for this connection
        self.departed = False

    def __repr__(self):
        return f"<Connection {self.id[:8]} room={self.room!r} name={self.name!r}>"

    @property
    def is_open(self) -> bool:
        if self.closed or self.transport_failed:
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, payload: dict):
        try:
            await self.websocket.send_json(payload)
        except Exception:
            self.transport_failed = True
            raise

    async def ping(self):
        """Liveness check.

        WebSocket ping/pong control frames are handled by the server
        (uvicorn's ws_ping_interval / ws_ping_timeout), which drops the
        transport when the peer stops answering. The check passes as long
        as that transport is still up.
        """
        if not self.is_open:
            raise ConnectionError(f"transport for connection {self.id} is not open")
        self.mark_alive()

    def mark_alive(self):
        self.is_alive = True

    async def _close_transport(self, code: int, reason: str):
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing WebSocket for connection {self.id}: {e}")

    async def close(self, code: int = 1000, reason: str = ""):
        if self.closed:
            return
        self.closed = True
        await self._close_transport(code, reason)

    def terminate(self) -> Optional[asyncio.Task]:
        """Drop the connection without waiting for the close handshake.

        The connection counts as closed immediately; the close frame goes
        out on a background task.
        """
        if self.closed:
            return None
        self.closed = True
        logger.info(f"Terminating unresponsive connection {self.id}")
        return asyncio.create_task(
            self._close_transport(CLOSE_GOING_AWAY, "Heartbeat timeout"),
            name=f"terminate-{self.id[:8]}",
        )
