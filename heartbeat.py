import asyncio
from typing import Awaitable, Callable, Optional, Set

from connection import Connection
from constants import HEARTBEAT_INTERVAL_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


class LivenessMonitor:
    """Periodically checks every open connection and evicts the dead ones.

    Each tick a connection either answered since the last check (its
    `is_alive` flag was set by inbound traffic or by a check that found the
    transport still up) and gets checked again, or it didn't and is
    terminated. A dead peer is therefore reclaimed within two intervals.
    """

    def __init__(
        self,
        interval: float = HEARTBEAT_INTERVAL_SECONDS,
        on_evict: Optional[Callable[[Connection], Awaitable[None]]] = None,
    ):
        self.interval = interval
        self.on_evict = on_evict
        self.connections: Set[Connection] = set()
        self._task: Optional[asyncio.Task] = None
        # Close handshakes still in flight for evicted connections
        self._closing: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def track(self, connection: Connection):
        self.connections.add(connection)

    def untrack(self, connection: Connection):
        self.connections.discard(connection)

    async def tick(self):
        for connection in list(self.connections):
            if connection.closed:
                self.untrack(connection)
                continue

            if not connection.is_alive:
                await self._evict(connection)
                continue

            connection.is_alive = False
            try:
                await connection.ping()
            except Exception as e:
                logger.debug(f"Liveness check on connection {connection.id} failed: {e}")

    async def _evict(self, connection: Connection):
        self.untrack(connection)
        # Marks the connection closed now; the close frame is sent in the background
        task = connection.terminate()
        if task is not None:
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

        if self.on_evict:
            try:
                await self.on_evict(connection)
            except Exception as e:
                logger.error(f"Error evicting connection {connection.id}: {e}", exc_info=True)

    async def _run(self):
        logger.info(f"Liveness monitor started (interval {self.interval}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Error in liveness monitor tick: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Liveness monitor cancelled")
            raise

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="liveness_monitor")

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        pending = list(self._closing)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._closing.clear()
        logger.info("Liveness monitor stopped")
