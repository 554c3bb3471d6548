from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from connection import Connection
from constants import HEARTBEAT_INTERVAL_SECONDS, LOG_FILE, LOG_LEVEL
from heartbeat import LivenessMonitor
from logging_config import get_logger, setup_logging
from relay import relay
from routers.rooms import rooms_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

liveness_monitor = LivenessMonitor(interval=HEARTBEAT_INTERVAL_SECONDS, on_evict=relay.on_close)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting PairChat relay")
    liveness_monitor.start()
    yield
    logger.info("Shutting down PairChat relay")
    await liveness_monitor.stop()


app = FastAPI(title="PairChat relay", lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

logger.info("FastAPI application initialized")


@app.get("/", response_class=PlainTextResponse)
async def index():
    return "PairChat relay is running."


@app.websocket("/")
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Relay socket. Clients send {"type": "join"} first, then {"type": "msg"} frames."""
    await websocket.accept()
    connection = Connection(websocket)
    liveness_monitor.track(connection)
    client_host = websocket.client.host if websocket.client else "unknown"
    logger.info(f"WebSocket connection {connection.id} accepted from {client_host}")

    message_count = 0
    try:
        while not connection.closed:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(code=message.get("code", 1000), reason=message.get("reason"))

            data = message.get("text")
            if data is None and message.get("bytes") is not None:
                data = message["bytes"].decode("utf-8", errors="replace")
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection.id}")
            await relay.handle_frame(connection, data)
    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected for connection {connection.id} (code {e.code})")
    except Exception as e:
        logger.error(f"Error in WebSocket loop for connection {connection.id}: {e}", exc_info=True)
    finally:
        liveness_monitor.untrack(connection)
        await relay.on_close(connection)
        await connection.close()
