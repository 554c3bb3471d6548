import uvicorn
from constants import HOST, PORT, LOG_LEVEL, LOG_FILE, HEARTBEAT_INTERVAL_SECONDS
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    logger.info(f"Starting PairChat relay on {HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        log_level=LOG_LEVEL.lower(),
        # Protocol-level ping/pong; a peer that misses a pong loses its transport
        ws_ping_interval=HEARTBEAT_INTERVAL_SECONDS,
        ws_ping_timeout=HEARTBEAT_INTERVAL_SECONDS,
    )


if __name__ == "__main__":
    main()
