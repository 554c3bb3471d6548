import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

HEARTBEAT_INTERVAL_SECONDS = float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", 30))

# 1:1 rooms
MAX_ROOM_MEMBERS = 2
ROOM_ID_MAX_LENGTH = 64
DISPLAY_NAME_MAX_LENGTH = 32
MESSAGE_MAX_LENGTH = 2000
DEFAULT_DISPLAY_NAME = "Anonymous"

CLOSE_POLICY_VIOLATION = 1008
CLOSE_GOING_AWAY = 1001
