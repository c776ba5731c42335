import os

VERSION = "1.4.0"

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Comma separated list, "*" allows everything
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

# Background sweeps
PURGE_INTERVAL_SECONDS = int(os.getenv("PURGE_INTERVAL_SECONDS", 600))
CPU_SAMPLE_SECONDS = int(os.getenv("CPU_SAMPLE_SECONDS", 2))

# A room with no traffic for this long is purged
ROOM_INACTIVITY_SECONDS = int(os.getenv("ROOM_INACTIVITY_SECONDS", 3600))

MAX_EVENT_COUNT = int(os.getenv("MAX_EVENT_COUNT", 1000000))
MAX_PLAYER_NAME_LENGTH = int(os.getenv("MAX_PLAYER_NAME_LENGTH", 16))
