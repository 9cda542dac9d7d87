import os

HOST = os.getenv("HOST", "0.0.0.0")
WS_PORT = int(os.getenv("WS_PORT", 3001))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Excludes the look-alikes 0/O and 1/I
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
ROOM_CODE_MAX_ATTEMPTS = int(os.getenv("ROOM_CODE_MAX_ATTEMPTS", 100))

SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", 30))

# 0 means no cap on viewers per room
MAX_VIEWERS_PER_ROOM = int(os.getenv("MAX_VIEWERS_PER_ROOM", 0))

ROOM_NOT_FOUND = "Room not found"
ROOM_FULL = "Room is full"
ROOM_CAPACITY_EXHAUSTED = "Room capacity exhausted"

# Upper bound on a single outbound send before the payload is dropped
SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))
