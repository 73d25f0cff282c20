"""Environment configuration."""

import os

from dotenv import load_dotenv

load_dotenv()

RELAY_HOST = os.getenv("SNAKEDUEL_HOST", "0.0.0.0")
RELAY_PORT = int(os.getenv("SNAKEDUEL_PORT", "8765"))
RELAY_URL = os.getenv("SNAKEDUEL_RELAY_URL", f"ws://localhost:{RELAY_PORT}/ws")
DATABASE_PATH = os.getenv("SNAKEDUEL_DB", "snakeduel.db")
LOG_LEVEL = os.getenv("SNAKEDUEL_LOG_LEVEL", "INFO")
