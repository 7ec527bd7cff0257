import logging
import os

# --- Config ---
SERVER_NAME = os.environ.get("SERVER_NAME", "app")
DATABASE_URL = os.environ.get(
    "DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/postgres"
)
DB_ECHO = os.environ.get("DB_ECHO", "false").lower() == "true"
API_KEY = os.environ.get("API_KEY", "supersecretkey")

# Sandbox root for stored blobs; downloads never resolve outside of it
STORAGE_DIRECTORY = os.environ.get("STORAGE_DIRECTORY", "./storage")

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",")
    if o.strip()
]
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
