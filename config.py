import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = Path(__file__).parent
CONTENT_DIR = Path(os.getenv("CONTENT_DIR", str(BASE_DIR / "content" / "blog")))
TEMPLATES_DIR = BASE_DIR / "templates"

# Site metadata
SITE_TITLE = "KI-Stammtisch Köln"

# Database
MONGODB_URI = os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "ki_stammtisch")
MONGODB_TIMEOUT_MS = int(os.getenv("MONGODB_TIMEOUT_MS", "3000"))

# Auth / session
AUTH_SECRET = os.getenv("AUTH_SECRET", "dev-secret-change-me")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
SESSION_COOKIE = "session"
SESSION_EXPIRES_MIN = 60 * 24 * 7  # 7 days

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
