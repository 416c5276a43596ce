"""
Configuration constants for the application.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Load environment variables from .env file if it exists
load_dotenv(dotenv_path=BASE_DIR / ".env")


def _is_production() -> bool:
    return bool(
        os.getenv("RAILWAY_ENVIRONMENT") or
        os.getenv("ENVIRONMENT", "").lower() == "production"
    )


IS_PRODUCTION = _is_production()

# Tokens are valid for a week, matching how long the front-end keeps a session.
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

STATIC_DIR = Path(os.getenv("STATIC_DIR", str(BASE_DIR / "public")))


# ======================
# GAME RULES
# ======================

CARD_COMPLETION_POINTS = 10
DAILY_CHALLENGE_BONUS = 50
DAILY_CHALLENGE_TARGET = 10

LEVEL_XP_BASE = 100
LEVEL_XP_GROWTH = 1.5

STREAK_BONUS_MULTIPLIER = 2
STREAK_BONUS_EVERY = 5

# sessionCards values that count as a session milestone
SESSION_MILESTONES = (5, 10, 20, 30, 50)


# ======================
# DEFAULT CATALOGUE
# ======================
# Served when the database holds no cards for the default subject.

DEFAULT_SUBJECT_ID = 1
DEFAULT_SUBJECT_CODE = "1"
DEFAULT_SUBJECT_NAME = "AS Physics"

DEFAULT_TOPICS = {
    "mechanics": 51,
    "materials": 74,
    "electricity": 35,
    "waves": 31,
    "photon": 36,
}
