"""Application-wide configuration loaded from environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()

# Redis
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

# ── Stats Collector ──────────────────────────────────────────────────────

# Per-domain query timeout (seconds). A slow store degrades to zeros.
DOMAIN_QUERY_TIMEOUT: float = float(os.getenv("DOMAIN_QUERY_TIMEOUT", "2.0"))

# Time entries / transactions newer than this count as "recent activity"
RECENT_ACTIVITY_HOURS: int = int(os.getenv("RECENT_ACTIVITY_HOURS", "48"))

# ── Balance ──────────────────────────────────────────────────────────────

BALANCE_DEADBAND: int = int(os.getenv("BALANCE_DEADBAND", "5"))
STRONG_TILT_THRESHOLD: int = int(os.getenv("STRONG_TILT_THRESHOLD", "25"))
MINIMUM_SPHERE_VALUE: int = int(os.getenv("MINIMUM_SPHERE_VALUE", "25"))

# ── History ──────────────────────────────────────────────────────────────

HISTORY_PREFIX: str = "lifeindex:history:"
BALANCE_STATUS_PREFIX: str = "lifeindex:balance_status:"
HISTORY_MONTH_DAYS: int = int(os.getenv("HISTORY_MONTH_DAYS", "30"))
HISTORY_YEAR_MONTHS: int = int(os.getenv("HISTORY_YEAR_MONTHS", "12"))
BALANCE_STATUS_MAX_ENTRIES: int = int(os.getenv("BALANCE_STATUS_MAX_ENTRIES", "200"))

# ── Trend ────────────────────────────────────────────────────────────────

TREND_WINDOW: int = int(os.getenv("TREND_WINDOW", "5"))
TREND_THRESHOLD: float = float(os.getenv("TREND_THRESHOLD", "3.0"))

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
