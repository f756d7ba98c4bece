"""Core application components package."""

from .cache import ResponseCache, response_cache
from .config import settings
from .database import get_db
from .deps import CronAuthorized, DbSession, verify_cron_secret
from .version import get_version

__all__ = [
    "settings",
    "get_db",
    "CronAuthorized",
    "DbSession",
    "verify_cron_secret",
    "ResponseCache",
    "response_cache",
    "get_version",
]
