"""
SalesDesk - Dashboard Statistics

Aggregate counts for the admin dashboard. Results are cached in-process
for STATS_CACHE_TTL_SECONDS because the dashboard polls them and each
read touches three tables.
"""

import logging
import time
from datetime import datetime, time as dt_time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy import func
from sqlmodel import select

from salesdesk.audit.activity import ActivityLog
from salesdesk.audit.models import ActivityType
from salesdesk.auth.database import SessionFactory
from salesdesk.auth.models import User
from salesdesk.auth.sessions import SessionStore
from salesdesk.config import settings
from salesdesk.time_utils import utcnow


logger = logging.getLogger(__name__)


class TTLCache:
    """
    Thread-safe key/value cache with per-entry expiry.

    Usage:
        cache = TTLCache(ttl_seconds=300)
        value = cache.get_or_set("dashboard", compute)
    """

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic() + self.ttl_seconds, value)

    def get_or_set(self, key: str, compute: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            value = compute()
            self.set(key, value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def close(self) -> None:
        self.invalidate()


class StatsService:
    """Cached dashboard statistics."""

    CACHE_KEY = "dashboard"

    def __init__(
        self,
        session_factory: SessionFactory,
        sessions: SessionStore,
        activity: ActivityLog,
        cache: Optional[TTLCache] = None,
    ):
        self._session_factory = session_factory
        self._sessions = sessions
        self._activity = activity
        self._cache = cache or TTLCache(settings.STATS_CACHE_TTL_SECONDS)

    def dashboard(self) -> Dict[str, int]:
        return self._cache.get_or_set(self.CACHE_KEY, self._compute)

    def refresh(self) -> Dict[str, int]:
        self._cache.invalidate(self.CACHE_KEY)
        return self.dashboard()

    def close(self) -> None:
        self._cache.close()

    def _compute(self) -> Dict[str, int]:
        midnight = datetime.combine(utcnow().date(), dt_time.min)

        with self._session_factory() as db:
            total_users = db.exec(select(func.count(User.id))).one()
            enabled_users = db.exec(
                select(func.count(User.id)).where(User.enabled == True)  # noqa: E712
            ).one()

        stats = {
            "total_users": total_users,
            "enabled_users": enabled_users,
            "active_sessions": self._sessions.count_active(),
            "logins_today": self._activity.count(ActivityType.LOGIN, since=midnight),
            "failed_logins_today": self._activity.count(ActivityType.FAILED_LOGIN, since=midnight),
        }
        logger.debug("Dashboard statistics recomputed: %s", stats)
        return stats
