"""
SalesDesk - Background Sweeper

Periodic maintenance, run hourly by default:
1. Delete expired sessions
2. Reset passwords past their expiry
3. Reset passwords of users inactive for INACTIVITY_RESET_DAYS

Each job is isolated: a failing job is logged and the remaining jobs
still run. The loop itself runs as an asyncio task started in the
application lifespan and is stopped by cancelling that task.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from starlette.concurrency import run_in_threadpool

from salesdesk.auth.reset import PasswordResetService
from salesdesk.auth.sessions import SessionStore
from salesdesk.config import settings


logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Per-job outcome of one sweep."""
    expired_sessions: int = 0
    expired_passwords: int = 0
    inactive_users: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class Sweeper:
    """
    Runs the maintenance jobs once, or forever on an interval.

    Usage:
        sweeper = Sweeper(sessions, resets)
        report = sweeper.run_once()
        task = asyncio.create_task(sweeper.run_forever())
    """

    def __init__(
        self,
        sessions: SessionStore,
        resets: PasswordResetService,
        interval_seconds: Optional[float] = None,
    ):
        self._sessions = sessions
        self._resets = resets
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.SWEEP_INTERVAL_SECONDS
        )

    def run_once(self) -> SweepReport:
        report = SweepReport()
        jobs = (
            ("expired_sessions", self._sessions.sweep_expired),
            ("expired_passwords", self._resets.auto_reset_expired_passwords),
            ("inactive_users", self._resets.auto_reset_inactive_users),
        )
        for name, job in jobs:
            try:
                setattr(report, name, job())
            except Exception as e:
                logger.error("Sweep job %s failed", name, exc_info=True)
                report.errors[name] = str(e)

        logger.info(
            "Sweep complete: %d expired session(s), %d expired password(s), %d inactive user(s)",
            report.expired_sessions, report.expired_passwords, report.inactive_users,
        )
        return report

    async def run_forever(self) -> None:
        """
        Sweep every interval_seconds until cancelled.

        Jobs run in the threadpool so blocking database and bcrypt work
        stays off the event loop. CancelledError from task.cancel()
        propagates out of asyncio.sleep.
        """
        logger.info("Sweeper started (interval %ss)", self.interval_seconds)
        while True:
            await asyncio.sleep(self.interval_seconds)
            await run_in_threadpool(self.run_once)
