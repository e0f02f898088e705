"""
Profile refresh policy and scheduling.

DESIGN DECISION: The cached profile is re-fetched lazily.
- At cold start, only if the cache is older than 30 minutes
- When the app returns to the foreground, only if older than 10 minutes,
  and after a short delay so quick app switches don't hit the store
- On demand, always

Scheduling is debounced: a new request replaces any pending one.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from finvoice.config import AppSettings
from finvoice.models.expense import UserProfile
from finvoice.models.session import RefreshTrigger


# Profile fields a refresh may overwrite
REFRESHABLE_FIELDS = ("name", "phone", "language", "currency", "theme")


class RefreshPolicy(BaseModel):
    """When a cached profile counts as stale."""

    cold_start_ttl: timedelta = timedelta(minutes=30)
    foreground_ttl: timedelta = timedelta(minutes=10)
    foreground_delay_seconds: float = 3.0

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "RefreshPolicy":
        return cls(
            cold_start_ttl=timedelta(minutes=settings.profile_refresh_cold_start_minutes),
            foreground_ttl=timedelta(minutes=settings.profile_refresh_foreground_minutes),
            foreground_delay_seconds=settings.foreground_refresh_delay_seconds,
        )

    def is_due(
        self,
        last_refreshed_at: Optional[datetime],
        trigger: RefreshTrigger,
        now: datetime,
    ) -> bool:
        """Whether a refresh for this trigger should hit the store."""
        if trigger == RefreshTrigger.MANUAL or last_refreshed_at is None:
            return True
        ttl = (
            self.cold_start_ttl if trigger == RefreshTrigger.COLD_START
            else self.foreground_ttl
        )
        return now - last_refreshed_at > ttl

    def delay_for(self, trigger: RefreshTrigger) -> float:
        if trigger == RefreshTrigger.FOREGROUND:
            return self.foreground_delay_seconds
        return 0.0


def merge_profile(previous: Optional[UserProfile], fetched: dict) -> UserProfile:
    """
    Overlay refreshed values on the cached profile.

    Empty values in the fetched row keep the previous value. The id
    never changes.
    """
    if previous is None:
        return UserProfile.model_validate(fetched)

    updates = {}
    for field in REFRESHABLE_FIELDS:
        value = fetched.get(field)
        if value not in (None, ""):
            updates[field] = value
    if fetched.get("updated_at"):
        updates["updated_at"] = fetched["updated_at"]

    return UserProfile.model_validate({**previous.model_dump(), **updates})


class RefreshScheduler:
    """
    Runs at most one pending refresh.

    schedule() cancels whatever is pending and starts a new delayed task.
    Must be called from a running event loop.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(
        self,
        refresh: Callable[[], Awaitable[object]],
        delay: float = 0.0,
    ) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(refresh, delay))
        return self._task

    async def _run(self, refresh: Callable[[], Awaitable[object]], delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        await refresh()

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending refresh, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            # Only a superseded refresh is expected here
            if not task.cancelled():
                raise
