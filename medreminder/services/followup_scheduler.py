"""Cancellable follow-up reminders.

After a reminder goes out, a one-shot timer per (uid, item_id) pushes a
follow-up event unless the item is marked done first. APScheduler owns the
timers; the handle map decides whether a firing timer is still wanted.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from medreminder.logging_config import get_logger
from medreminder.schemas.push import EventKind, NotificationEvent
from medreminder.services.connection_registry import ConnectionRegistry

logger = get_logger(__name__)

DEFAULT_FOLLOW_UP_DELAY = timedelta(minutes=60)

FollowUpKey = tuple[str, str]


def _job_id(uid: str, item_id: str) -> str:
    return f"followup:{uid}:{item_id}"


class FollowUpScheduler:
    """One-shot follow-up timers keyed by (uid, item_id).

    Args:
        registry: Where fired follow-ups are announced.
        delay: Default time between scheduling and firing.
        scheduler: APScheduler instance; a private AsyncIOScheduler if omitted.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        delay: timedelta = DEFAULT_FOLLOW_UP_DELAY,
        scheduler: AsyncIOScheduler | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self._registry = registry
        self._delay = delay
        self._scheduler = scheduler or AsyncIOScheduler(timezone=UTC)
        self._clock = clock
        self._handles: dict[FollowUpKey, Job] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Follow-up scheduler started")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Follow-up scheduler stopped")
        with self._lock:
            self._handles.clear()

    def schedule(
        self,
        uid: str,
        item_id: str,
        delay: timedelta | None = None,
        payload: dict[str, Any] | None = None,
    ) -> datetime:
        """Arm a follow-up; an existing timer for the same key is replaced.

        Returns:
            When the follow-up will fire.
        """
        key = (uid, item_id)
        run_at = self._clock() + (delay if delay is not None else self._delay)

        with self._lock:
            previous = self._handles.pop(key, None)
            if previous is not None:
                self._remove_job(previous)

            job = self._scheduler.add_job(
                self._fire,
                trigger=DateTrigger(run_date=run_at),
                args=[uid, item_id, payload or {}],
                id=_job_id(uid, item_id),
                name=f"Follow-up reminder {item_id}",
                replace_existing=True,
                misfire_grace_time=None,
            )
            self._handles[key] = job

        logger.info(
            "Follow-up scheduled",
            uid=uid,
            item_id=item_id,
            run_at=run_at.isoformat(),
        )
        return run_at

    def cancel(self, uid: str, item_id: str) -> bool:
        """Cancel a pending follow-up. Returns whether one was pending."""
        with self._lock:
            job = self._handles.pop((uid, item_id), None)
            if job is None:
                return False
            self._remove_job(job)

        logger.info("Follow-up cancelled", uid=uid, item_id=item_id)
        return True

    def cancel_all(self, uid: str) -> int:
        """Cancel every pending follow-up of ``uid``."""
        with self._lock:
            keys = [key for key in self._handles if key[0] == uid]
            for key in keys:
                self._remove_job(self._handles.pop(key))

        if keys:
            logger.info("Follow-ups cancelled", uid=uid, count=len(keys))
        return len(keys)

    def is_pending(self, uid: str, item_id: str) -> bool:
        with self._lock:
            return (uid, item_id) in self._handles

    def _remove_job(self, job: Job) -> None:
        try:
            job.remove()
        except JobLookupError:
            # Already fired and dropped by the scheduler
            pass

    async def _fire(self, uid: str, item_id: str, payload: dict[str, Any]) -> None:
        with self._lock:
            if self._handles.pop((uid, item_id), None) is None:
                return

        delivered = self._registry.notify(
            uid,
            NotificationEvent(
                kind=EventKind.REMINDER_FOLLOW_UP,
                uid=uid,
                payload={"item_id": item_id, **payload},
            ),
        )
        logger.info(
            "Follow-up fired",
            uid=uid,
            item_id=item_id,
            delivered=delivered,
        )
