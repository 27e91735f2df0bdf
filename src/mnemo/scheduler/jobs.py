"""Reminder checker using pure asyncio.

Every ``check_interval`` seconds, due reminders are handed to the chat layer's
``notify`` coroutine and then dropped from their scope file.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mnemo.config import ReminderConfig
    from mnemo.scheduler.reminders import Reminder, ReminderStore

logger = logging.getLogger(__name__)

Notify = Callable[["Reminder"], Awaitable[None]]


class ReminderScheduler:
    """Simple asyncio-based loop that fires due reminders."""

    def __init__(self, store: ReminderStore, notify: Notify, config: ReminderConfig) -> None:
        self._store = store
        self._notify = notify
        self._interval = config.check_interval
        self._max_fire = config.max_fire_per_tick

    async def start(self, shutdown_event: asyncio.Event) -> None:
        """Run the checker until shutdown_event is set."""
        logger.info(
            "Reminder scheduler started (interval=%ds, max %d per tick)",
            self._interval,
            self._max_fire,
        )

        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self._interval)
                break  # shutdown requested
            except asyncio.TimeoutError:
                pass  # interval elapsed

            try:
                await self.check_once()
            except Exception as e:
                logger.error("Reminder check error: %s", e)

        logger.info("Reminder scheduler stopped.")

    async def check_once(self, now: dt.datetime | None = None) -> int:
        """Fire up to ``max_fire_per_tick`` due reminders. Returns the count."""
        due = self._store.due(now, limit=self._max_fire)
        if not due:
            return 0

        fired: dict[str, list[str]] = defaultdict(list)
        for reminder in due:
            try:
                await self._notify(reminder)
            except Exception as e:
                # Undeliverable reminders are dropped, not retried forever.
                logger.error("Failed to send reminder %s: %s", reminder.id, e)
            fired[reminder.scope_id].append(reminder.id)

        for scope_id, ids in fired.items():
            await self._store.remove(scope_id, ids)

        logger.info("Fired %d reminders", len(due))
        return len(due)
