"""The single "time to leave" reminder.

At most one reminder exists at a time. Its alert lives with a Notifier and
its record with a KeyValueStore; the coordinator keeps the two in step and
repairs them on read when they drift.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from pydantic import ValidationError

from .models import JourneyOption, Reminder, ReminderRequest
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(minutes=15)
REMINDER_KEY = "train_reminder"


class Notifier(Protocol):
    """Schedules one-shot alerts."""

    async def schedule(self, fire_at: datetime, request: ReminderRequest) -> str:
        """Arm an alert and return its id."""
        ...

    async def cancel(self, notification_id: str) -> None:
        """Remove an alert; unknown ids are ignored."""
        ...


def format_reminder_message(request: ReminderRequest) -> tuple[str, str]:
    """Return the (title, body) shown when a reminder fires."""
    title = "Time to leave for your train!"
    train = f"Train #{request.train_number}" if request.train_number else "Your train"
    body = (
        f"{train} departs at {request.departure_time.strftime('%H:%M')} "
        f"from {request.departure_station}. "
        f"Leave now ({request.leave_time.strftime('%H:%M')})!"
    )
    return title, body


class AsyncioNotifier:
    """Notifier that fires inside the running event loop.

    When an alert fires it is logged and handed to ``on_fire``, if given.
    """

    def __init__(
        self,
        on_fire: Callable[[str, str], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.on_fire = on_fire
        self.clock = clock
        self._handles: dict[str, asyncio.TimerHandle] = {}

    async def schedule(self, fire_at: datetime, request: ReminderRequest) -> str:
        notification_id = uuid.uuid4().hex
        delay = max(0.0, (fire_at - self.clock()).total_seconds())
        loop = asyncio.get_running_loop()
        self._handles[notification_id] = loop.call_later(
            delay, self._fire, notification_id, request
        )
        logger.info("Scheduled notification %s for %s", notification_id, fire_at)
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        handle = self._handles.pop(notification_id, None)
        if handle is not None:
            handle.cancel()
            logger.info("Cancelled notification %s", notification_id)

    def pending(self) -> list[str]:
        return list(self._handles)

    def _fire(self, notification_id: str, request: ReminderRequest) -> None:
        self._handles.pop(notification_id, None)
        title, body = format_reminder_message(request)
        logger.warning("%s %s", title, body)
        if self.on_fire is not None:
            self.on_fire(title, body)


class ReminderCoordinator:
    """Owns the single active reminder slot.

    All operations hold one lock, so a reader never sees a reminder that is
    half scheduled or half cancelled.
    """

    def __init__(
        self,
        notifier: Notifier,
        store: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.notifier = notifier
        self.store = store
        self.clock = clock
        self._lock = asyncio.Lock()

    async def schedule(self, option: JourneyOption) -> Reminder | None:
        """Replace any active reminder with one for ``option``.

        Returns None when the alert would already be in the past.
        """
        return await self.schedule_request(ReminderRequest.for_option(option))

    async def schedule_request(self, request: ReminderRequest) -> Reminder | None:
        async with self._lock:
            try:
                await self._clear()
            except Exception:
                # The old record is gone either way; a stale alert may still fire.
                logger.warning("Could not cancel the previous notification", exc_info=True)

            fire_at = request.leave_time - REMINDER_LEAD
            if fire_at <= self.clock():
                logger.info(
                    "Too late to remind: leave time %s is less than %s away",
                    request.leave_time.strftime("%H:%M"),
                    REMINDER_LEAD,
                )
                return None

            notification_id = await self.notifier.schedule(fire_at, request)
            reminder = Reminder(
                **request.model_dump(),
                notification_id=notification_id,
                notification_time=fire_at,
            )
            await self.store.set(REMINDER_KEY, reminder.model_dump(mode="json"))
            logger.info(
                "Reminder set for %s train at %s (alert %s)",
                reminder.departure_station,
                reminder.departure_time.strftime("%H:%M"),
                fire_at.strftime("%H:%M"),
            )
            return reminder

    async def cancel_active(self) -> None:
        """Cancel the active reminder, if any."""
        async with self._lock:
            await self._clear()

    async def get_active(self) -> Reminder | None:
        """Return the active reminder, dropping it once its train has left."""
        async with self._lock:
            stored = await self.store.get(REMINDER_KEY)
            if stored is None:
                return None

            try:
                reminder = Reminder.model_validate(stored)
            except ValidationError:
                logger.warning("Discarding unreadable stored reminder: %s", stored)
                await self.store.delete(REMINDER_KEY)
                return None

            if reminder.departure_time <= self.clock():
                logger.info("Reminder expired (train departed %s), clearing", reminder.departure_time)
                await self._clear(reminder)
                return None

            return reminder

    async def _clear(self, reminder: Reminder | None = None) -> None:
        if reminder is None:
            stored = await self.store.get(REMINDER_KEY)
            if stored is None:
                return
            try:
                reminder = Reminder.model_validate(stored)
            except ValidationError:
                reminder = None

        try:
            if reminder is not None:
                await self.notifier.cancel(reminder.notification_id)
        finally:
            await self.store.delete(REMINDER_KEY)
