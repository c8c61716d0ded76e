import json
import subprocess
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field

from tied_siren.schema import NotificationTrigger
from tied_siren.settings import settings
from tied_siren.utils.files import atomic_write_json, file_lock
from tied_siren.utils.time import Clock, SystemClock


class NotificationService(Protocol):
    def schedule_local(self, title: str, body: str, trigger: NotificationTrigger) -> str:
        """Schedules a local notification and returns a handle for `cancel`."""
        ...

    def cancel(self, handle: str) -> None: ...


def send_notification(summary: str, body: str):
    """Sends a desktop notification using notify-send."""
    logger.info(f"Sending notification: {summary} | {body}")
    cmd = ["notify-send", summary, body, "-a", settings.app_name]
    try:
        subprocess.run(cmd, check=False)
    except FileNotFoundError:
        logger.error("notify-send not found. Install libnotify-bin.")


class ScheduledNotification(BaseModel):
    handle: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    body: str
    fire_at: datetime
    repeat_seconds: int | None = None


class FileNotificationQueue:
    """
    Local notifications persisted to a JSON file.

    Any process can schedule or cancel; the daemon delivers whatever is due
    on each tick. Triggers of zero or fewer seconds are due immediately.
    Every read-modify-write of the file holds an exclusive file lock.
    """

    def __init__(
        self,
        path: Path | None = None,
        clock: Clock | None = None,
        dedup_seconds: float | None = None,
    ):
        self.path = path or settings.notifications_file
        self.clock = clock or SystemClock()
        self.dedup_seconds = (
            settings.status_rate_limit_seconds if dedup_seconds is None else dedup_seconds
        )
        self._last_sent: dict[tuple[str, str], datetime] = {}

    def _read(self) -> list[ScheduledNotification]:
        if not self.path.exists():
            return []
        try:
            with open(self.path) as f:
                return [ScheduledNotification.model_validate(item) for item in json.load(f)]
        except ValueError as e:
            logger.error(f"Discarding unreadable notification queue {self.path}: {e}")
            return []

    def _write(self, pending: list[ScheduledNotification]):
        atomic_write_json(self.path, [n.model_dump(mode="json") for n in pending])

    def pending(self) -> list[ScheduledNotification]:
        with file_lock(self.path):
            return self._read()

    def schedule_local(self, title: str, body: str, trigger: NotificationTrigger) -> str:
        notification = ScheduledNotification(
            title=title,
            body=body,
            fire_at=self.clock.now() + timedelta(seconds=trigger.seconds),
            repeat_seconds=trigger.seconds if trigger.repeats and trigger.seconds > 0 else None,
        )
        with file_lock(self.path):
            self._write([*self._read(), notification])
        logger.debug(
            f"Scheduled notification {notification.handle} in {trigger.seconds}s: {body}"
        )
        return notification.handle

    def cancel(self, handle: str) -> None:
        with file_lock(self.path):
            pending = self._read()
            remaining = [n for n in pending if n.handle != handle]
            if len(remaining) == len(pending):
                logger.debug(f"No pending notification for handle {handle}")
                return
            self._write(remaining)
        logger.debug(f"Cancelled notification {handle}")

    def deliver_due(self) -> list[ScheduledNotification]:
        """
        Sends every due notification and returns the ones actually sent.

        Due entries are taken off the queue before sending; repeating ones go
        back in at their next slot. The same title and body delivered again
        within `dedup_seconds` is dropped, so a session boundary announced
        both by its own notification and by the status check shows once.
        """
        now = self.clock.now()
        with file_lock(self.path):
            pending = self._read()
            due = [n for n in pending if n.fire_at <= now]
            if not due:
                return []
            remaining = [n for n in pending if n.fire_at > now]
            for notification in due:
                if notification.repeat_seconds:
                    step = timedelta(seconds=notification.repeat_seconds)
                    fire_at = notification.fire_at
                    while fire_at <= now:
                        fire_at += step
                    remaining.append(notification.model_copy(update={"fire_at": fire_at}))
            self._write(remaining)

        delivered = []
        for notification in due:
            key = (notification.title, notification.body)
            last_sent = self._last_sent.get(key)
            if last_sent is not None and (now - last_sent).total_seconds() < self.dedup_seconds:
                logger.debug(f"Dropping duplicate notification: {notification.body}")
                continue
            send_notification(notification.title, notification.body)
            self._last_sent[key] = now
            delivered.append(notification)
        return delivered
