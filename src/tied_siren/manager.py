from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from loguru import logger
from pydantic import BaseModel

from tied_siren.core import is_active, locked_blocklist_ids, should_block, window_bounds
from tied_siren.errors import BlocklistLockedError
from tied_siren.repository import BlockSessionRepository, BlocklistRepository
from tied_siren.schema import (
    BlockSession,
    BlockSessionCreate,
    BlockSessionUpdate,
    NotificationTrigger,
)
from tied_siren.settings import settings
from tied_siren.utils.notifications import NotificationService
from tied_siren.utils.processes import Enforcer
from tied_siren.utils.time import Clock

CrudOperation = Literal["create", "update", "delete", "duplicate"]


class StatusChangeResult(BaseModel):
    session_id: str
    notification_sent: bool
    notification_type: Literal["start", "end"]
    reason: Literal["already-sent", "rate-limited"] | None = None


@dataclass
class NotifiedBoundaries:
    start: bool = False
    end: bool = False


class SessionStatusNotifier:
    """
    Sends "session started/ended" notifications as sessions cross their boundaries.

    Remembers which boundary was last announced per session so the same one
    is never announced twice in a row, and drops an identical message sent
    again within `rate_limit_seconds`. All of that state lives on the
    instance; `reset()` forgets it.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        clock: Clock,
        rate_limit_seconds: float | None = None,
        window_seconds: float | None = None,
    ):
        self.notification_service = notification_service
        self.clock = clock
        self.rate_limit_seconds = (
            settings.status_rate_limit_seconds
            if rate_limit_seconds is None
            else rate_limit_seconds
        )
        self.window_seconds = (
            settings.status_window_seconds if window_seconds is None else window_seconds
        )
        self.reset()

    def reset(self) -> None:
        self._notified: dict[str, NotifiedBoundaries] = {}
        self._last_message: str | None = None
        self._last_sent_at: datetime | None = None

    def notify(self, session_id: str, session_name: str, is_start: bool) -> StatusChangeResult:
        notification_type = "start" if is_start else "end"
        status = self._notified.get(session_id, NotifiedBoundaries())

        if status.start if is_start else status.end:
            logger.debug(f"Already notified {notification_type} of {session_name}")
            return StatusChangeResult(
                session_id=session_id,
                notification_sent=False,
                notification_type=notification_type,
                reason="already-sent",
            )

        template = (
            settings.start_notification_body if is_start else settings.end_notification_body
        )
        message = template.format(name=session_name)
        now = self.clock.now()
        if (
            self._last_message == message
            and self._last_sent_at is not None
            and (now - self._last_sent_at).total_seconds() < self.rate_limit_seconds
        ):
            logger.debug(f"Rate-limited notification: {message}")
            return StatusChangeResult(
                session_id=session_id,
                notification_sent=False,
                notification_type=notification_type,
                reason="rate-limited",
            )

        self.notification_service.schedule_local(
            settings.notification_title,
            message,
            NotificationTrigger(seconds=settings.status_notification_delay_seconds),
        )
        self._last_message = message
        self._last_sent_at = now
        # Announcing one boundary re-arms the other for the next cycle.
        self._notified[session_id] = NotifiedBoundaries(start=is_start, end=not is_start)
        logger.info(f"Sent status notification: {message}")

        return StatusChangeResult(
            session_id=session_id,
            notification_sent=True,
            notification_type=notification_type,
        )

    def check_sessions(self, sessions: list[BlockSession]) -> list[StatusChangeResult]:
        """Notifies for sessions that started or ended within the last few seconds."""
        now = self.clock.now()
        results = []
        for session in sessions:
            active = is_active(now, session)
            since_start = (now - self.clock.recover_date(session.started_at)).total_seconds()
            since_end = (now - self.clock.recover_date(session.ended_at)).total_seconds()

            if active and 0 <= since_start < self.window_seconds:
                results.append(self.notify(session.id, session.name, is_start=True))
            if not active and 0 <= since_end < self.window_seconds:
                results.append(self.notify(session.id, session.name, is_start=False))
        return results

    def notify_for_crud(
        self,
        old_session: BlockSession | None,
        new_session: BlockSession | None,
        operation: CrudOperation,
    ) -> StatusChangeResult | None:
        now = self.clock.now()
        was_active = old_session is not None and is_active(now, old_session)
        is_now_active = new_session is not None and is_active(now, new_session)
        logger.debug(
            f"[{operation.upper()}] was active: {was_active}, is now active: {is_now_active}"
        )

        if operation in ("create", "duplicate") and new_session is not None:
            if is_now_active:
                return self.notify(new_session.id, new_session.name, is_start=True)
        elif operation == "update" and old_session is not None and new_session is not None:
            if not was_active and is_now_active:
                return self.notify(new_session.id, new_session.name, is_start=True)
            if was_active and not is_now_active:
                return self.notify(new_session.id, new_session.name, is_start=False)
        elif operation == "delete" and old_session is not None and was_active:
            return self.notify(old_session.id, old_session.name, is_start=False)
        return None


class BlockSessionManager:
    """
    Session usecases that keep the start/end notifications in sync.

    Each session owns two scheduled notifications, one per boundary. Whenever
    a boundary changes, its old notification is cancelled before the new one
    is scheduled.
    """

    def __init__(
        self,
        repository: BlockSessionRepository,
        notification_service: NotificationService,
        clock: Clock,
        status_notifier: SessionStatusNotifier | None = None,
    ):
        self.repository = repository
        self.notification_service = notification_service
        self.clock = clock
        self.status_notifier = status_notifier

    def create_session(self, payload: BlockSessionCreate) -> BlockSession:
        session = BlockSession(
            **payload.model_dump(),
            start_notification_id=self._schedule_start(
                payload.name, payload.started_at, payload.ended_at
            ),
            end_notification_id=self._schedule_end(
                payload.name, payload.started_at, payload.ended_at
            ),
        )
        created = self.repository.create(session)
        logger.info(f"Created block session {created.name} ({created.id})")
        self._report(None, created, "create")
        return created

    def update_session(self, payload: BlockSessionUpdate) -> BlockSession:
        current = self.repository.find_by_id(payload.id)
        changes = payload.changes()
        name = changes.get("name", current.name)
        started_at = changes.get("started_at", current.started_at)
        ended_at = changes.get("ended_at", current.ended_at)

        if "started_at" in changes:
            self.notification_service.cancel(current.start_notification_id)
            changes["start_notification_id"] = self._schedule_start(name, started_at, ended_at)
        if "ended_at" in changes:
            self.notification_service.cancel(current.end_notification_id)
            changes["end_notification_id"] = self._schedule_end(name, started_at, ended_at)

        updated = self.repository.update(payload.id, changes)
        logger.info(f"Updated block session {updated.id}: {sorted(changes)}")
        self._report(current, updated, "update")
        return updated

    def rename_session(self, session_id: str, name: str) -> BlockSession:
        renamed = self.repository.update(session_id, {"name": name})
        logger.info(f"Renamed block session {session_id} to {name}")
        return renamed

    def duplicate_session(self, session_id: str, name: str) -> BlockSession:
        source = self.repository.find_by_id(session_id)
        copy = BlockSession(
            **source.model_dump(
                exclude={"id", "name", "start_notification_id", "end_notification_id"}
            ),
            name=name,
            start_notification_id=self._schedule_start(name, source.started_at, source.ended_at),
            end_notification_id=self._schedule_end(name, source.started_at, source.ended_at),
        )
        created = self.repository.create(copy)
        logger.info(f"Duplicated block session {session_id} as {created.id}")
        self._report(None, created, "duplicate")
        return created

    def delete_session(self, session_id: str) -> None:
        session = self.repository.find_by_id(session_id)
        self.notification_service.cancel(session.start_notification_id)
        self.notification_service.cancel(session.end_notification_id)
        self.repository.delete(session_id)
        logger.info(f"Deleted block session {session.name} ({session_id})")
        self._report(session, None, "delete")

    def _triggers_for(self, started_at: str, ended_at: str) -> tuple[int, int]:
        now = self.clock.now()
        start, end = window_bounds(now, started_at, ended_at)
        return (
            self.clock.seconds_between(now, start),
            self.clock.seconds_between(now, end),
        )

    def _schedule_start(self, name: str, started_at: str, ended_at: str) -> str:
        seconds, _ = self._triggers_for(started_at, ended_at)
        return self.notification_service.schedule_local(
            settings.notification_title,
            settings.start_notification_body.format(name=name),
            NotificationTrigger(seconds=seconds),
        )

    def _schedule_end(self, name: str, started_at: str, ended_at: str) -> str:
        _, seconds = self._triggers_for(started_at, ended_at)
        return self.notification_service.schedule_local(
            settings.notification_title,
            settings.end_notification_body.format(name=name),
            NotificationTrigger(seconds=seconds),
        )

    def _report(
        self,
        old_session: BlockSession | None,
        new_session: BlockSession | None,
        operation: CrudOperation,
    ):
        if self.status_notifier is not None:
            self.status_notifier.notify_for_crud(old_session, new_session, operation)


def remove_blocklist(
    blocklist_id: str,
    session_repository: BlockSessionRepository,
    blocklist_repository: BlocklistRepository,
    clock: Clock,
) -> None:
    """Deletes a blocklist unless an active or scheduled session still uses it."""
    blocklist_repository.find_by_id(blocklist_id)
    if blocklist_id in locked_blocklist_ids(clock.now(), session_repository.find_all()):
        raise BlocklistLockedError(blocklist_id)
    blocklist_repository.delete(blocklist_id)
    logger.info(f"Removed blocklist {blocklist_id}")


class BlockDecision(BaseModel):
    package_name: str
    blocked: bool


class LaunchedAppBlocker:
    """Decides whether a freshly launched app is a siren and blocks it if so."""

    def __init__(
        self,
        session_repository: BlockSessionRepository,
        blocklist_repository: BlocklistRepository,
        enforcer: Enforcer,
        clock: Clock,
    ):
        self.session_repository = session_repository
        self.blocklist_repository = blocklist_repository
        self.enforcer = enforcer
        self.clock = clock

    def handle_launched_app(self, package_name: str) -> BlockDecision:
        blocked = should_block(
            self.clock.now(),
            package_name,
            self.session_repository.find_all(),
            self.blocklist_repository.find_all(),
        )
        if blocked:
            logger.info(f"Siren detected, blocking {package_name}")
            self.enforcer.block(package_name)
        else:
            logger.debug(f"Not a siren, ignoring {package_name}")
        return BlockDecision(package_name=package_name, blocked=blocked)
