from datetime import datetime
from uuid import uuid4

import pytest

from tied_siren.errors import BlocklistNotFoundError, SessionNotFoundError
from tied_siren.manager import BlockSessionManager
from tied_siren.schema import AndroidSiren, Blocklist, BlockSession, NotificationTrigger, Sirens
from tied_siren.utils.time import recover_date, seconds_between, to_hhmm

facebook = AndroidSiren(package_name="com.facebook.katana", app_name="Facebook")
instagram = AndroidSiren(package_name="com.instagram.android", app_name="Instagram")
youtube = AndroidSiren(package_name="com.google.android.youtube", app_name="YouTube")


def at(hours: int, minutes: int = 0, seconds: int = 0) -> datetime:
    return datetime(2024, 1, 1, hours, minutes, seconds)


def build_session(**overrides) -> BlockSession:
    data = {
        "id": str(uuid4()),
        "name": "Focus",
        "started_at": "09:00",
        "ended_at": "11:00",
        "blocklist_ids": [],
        "start_notification_id": "start-handle",
        "end_notification_id": "end-handle",
    }
    data.update(overrides)
    return BlockSession(**data)


def build_blocklist(**overrides) -> Blocklist:
    data = {"id": str(uuid4()), "name": "Distractions", "sirens": Sirens()}
    data.update(overrides)
    return Blocklist(**data)


class StubClock:
    def __init__(self, now: datetime | None = None):
        self.current = now or at(12)

    def set(self, hours: int, minutes: int = 0, seconds: int = 0):
        self.current = at(hours, minutes, seconds)

    def now(self) -> datetime:
        return self.current

    def to_hhmm(self, moment: datetime) -> str:
        return to_hhmm(moment)

    def recover_date(self, time_str: str) -> datetime:
        return recover_date(time_str, self.current)

    def seconds_between(self, start: datetime, end: datetime) -> int:
        return seconds_between(start, end)


class FakeNotificationService:
    def __init__(self, events: list):
        self.events = events
        self.scheduled: list[dict] = []
        self.cancelled: list[str] = []

    def schedule_local(self, title: str, body: str, trigger: NotificationTrigger) -> str:
        handle = f"notification-{len(self.scheduled) + 1}"
        self.scheduled.append(
            {"handle": handle, "title": title, "body": body, "trigger": trigger}
        )
        self.events.append(("schedule", handle))
        return handle

    def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)
        self.events.append(("cancel", handle))


class FakeEnforcer:
    def __init__(self, error: Exception | None = None):
        self.blocked: list[str] = []
        self.error = error

    def block(self, package_name: str) -> None:
        if self.error:
            raise self.error
        self.blocked.append(package_name)

    def block_many(self, process_names) -> set[str]:
        names = list(process_names)
        self.blocked.extend(names)
        return set(names)


class InMemoryBlockSessionRepository:
    def __init__(self, events: list):
        self.events = events
        self.entities: dict[str, BlockSession] = {}

    def find_all(self) -> list[BlockSession]:
        return list(self.entities.values())

    def find_by_id(self, session_id: str) -> BlockSession:
        if session_id not in self.entities:
            raise SessionNotFoundError(session_id)
        return self.entities[session_id]

    def create(self, session: BlockSession) -> BlockSession:
        self.entities[session.id] = session
        self.events.append(("create", session.id))
        return session

    def update(self, session_id: str, changes: dict) -> BlockSession:
        current = self.find_by_id(session_id)
        updated = BlockSession.model_validate({**current.model_dump(), **changes})
        self.entities[session_id] = updated
        self.events.append(("update", session_id))
        return updated

    def delete(self, session_id: str) -> None:
        self.find_by_id(session_id)
        del self.entities[session_id]
        self.events.append(("delete", session_id))


class InMemoryBlocklistRepository:
    def __init__(self, blocklists: list[Blocklist] | None = None):
        self.entities = {b.id: b for b in blocklists or []}

    def find_all(self) -> list[Blocklist]:
        return list(self.entities.values())

    def find_by_id(self, blocklist_id: str) -> Blocklist:
        if blocklist_id not in self.entities:
            raise BlocklistNotFoundError(blocklist_id)
        return self.entities[blocklist_id]

    def create(self, blocklist: Blocklist) -> Blocklist:
        self.entities[blocklist.id] = blocklist
        return blocklist

    def delete(self, blocklist_id: str) -> None:
        self.find_by_id(blocklist_id)
        del self.entities[blocklist_id]


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def clock() -> StubClock:
    return StubClock()


@pytest.fixture
def notifications(events) -> FakeNotificationService:
    return FakeNotificationService(events)


@pytest.fixture
def session_repository(events) -> InMemoryBlockSessionRepository:
    return InMemoryBlockSessionRepository(events)


@pytest.fixture
def blocklist_repository() -> InMemoryBlocklistRepository:
    return InMemoryBlocklistRepository()


@pytest.fixture
def manager(session_repository, notifications, clock) -> BlockSessionManager:
    return BlockSessionManager(session_repository, notifications, clock)
