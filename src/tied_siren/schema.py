from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from tied_siren.utils.time import parse_hhmm


def _new_id() -> str:
    return str(uuid4())


class AndroidSiren(BaseModel):
    """An Android app that can be blocked, keyed by its package name."""

    package_name: str
    app_name: str
    icon: str = ""


class Sirens(BaseModel):
    """The seven categories of things a blocklist can block."""

    android: list[AndroidSiren] = Field(default_factory=list)
    windows: list[str] = Field(default_factory=list)
    macos: list[str] = Field(default_factory=list)
    ios: list[str] = Field(default_factory=list)
    linux: list[str] = Field(default_factory=list)
    websites: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class Blocklist(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    sirens: Sirens = Field(default_factory=Sirens)


class Device(BaseModel):
    id: str
    type: str
    name: str


class BlockingCondition(str, Enum):
    TIME = "time"
    LOCATION = "location"


def _check_hhmm(value: str) -> str:
    parse_hhmm(value)
    return value


class BlockSessionCreate(BaseModel):
    """Payload for creating a block session."""

    name: str
    blocklist_ids: list[str] = Field(default_factory=list)
    devices: list[Device] = Field(default_factory=list)
    started_at: str
    ended_at: str
    blocking_conditions: list[BlockingCondition] = Field(
        default_factory=lambda: [BlockingCondition.TIME]
    )

    check_times = field_validator("started_at", "ended_at")(_check_hhmm)


class BlockSession(BlockSessionCreate):
    """A recurring daily window during which its blocklists are enforced."""

    id: str = Field(default_factory=_new_id)
    start_notification_id: str
    end_notification_id: str


class BlockSessionUpdate(BaseModel):
    """
    Partial update of a block session.

    Only fields explicitly passed are applied; see `changes()`.
    """

    id: str
    name: str | None = None
    blocklist_ids: list[str] | None = None
    devices: list[Device] | None = None
    started_at: str | None = None
    ended_at: str | None = None
    blocking_conditions: list[BlockingCondition] | None = None

    @field_validator("started_at", "ended_at")
    @classmethod
    def check_times(cls, value: str | None) -> str | None:
        if value is not None:
            _check_hhmm(value)
        return value

    def changes(self) -> dict:
        """Returns the explicitly set, non-null fields, without the id."""
        return self.model_dump(exclude_unset=True, exclude_none=True, exclude={"id"})


class NotificationTrigger(BaseModel):
    seconds: int
    repeats: bool = False


class BlockingSchedule(BaseModel):
    """An active session's window and the sirens it enforces."""

    id: str
    start_time: str
    end_time: str
    sirens: Sirens
