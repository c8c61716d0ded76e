from datetime import datetime, time
from typing import Protocol

HHMM_FORMAT = "%H:%M"


def parse_hhmm(time_str: str) -> time:
    """Parses a zero-padded 24-hour 'HH:mm' string like '08:30' or '22:00'."""
    if len(time_str) != 5 or time_str[2] != ":":
        raise ValueError(f"Expected HH:mm, got: {time_str!r}")
    try:
        return datetime.strptime(time_str, HHMM_FORMAT).time()
    except ValueError:
        raise ValueError(f"Expected HH:mm, got: {time_str!r}") from None


def to_hhmm(moment: datetime) -> str:
    return moment.strftime(HHMM_FORMAT)


def recover_date(time_str: str, now: datetime) -> datetime:
    """
    Anchors an 'HH:mm' string to the calendar day of `now`.

    Keeps the timezone of `now` and zeroes seconds, so a boundary that has
    already passed today comes back in the past rather than tomorrow.
    """
    parsed = parse_hhmm(time_str)
    return now.replace(
        hour=parsed.hour, minute=parsed.minute, second=0, microsecond=0
    )


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from `start` to `end`; negative when `end` is earlier."""
    return int((end - start).total_seconds())


def format_duration_seconds(seconds: int) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 30m' or '45m').
    """
    minutes = seconds // 60
    if minutes == 0 and seconds > 0:
        return "<1m"
    elif minutes <= 60:
        return f"{minutes}m"
    else:
        hours = minutes // 60
        remaining_minutes = minutes % 60
        return f"{hours}h {remaining_minutes}m"


class Clock(Protocol):
    """Source of the current instant and of 'HH:mm' conversions."""

    def now(self) -> datetime: ...

    def to_hhmm(self, moment: datetime) -> str: ...

    def recover_date(self, time_str: str) -> datetime: ...

    def seconds_between(self, start: datetime, end: datetime) -> int: ...


class SystemClock:
    """Local wall clock."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def to_hhmm(self, moment: datetime) -> str:
        return to_hhmm(moment)

    def recover_date(self, time_str: str) -> datetime:
        return recover_date(time_str, self.now())

    def seconds_between(self, start: datetime, end: datetime) -> int:
        return seconds_between(start, end)
