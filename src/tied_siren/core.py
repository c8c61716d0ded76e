"""
Session time-window evaluation and siren targeting.

Everything here is pure: functions only read their arguments, take `now`
explicitly and never raise for well-formed sessions.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from tied_siren.schema import (
    AndroidSiren,
    Blocklist,
    BlockingSchedule,
    BlockSession,
    Sirens,
)
from tied_siren.utils.time import recover_date, to_hhmm

STRING_CATEGORIES = ("windows", "macos", "ios", "linux", "websites", "keywords")


def is_overnight(session: BlockSession) -> bool:
    # Zero-padded HH:mm strings order the same way the times do.
    return session.started_at > session.ended_at


def window_bounds(now: datetime, started_at: str, ended_at: str) -> tuple[datetime, datetime]:
    """
    Concrete start and end instants of the window that `now` belongs to.

    Same-day windows are anchored to today, even once they are over. An
    overnight window still running after midnight started yesterday;
    otherwise it ends tomorrow.
    """
    start = recover_date(started_at, now)
    end = recover_date(ended_at, now)
    if started_at > ended_at:
        if to_hhmm(now) < ended_at:
            start -= timedelta(days=1)
        else:
            end += timedelta(days=1)
    return start, end


def is_active(now: datetime, session: BlockSession) -> bool:
    """
    Whether `session` is running at `now`.

    Same-day windows are half-open: a session starting exactly now is
    active, one ending exactly now is not. A start equal to the end is a
    full-day session and is always active.
    """
    if session.started_at == session.ended_at:
        return True

    if is_overnight(session):
        now_hhmm = to_hhmm(now)
        return now_hhmm >= session.started_at or now_hhmm < session.ended_at

    start, end = window_bounds(now, session.started_at, session.ended_at)
    return start <= now < end


def partition_sessions(
    now: datetime, sessions: Iterable[BlockSession]
) -> tuple[list[BlockSession], list[BlockSession]]:
    """Splits sessions into (active, scheduled); each lands in exactly one."""
    active: list[BlockSession] = []
    scheduled: list[BlockSession] = []
    for session in sessions:
        (active if is_active(now, session) else scheduled).append(session)
    return active, scheduled


def active_sessions(now: datetime, sessions: Iterable[BlockSession]) -> list[BlockSession]:
    return [s for s in sessions if is_active(now, s)]


def scheduled_sessions(
    now: datetime, sessions: Iterable[BlockSession]
) -> list[BlockSession]:
    return [s for s in sessions if not is_active(now, s)]


def has_active_session(now: datetime, sessions: Iterable[BlockSession]) -> bool:
    return any(is_active(now, s) for s in sessions)


def sessions_using_blocklist(
    sessions: Iterable[BlockSession], blocklist_id: str
) -> list[BlockSession]:
    return [s for s in sessions if blocklist_id in s.blocklist_ids]


def active_sessions_using_blocklist(
    now: datetime, sessions: Iterable[BlockSession], blocklist_id: str
) -> list[BlockSession]:
    return sessions_using_blocklist(active_sessions(now, sessions), blocklist_id)


def locked_blocklist_ids(now: datetime, sessions: Sequence[BlockSession]) -> list[str]:
    """
    Ids of blocklists used by active or scheduled sessions, first seen first.

    Callers must refuse to delete these.
    """
    active, scheduled = partition_sessions(now, sessions)
    locked: dict[str, None] = {}
    for session in active + scheduled:
        for blocklist_id in session.blocklist_ids:
            locked.setdefault(blocklist_id)
    return list(locked)


def merge_sirens(sirens_list: Iterable[Sirens]) -> Sirens:
    """
    Concatenates every category across `sirens_list` and de-duplicates it.

    Android apps are keyed by package name, everything else by value. The
    first occurrence wins.
    """
    android: dict[str, AndroidSiren] = {}
    strings: dict[str, dict[str, None]] = {name: {} for name in STRING_CATEGORIES}

    for sirens in sirens_list:
        for app in sirens.android:
            android.setdefault(app.package_name, app)
        for name in STRING_CATEGORIES:
            seen = strings[name]
            for value in getattr(sirens, name):
                seen.setdefault(value)

    return Sirens(
        android=list(android.values()),
        **{name: list(values) for name, values in strings.items()},
    )


def resolve_blocklists(
    session: BlockSession, blocklists_by_id: dict[str, Blocklist]
) -> list[Blocklist]:
    """Looks up a session's blocklists, silently skipping unknown ids."""
    return [
        blocklists_by_id[blocklist_id]
        for blocklist_id in session.blocklist_ids
        if blocklist_id in blocklists_by_id
    ]


def resolve_targets(
    now: datetime,
    sessions: Iterable[BlockSession],
    blocklists: Iterable[Blocklist],
) -> Sirens:
    """The de-duplicated sirens every session active at `now` enforces."""
    by_id = {blocklist.id: blocklist for blocklist in blocklists}
    return merge_sirens(
        blocklist.sirens
        for session in active_sessions(now, sessions)
        for blocklist in resolve_blocklists(session, by_id)
    )


def targeted_apps(
    now: datetime,
    sessions: Iterable[BlockSession],
    blocklists: Iterable[Blocklist],
) -> list[AndroidSiren]:
    return resolve_targets(now, sessions, blocklists).android


def blocked_package_names(
    now: datetime,
    sessions: Iterable[BlockSession],
    blocklists: Iterable[Blocklist],
) -> list[str]:
    return [app.package_name for app in targeted_apps(now, sessions, blocklists)]


def should_block(
    now: datetime,
    package_name: str,
    sessions: Iterable[BlockSession],
    blocklists: Iterable[Blocklist],
) -> bool:
    return any(
        app.package_name == package_name
        for app in targeted_apps(now, sessions, blocklists)
    )


def blocking_schedule(
    now: datetime,
    sessions: Iterable[BlockSession],
    blocklists: Iterable[Blocklist],
) -> list[BlockingSchedule]:
    """One entry per active session, with its current window and its merged sirens."""
    by_id = {blocklist.id: blocklist for blocklist in blocklists}
    schedules = []
    for session in active_sessions(now, sessions):
        start, end = window_bounds(now, session.started_at, session.ended_at)
        schedules.append(
            BlockingSchedule(
                id=session.id,
                start_time=start.isoformat(),
                end_time=end.isoformat(),
                sirens=merge_sirens(bl.sirens for bl in resolve_blocklists(session, by_id)),
            )
        )
    return schedules


def platform_sirens(sirens: Sirens, platform: str) -> list[str]:
    """Process identifiers to enforce on a desktop `sys.platform`."""
    if platform.startswith("linux"):
        return list(sirens.linux)
    if platform == "darwin":
        return list(sirens.macos)
    if platform in ("win32", "cygwin"):
        return list(sirens.windows)
    return []
