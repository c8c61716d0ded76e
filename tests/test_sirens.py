from conftest import at, build_blocklist, build_session, facebook, instagram, youtube

from tied_siren.core import (
    blocked_package_names,
    blocking_schedule,
    merge_sirens,
    platform_sirens,
    resolve_targets,
    targeted_apps,
)
from tied_siren.schema import AndroidSiren, Sirens


def test_merging_nothing_gives_empty_sirens():
    assert merge_sirens([]) == Sirens()


def test_merge_keeps_the_first_android_app_per_package_name():
    renamed_facebook = AndroidSiren(
        package_name=facebook.package_name, app_name="Facebook Lite", icon="other.png"
    )

    merged = merge_sirens([Sirens(android=[facebook]), Sirens(android=[renamed_facebook])])

    assert merged.android == [facebook]


def test_merge_deduplicates_every_category_in_input_order():
    first = Sirens(
        android=[facebook, instagram],
        linux=["firefox", "steam"],
        websites=["reddit.com"],
        keywords=["news"],
    )
    second = Sirens(
        android=[instagram, youtube],
        linux=["steam", "discord"],
        websites=["reddit.com", "x.com"],
        keywords=["news", "sports"],
        macos=["Safari"],
    )

    merged = merge_sirens([first, second])

    assert merged.android == [facebook, instagram, youtube]
    assert merged.linux == ["firefox", "steam", "discord"]
    assert merged.websites == ["reddit.com", "x.com"]
    assert merged.keywords == ["news", "sports"]
    assert merged.macos == ["Safari"]
    assert merged.windows == []


def test_merge_is_idempotent():
    sirens = Sirens(android=[facebook, facebook], ios=["tiktok", "tiktok"])

    assert merge_sirens([sirens]) == merge_sirens([sirens, sirens])
    assert merge_sirens([sirens]).ios == ["tiktok"]


def test_targets_come_from_active_sessions_only():
    social = build_blocklist(sirens=Sirens(android=[facebook], websites=["facebook.com"]))
    video = build_blocklist(sirens=Sirens(android=[youtube]))
    sessions = [
        build_session(started_at="14:00", ended_at="15:00", blocklist_ids=[social.id]),
        build_session(started_at="08:00", ended_at="09:00", blocklist_ids=[video.id]),
    ]

    targets = resolve_targets(at(14, 30), sessions, [social, video])

    assert targets.android == [facebook]
    assert targets.websites == ["facebook.com"]


def test_no_targets_when_no_session_is_active():
    blocklist = build_blocklist(sirens=Sirens(android=[facebook]))
    session = build_session(started_at="08:00", ended_at="09:00", blocklist_ids=[blocklist.id])

    assert targeted_apps(at(10), [session], [blocklist]) == []


def test_targets_are_deduplicated_across_sessions():
    first = build_blocklist(sirens=Sirens(android=[facebook, instagram]))
    second = build_blocklist(sirens=Sirens(android=[instagram, youtube]))
    sessions = [
        build_session(started_at="14:00", ended_at="15:00", blocklist_ids=[first.id]),
        build_session(started_at="14:00", ended_at="15:00", blocklist_ids=[second.id]),
        build_session(started_at="13:00", ended_at="16:00", blocklist_ids=[first.id, second.id]),
    ]

    apps = targeted_apps(at(14, 30), sessions, [first, second])

    assert apps == [facebook, instagram, youtube]
    assert len({a.package_name for a in apps}) == len(apps)


def test_unknown_blocklist_ids_are_skipped():
    existing = build_blocklist(sirens=Sirens(android=[facebook]))
    session = build_session(
        started_at="14:00", ended_at="15:00", blocklist_ids=["missing", existing.id]
    )

    assert targeted_apps(at(14, 30), [session], [existing]) == [facebook]


def test_blocked_package_names_in_overnight_session():
    blocklist = build_blocklist(sirens=Sirens(android=[facebook, youtube]))
    session = build_session(started_at="22:00", ended_at="06:00", blocklist_ids=[blocklist.id])

    assert blocked_package_names(at(1), [session], [blocklist]) == [
        facebook.package_name,
        youtube.package_name,
    ]
    assert blocked_package_names(at(12), [session], [blocklist]) == []


def test_blocking_schedule_lists_each_active_session():
    blocklist = build_blocklist(sirens=Sirens(linux=["steam", "steam"]))
    active = build_session(
        id="active", started_at="14:00", ended_at="15:00", blocklist_ids=[blocklist.id]
    )
    later = build_session(id="later", started_at="18:00", ended_at="19:00")

    schedule = blocking_schedule(at(14, 30), [active, later], [blocklist])

    assert len(schedule) == 1
    assert schedule[0].id == "active"
    assert schedule[0].start_time == "2024-01-01T14:00:00"
    assert schedule[0].end_time == "2024-01-01T15:00:00"
    assert schedule[0].sirens.linux == ["steam"]


def test_platform_sirens():
    sirens = Sirens(linux=["steam"], macos=["Steam"], windows=["steam.exe"])

    assert platform_sirens(sirens, "linux") == ["steam"]
    assert platform_sirens(sirens, "darwin") == ["Steam"]
    assert platform_sirens(sirens, "win32") == ["steam.exe"]
    assert platform_sirens(sirens, "emscripten") == []
