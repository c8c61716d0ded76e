import pytest
from typer.testing import CliRunner

from tied_siren.cli import app
from tied_siren.repository import JsonBlocklistRepository, JsonBlockSessionRepository
from tied_siren.settings import settings
from tied_siren.utils.notifications import FileNotificationQueue

runner = CliRunner()


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    monkeypatch.setattr(settings, "log_dir", tmp_path / "logs")
    return tmp_path


def test_add_session_schedules_both_notifications(data_dir):
    result = runner.invoke(app, ["add", "Evening", "18:00", "19:00"])

    assert result.exit_code == 0, result.output
    [session] = JsonBlockSessionRepository(data_dir / "sessions.json").find_all()
    handles = {n.handle for n in FileNotificationQueue(data_dir / "notifications.json").pending()}
    assert {session.start_notification_id, session.end_notification_id} <= handles


def test_add_session_rejects_malformed_times():
    result = runner.invoke(app, ["add", "Evening", "6pm", "19:00"])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_remove_session_cancels_its_notifications(data_dir):
    runner.invoke(app, ["add", "Evening", "18:00", "19:00"])
    [session] = JsonBlockSessionRepository(data_dir / "sessions.json").find_all()

    result = runner.invoke(app, ["remove", session.id])

    assert result.exit_code == 0, result.output
    handles = {n.handle for n in FileNotificationQueue(data_dir / "notifications.json").pending()}
    assert session.start_notification_id not in handles
    assert session.end_notification_id not in handles


def test_adding_and_removing_a_running_session_announces_both(data_dir):
    runner.invoke(app, ["add", "All day", "00:00", "00:00"])
    [session] = JsonBlockSessionRepository(data_dir / "sessions.json").find_all()

    runner.invoke(app, ["remove", session.id])

    bodies = [n.body for n in FileNotificationQueue(data_dir / "notifications.json").pending()]
    assert bodies == [
        'Block session "All day" has started',
        'Block session "All day" has ended',
    ]


def test_remove_unknown_session_fails():
    result = runner.invoke(app, ["remove", "missing"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_locked_blocklist_cannot_be_removed(data_dir):
    runner.invoke(app, ["blocklist-add", "Games", "--linux", "steam,discord"])
    [blocklist] = JsonBlocklistRepository(data_dir / "blocklists.json").find_all()
    runner.invoke(app, ["add", "Evening", "18:00", "19:00", "--blocklist", blocklist.id])

    result = runner.invoke(app, ["blocklist-remove", blocklist.id])

    assert result.exit_code == 1
    assert blocklist.sirens.linux == ["steam", "discord"]


def test_list_and_targets_render(data_dir):
    runner.invoke(app, ["blocklist-add", "Social", "--android", "com.facebook.katana=Facebook"])
    runner.invoke(app, ["add", "All day", "00:00", "00:00"])
    runner.invoke(app, ["add", "Evening", "18:00", "19:00"])
    runner.invoke(app, ["add", "Night", "22:00", "06:00"])

    assert runner.invoke(app, ["list"]).exit_code == 0
    assert runner.invoke(app, ["blocklists"]).exit_code == 0
    assert runner.invoke(app, ["targets"]).exit_code == 0
