from datetime import timedelta

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tied_siren.core import (
    is_active,
    locked_blocklist_ids,
    partition_sessions,
    resolve_targets,
    window_bounds,
)
from tied_siren.errors import TiedSirenError
from tied_siren.manager import (
    BlockSessionManager,
    LaunchedAppBlocker,
    SessionStatusNotifier,
    remove_blocklist,
)
from tied_siren.repository import JsonBlocklistRepository, JsonBlockSessionRepository
from tied_siren.schema import (
    AndroidSiren,
    Blocklist,
    BlockSessionCreate,
    BlockSessionUpdate,
    Sirens,
)
from tied_siren.utils.logging import setup_logging
from tied_siren.utils.notifications import FileNotificationQueue
from tied_siren.utils.processes import ProcessEnforcer
from tied_siren.utils.time import SystemClock, format_duration_seconds

app = typer.Typer(help="Tied Siren - block apps, websites and keywords on a schedule")
console = Console()


def process_apps_list(apps: list[str] | None) -> list[str]:
    """Processes a list of strings potentially containing commas into a clean list."""
    if not apps:
        return []
    processed = []
    for a in apps:
        parts = [x.strip() for x in a.split(",") if x.strip()]
        processed.extend(parts)
    return processed


def parse_android_sirens(entries: list[str] | None) -> list[AndroidSiren]:
    """Parses 'com.package' or 'com.package=App Name' entries."""
    sirens = []
    for entry in process_apps_list(entries):
        package_name, _, app_name = entry.partition("=")
        sirens.append(AndroidSiren(package_name=package_name, app_name=app_name or package_name))
    return sirens


def session_manager(clock: SystemClock) -> BlockSessionManager:
    queue = FileNotificationQueue(clock=clock)
    return BlockSessionManager(
        JsonBlockSessionRepository(), queue, clock, SessionStatusNotifier(queue, clock)
    )


def fail(error: Exception):
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(1) from None


@app.command("blocklist-add")
def blocklist_add(
    name: str = typer.Argument(..., help="Blocklist name"),
    android: list[str] | None = typer.Option(
        None, "--android", help="Android packages (com.pkg or com.pkg=App Name)"
    ),
    linux: list[str] | None = typer.Option(None, "--linux", help="Linux process names"),
    macos: list[str] | None = typer.Option(None, "--macos", help="macOS process names"),
    windows: list[str] | None = typer.Option(None, "--windows", help="Windows process names"),
    ios: list[str] | None = typer.Option(None, "--ios", help="iOS app identifiers"),
    websites: list[str] | None = typer.Option(None, "--websites", "-w", help="Websites"),
    keywords: list[str] | None = typer.Option(None, "--keywords", "-k", help="Keywords"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Create a blocklist."""
    setup_logging(verbose=verbose)
    blocklist = Blocklist(
        name=name,
        sirens=Sirens(
            android=parse_android_sirens(android),
            linux=process_apps_list(linux),
            macos=process_apps_list(macos),
            windows=process_apps_list(windows),
            ios=process_apps_list(ios),
            websites=process_apps_list(websites),
            keywords=process_apps_list(keywords),
        ),
    )
    JsonBlocklistRepository().create(blocklist)
    console.print(f"[green]Created blocklist:[/green] {blocklist.name} ({blocklist.id})")


@app.command("blocklists")
def list_blocklists(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List blocklists and whether a session keeps them locked."""
    setup_logging(verbose=verbose)
    blocklists = JsonBlocklistRepository().find_all()
    if not blocklists:
        console.print("[yellow]No blocklists found.[/yellow]")
        return

    locked = set(
        locked_blocklist_ids(SystemClock().now(), JsonBlockSessionRepository().find_all())
    )
    table = Table(title="Blocklists")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Apps", style="magenta")
    table.add_column("Websites", style="blue")
    table.add_column("Keywords", style="blue")
    table.add_column("Locked", style="yellow")
    for blocklist in blocklists:
        sirens = blocklist.sirens
        apps = [a.package_name for a in sirens.android]
        apps += sirens.linux + sirens.macos + sirens.windows + sirens.ios
        table.add_row(
            blocklist.id,
            blocklist.name,
            ", ".join(apps) or "None",
            ", ".join(sirens.websites) or "None",
            ", ".join(sirens.keywords) or "None",
            "Yes" if blocklist.id in locked else "No",
        )
    console.print(table)


@app.command("blocklist-remove")
def blocklist_remove(
    blocklist_id: str = typer.Argument(..., help="Blocklist ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Remove a blocklist that no session uses."""
    setup_logging(verbose=verbose)
    try:
        remove_blocklist(
            blocklist_id, JsonBlockSessionRepository(), JsonBlocklistRepository(), SystemClock()
        )
    except TiedSirenError as e:
        fail(e)
    console.print(f"[green]Removed blocklist:[/green] {blocklist_id}")


@app.command()
def add(
    name: str = typer.Argument(..., help="Session name"),
    start_time: str = typer.Argument(..., help="Start time, 24h HH:mm (e.g. 22:00)"),
    end_time: str = typer.Argument(..., help="End time, 24h HH:mm (e.g. 06:30)"),
    blocklists: list[str] | None = typer.Option(
        None, "--blocklist", "-b", help="Blocklist IDs to enforce"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Add a recurring daily block session."""
    setup_logging(verbose=verbose)
    try:
        payload = BlockSessionCreate(
            name=name,
            started_at=start_time,
            ended_at=end_time,
            blocklist_ids=process_apps_list(blocklists),
        )
        session = session_manager(SystemClock()).create_session(payload)
    except (ValidationError, TiedSirenError) as e:
        fail(e)
    console.print(
        f"[green]Successfully added session:[/green] {session.name} "
        f"{session.started_at} - {session.ended_at} ({session.id})"
    )


@app.command(name="list")
def list_sessions(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List block sessions, active ones first."""
    setup_logging(verbose=verbose)
    sessions = JsonBlockSessionRepository().find_all()
    if not sessions:
        console.print("[yellow]No block sessions found.[/yellow]")
        return

    now = SystemClock().now()
    active, scheduled = partition_sessions(now, sessions)
    table = Table(title="Active & Scheduled Block Sessions")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Start", style="magenta")
    table.add_column("End", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Next", style="yellow")
    table.add_column("Blocklists", style="blue")
    for session in active + scheduled:
        start, end = window_bounds(now, session.started_at, session.ended_at)
        if session in active:
            status = "ACTIVE"
            next_change = f"ends in {format_duration_seconds(int((end - now).total_seconds()))}"
        else:
            status = "Scheduled"
            if start <= now:
                start += timedelta(days=1)
            next_change = f"starts in {format_duration_seconds(int((start - now).total_seconds()))}"
        table.add_row(
            session.id,
            session.name,
            session.started_at,
            session.ended_at,
            status,
            next_change if session.started_at != session.ended_at else "all day",
            ", ".join(session.blocklist_ids) or "None",
        )
    console.print(table)


@app.command()
def update(
    session_id: str = typer.Argument(..., help="Session ID"),
    name: str | None = typer.Option(None, "--name", "-n", help="New name"),
    start_time: str | None = typer.Option(None, "--start", "-s", help="New start (HH:mm)"),
    end_time: str | None = typer.Option(None, "--end", "-e", help="New end (HH:mm)"),
    blocklists: list[str] | None = typer.Option(
        None, "--blocklist", "-b", help="Replace the blocklist IDs"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Change a block session's name, window or blocklists."""
    setup_logging(verbose=verbose)
    fields = {
        "name": name,
        "started_at": start_time,
        "ended_at": end_time,
        "blocklist_ids": process_apps_list(blocklists) if blocklists else None,
    }
    try:
        payload = BlockSessionUpdate(
            id=session_id, **{k: v for k, v in fields.items() if v is not None}
        )
        session = session_manager(SystemClock()).update_session(payload)
    except (ValidationError, TiedSirenError) as e:
        fail(e)
    console.print(
        f"[green]Updated session:[/green] {session.name} "
        f"{session.started_at} - {session.ended_at}"
    )


@app.command()
def rename(
    session_id: str = typer.Argument(..., help="Session ID"),
    name: str = typer.Argument(..., help="New name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Rename a block session."""
    setup_logging(verbose=verbose)
    try:
        session = session_manager(SystemClock()).rename_session(session_id, name)
    except TiedSirenError as e:
        fail(e)
    console.print(f"[green]Renamed session:[/green] {session.name}")


@app.command()
def duplicate(
    session_id: str = typer.Argument(..., help="Session ID to copy"),
    name: str = typer.Argument(..., help="Name of the copy"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Duplicate a block session under a new name."""
    setup_logging(verbose=verbose)
    try:
        session = session_manager(SystemClock()).duplicate_session(session_id, name)
    except TiedSirenError as e:
        fail(e)
    console.print(f"[green]Duplicated session:[/green] {session.name} ({session.id})")


@app.command()
def remove(
    session_id: str = typer.Argument(..., help="Session ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Remove a block session and its pending notifications."""
    setup_logging(verbose=verbose)
    try:
        session_manager(SystemClock()).delete_session(session_id)
    except TiedSirenError as e:
        fail(e)
    console.print(f"[green]Removed session:[/green] {session_id}")


@app.command()
def targets(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show the sirens enforced right now."""
    setup_logging(verbose=verbose)
    now = SystemClock().now()
    sessions = JsonBlockSessionRepository().find_all()
    sirens = resolve_targets(now, sessions, JsonBlocklistRepository().find_all())
    active_count = sum(1 for s in sessions if is_active(now, s))

    table = Table(title=f"Currently Enforced Sirens ({active_count} active sessions)")
    table.add_column("Category", style="cyan")
    table.add_column("Sirens", style="magenta")
    table.add_row("android", ", ".join(a.package_name for a in sirens.android) or "None")
    for category in ("windows", "macos", "ios", "linux", "websites", "keywords"):
        table.add_row(category, ", ".join(getattr(sirens, category)) or "None")
    console.print(table)


@app.command()
def check(
    package_name: str = typer.Argument(..., help="Package or process name that was launched"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Decide whether a launched app must be blocked, and block it if so."""
    setup_logging(verbose=verbose)
    blocker = LaunchedAppBlocker(
        JsonBlockSessionRepository(), JsonBlocklistRepository(), ProcessEnforcer(), SystemClock()
    )
    decision = blocker.handle_launched_app(package_name)
    if decision.blocked:
        console.print(f"[bold red]Blocked[/bold red] {package_name}")
    else:
        console.print(f"[green]Allowed[/green] {package_name}")


@app.command()
def start(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run the enforcement daemon in the foreground."""
    setup_logging(verbose=verbose)
    from tied_siren.daemon import run_daemon

    run_daemon()


if __name__ == "__main__":
    app()
