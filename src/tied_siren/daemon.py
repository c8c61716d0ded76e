import sys
import time

from loguru import logger
from rich.console import Console

from tied_siren.core import has_active_session, platform_sirens, resolve_targets
from tied_siren.manager import SessionStatusNotifier
from tied_siren.repository import (
    BlocklistRepository,
    BlockSessionRepository,
    JsonBlocklistRepository,
    JsonBlockSessionRepository,
)
from tied_siren.settings import load_settings, settings
from tied_siren.utils.notifications import FileNotificationQueue
from tied_siren.utils.processes import ProcessEnforcer
from tied_siren.utils.time import Clock, SystemClock

console = Console()


class SirenWatcher:
    """
    One enforcement pass per tick.

    Active sessions are recomputed from the clock every time; nothing about
    "what is active" is cached between ticks.
    """

    def __init__(
        self,
        session_repository: BlockSessionRepository,
        blocklist_repository: BlocklistRepository,
        enforcer: ProcessEnforcer,
        notification_queue: FileNotificationQueue,
        status_notifier: SessionStatusNotifier,
        clock: Clock,
        platform: str = sys.platform,
    ):
        self.session_repository = session_repository
        self.blocklist_repository = blocklist_repository
        self.enforcer = enforcer
        self.notification_queue = notification_queue
        self.status_notifier = status_notifier
        self.clock = clock
        self.platform = platform
        self._was_protecting = False

    def tick(self) -> set[str]:
        """Enforces the current targets and returns the process names killed."""
        now = self.clock.now()
        sessions = self.session_repository.find_all()
        self.status_notifier.check_sessions(sessions)
        self.notification_queue.deliver_due()

        protecting = has_active_session(now, sessions)
        if protecting != self._was_protecting:
            logger.info("Protection started." if protecting else "Protection stopped.")
            self._was_protecting = protecting
        if not protecting:
            return set()

        targets = resolve_targets(now, sessions, self.blocklist_repository.find_all())
        return self.enforcer.block_many(platform_sirens(targets, self.platform))


def run_daemon():
    """Main loop for the enforcement daemon."""
    clock = SystemClock()
    queue = FileNotificationQueue(clock=clock)
    watcher = SirenWatcher(
        JsonBlockSessionRepository(),
        JsonBlocklistRepository(),
        ProcessEnforcer(),
        queue,
        SessionStatusNotifier(queue, clock),
        clock,
    )
    console.print("[bold green]Tied Siren daemon started...[/bold green]")
    console.print(f"Data directory: [cyan]{settings.data_dir}[/cyan]")
    console.print("Watching block sessions. Press Ctrl+C to stop.")

    try:
        while True:
            watcher.tick()
            time.sleep(load_settings().poll_interval_seconds)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping daemon...[/yellow]")
