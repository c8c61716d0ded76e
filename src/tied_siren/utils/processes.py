from collections.abc import Iterable
from typing import Protocol

import psutil
from loguru import logger

from tied_siren.utils.notifications import send_notification


class Enforcer(Protocol):
    def block(self, package_name: str) -> None: ...


def kill_processes(process_names: Iterable[str]) -> set[str]:
    """Kills running processes by name and returns the names that were killed."""
    killed_processes = set()
    process_names_set = set(process_names)
    if not process_names_set:
        return killed_processes

    for proc in psutil.process_iter(["name"]):
        try:
            if proc.info["name"] in process_names_set:
                logger.info(f"Killing {proc.info['name']} (PID: {proc.pid})")
                proc.kill()
                killed_processes.add(proc.info["name"])
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    return killed_processes


class ProcessEnforcer:
    """Blocks apps on this machine by killing their processes."""

    def __init__(self, notify: bool = True):
        self.notify = notify

    def block(self, package_name: str) -> None:
        self.block_many([package_name])

    def block_many(self, process_names: Iterable[str]) -> set[str]:
        killed = kill_processes(process_names)
        if self.notify:
            for killed_name in killed:
                send_notification(f"Blocked {killed_name}", "App closed per block session.")
        return killed
