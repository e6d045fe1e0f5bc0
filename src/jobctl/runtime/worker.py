"""Code that runs inside a spawned worker process."""

from __future__ import annotations

import os
import signal
import time
from typing import Any, Callable, Iterable, Optional

from jobctl.cli.formatter import OutputFormatter

WorkerPayload = Callable[[], None]


def _exit_immediately(signum: int, frame: Any) -> None:
    os._exit(0)


def install_worker_overrides() -> None:
    """Replace the supervisor's handlers inherited across fork.

    SIGTERM ends the worker at once without running any supervisor shutdown
    logic. SIGINT and SIGHUP are ignored because the supervisor coordinates
    shutdown and restart for the whole pool.
    """
    signal.set_wakeup_fd(-1)
    signal.signal(signal.SIGTERM, _exit_immediately)
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    signal.signal(signal.SIGHUP, signal.SIG_IGN)
    signal.signal(signal.SIGCHLD, signal.SIG_DFL)


def heartbeat_loop(interval: float = 3.0) -> None:
    """Default payload: print one heartbeat line every `interval` seconds, forever."""
    pid = os.getpid()
    beat = 0
    while True:
        beat += 1
        OutputFormatter.event(f"heartbeat {beat}", source=f"worker {pid}")
        time.sleep(interval)


def make_heartbeat_payload(interval: float) -> WorkerPayload:
    def payload() -> None:
        heartbeat_loop(interval)

    return payload


def run_worker(payload: WorkerPayload, signal_mask: Optional[Iterable[int]] = None) -> None:
    """Install the worker overrides, restore the pre-fork signal mask, then run `payload`."""
    install_worker_overrides()
    if signal_mask is not None:
        signal.pthread_sigmask(signal.SIG_SETMASK, signal_mask)
    payload()
