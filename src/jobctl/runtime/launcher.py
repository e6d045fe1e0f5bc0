from __future__ import annotations

import os
import signal
import sys
from typing import Callable, Optional, Set

from jobctl.cli.formatter import OutputFormatter
from jobctl.runtime.slots import WorkerIdentity
from jobctl.runtime.worker import WorkerPayload, heartbeat_loop, run_worker
from jobctl.utils.diagnostics import SpawnError

# Held across fork so nothing reaches the child before its own handlers exist.
FORK_BLOCKED_SIGNALS: Set[int] = {
    signal.SIGTERM,
    signal.SIGINT,
    signal.SIGHUP,
    signal.SIGCHLD,
}


class ForkLauncher:
    """Creates worker processes with `os.fork`; failures are reported, never retried."""

    def __init__(
        self,
        payload: Optional[WorkerPayload] = None,
        fork: Callable[[], int] = os.fork,
    ) -> None:
        self.payload = payload or heartbeat_loop
        self._fork = fork

    def spawn(self) -> WorkerIdentity:
        """Start one worker running the payload and return its identity."""
        # Unflushed supervisor output would otherwise be written twice.
        sys.stdout.flush()
        sys.stderr.flush()

        previous_mask = signal.pthread_sigmask(signal.SIG_BLOCK, FORK_BLOCKED_SIGNALS)
        try:
            pid = self._fork()
            if pid == 0:
                self._run_child(previous_mask)
        except OSError as exc:
            raise SpawnError(f"fork failed: {exc.strerror or exc}") from exc
        finally:
            signal.pthread_sigmask(signal.SIG_SETMASK, previous_mask)

        return WorkerIdentity(pid=pid)

    def _run_child(self, signal_mask: Set[int]) -> None:
        status = 1
        try:
            run_worker(self.payload, signal_mask=signal_mask)
            status = 0
        except Exception as exc:
            OutputFormatter.log(f"Worker {os.getpid()} payload failed: {exc}", severity="error")
        finally:
            try:
                sys.stdout.flush()
                sys.stderr.flush()
            finally:
                os._exit(status)
