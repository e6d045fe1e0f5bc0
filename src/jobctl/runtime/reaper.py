from __future__ import annotations

import os
import signal
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Tuple

from jobctl.cli.formatter import OutputFormatter
from jobctl.runtime.bridge import NotificationBridge
from jobctl.runtime.slots import SlotTable, WorkerIdentity
from jobctl.utils.diagnostics import (
    CollectionError,
    JobctlError,
    SpawnError,
    SupervisorDiagnostic,
)

WaitPid = Callable[[int, int], Tuple[int, int]]


class Launcher(Protocol):
    def spawn(self) -> WorkerIdentity:
        ...


@dataclass(frozen=True)
class ReapedWorker:
    """One collected child and the slot it was removed from, if any."""

    pid: int
    slot: Optional[int]
    status: int

    def describe(self) -> str:
        if os.WIFSIGNALED(self.status):
            signum = os.WTERMSIG(self.status)
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            outcome = f"killed by {name}"
        elif os.WIFEXITED(self.status):
            outcome = f"exited with status {os.WEXITSTATUS(self.status)}"
        else:
            outcome = f"raw status {self.status}"

        where = f"slot {self.slot}" if self.slot is not None else "untracked"
        return f"pid {self.pid} ({where}) {outcome}"


@dataclass
class ReapReport:
    """Outcome of one reap pass."""

    reaped: List[ReapedWorker] = field(default_factory=list)
    respawned: List[Tuple[int, WorkerIdentity]] = field(default_factory=list)
    diagnostics: List[SupervisorDiagnostic] = field(default_factory=list)
    preempted: bool = False

    @property
    def count(self) -> int:
        return len(self.reaped)


class Reaper:
    """Collects exited children, frees their slots and, while running, refills them."""

    def __init__(
        self,
        slots: SlotTable,
        launcher: Launcher,
        bridge: NotificationBridge,
        waitpid: WaitPid = os.waitpid,
        drain_poll_interval: float = 0.5,
    ) -> None:
        self.slots = slots
        self.launcher = launcher
        self.bridge = bridge
        self.drain_poll_interval = drain_poll_interval
        self._waitpid = waitpid

    def reap_nonblocking(self) -> ReapReport:
        """Collect every already-exited child without blocking, respawning as needed."""
        report = ReapReport()
        while True:
            try:
                collected = self._collect(os.WNOHANG)
            except CollectionError as exc:
                self._record_failure(report, exc)
                break

            if collected is None or collected[0] == 0:
                break

            reaped = self._record_reaped(report, *collected)
            if self.bridge.actions.lifecycle_pending():
                continue
            self._respawn(report, reaped)

        return report

    def reap_blocking_all(self, preempt: Optional[Callable[[], bool]] = None) -> ReapReport:
        """Collect every child of this process until none remain.

        Without `preempt` each wait blocks in `waitpid` and later notifications only
        set flags. With `preempt`, waits alternate with notification waits and the
        drain stops early once `preempt()` returns True.
        """
        report = ReapReport()
        options = 0 if preempt is None else os.WNOHANG
        while True:
            try:
                collected = self._collect(options)
            except CollectionError as exc:
                self._record_failure(report, exc)
                break

            if collected is None:
                break

            pid, status = collected
            if pid == 0:
                if preempt is not None and preempt():
                    report.preempted = True
                    break
                self.bridge.wait_for_notification(self.drain_poll_interval)
                continue

            self._record_reaped(report, pid, status)

        return report

    def _collect(self, options: int) -> Optional[Tuple[int, int]]:
        """Return (pid, status), (0, 0) while children are still running, or None when none exist."""
        try:
            return self._waitpid(-1, options)
        except ChildProcessError:
            return None
        except OSError as exc:
            raise CollectionError(f"waitpid failed: {exc.strerror or exc}") from exc

    def _record_reaped(self, report: ReapReport, pid: int, status: int) -> ReapedWorker:
        reaped = ReapedWorker(pid=pid, slot=self.slots.vacate(pid), status=status)
        report.reaped.append(reaped)
        OutputFormatter.event(f"reaped {reaped.describe()}")
        return reaped

    def _respawn(self, report: ReapReport, reaped: ReapedWorker) -> None:
        index = reaped.slot
        if index is None:
            index = self.slots.first_empty()
            if index is None:
                OutputFormatter.log(
                    f"Untracked pid {reaped.pid} exited and every slot is occupied; not respawning.",
                    severity="debug",
                )
                return

        try:
            identity = self.launcher.spawn()
        except SpawnError as exc:
            failure = SpawnError(
                f"failed to respawn worker after pid {reaped.pid} died: {exc.message}",
                pid=reaped.pid,
                slot=index,
            )
            self._record_failure(report, failure)
            return

        self.slots.install(index, identity)
        report.respawned.append((index, identity))
        if reaped.slot is None:
            OutputFormatter.event(f"placed respawned pid {identity.pid} in slot {index}")
        else:
            OutputFormatter.event(f"respawned worker at slot {index} -> pid {identity.pid}")

    @staticmethod
    def _record_failure(report: ReapReport, error: JobctlError) -> None:
        diagnostic = error.to_diagnostic()
        report.diagnostics.append(diagnostic)
        OutputFormatter.print_diagnostic(diagnostic)
