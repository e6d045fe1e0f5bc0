import errno
import os
import signal
import sys
from collections import deque
from pathlib import Path

import pytest

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from jobctl.core.models import SupervisorSettings  # noqa: E402
from jobctl.runtime.bridge import PendingActions  # noqa: E402
from jobctl.runtime.controller import LifecycleController  # noqa: E402
from jobctl.runtime.slots import WorkerIdentity  # noqa: E402
from jobctl.utils.diagnostics import SpawnError  # noqa: E402


class FakeProcessHost:
    """
    In-memory stand-in for fork/kill/waitpid.
    SIGTERM makes a worker exit with status 0, like the real worker override.
    """

    def __init__(self, first_pid: int = 1000):
        self._next_pid = first_pid
        self.live = set()
        self.exited = deque()
        self.spawned = []
        self.signals = []
        self.wait_options = []
        self.ignore_term = set()
        self.fail_spawns = 0
        self.on_wait = None

    def spawn(self) -> WorkerIdentity:
        if self.fail_spawns:
            self.fail_spawns -= 1
            raise SpawnError("fork failed: Resource temporarily unavailable")
        pid = self._next_pid
        self._next_pid += 1
        self.live.add(pid)
        self.spawned.append(pid)
        return WorkerIdentity(pid=pid)

    def exit(self, pid: int, status: int = 0) -> None:
        self.live.discard(pid)
        self.exited.append((pid, status))

    def crash(self, pid: int) -> None:
        """Simulate an external SIGKILL."""
        self.exit(pid, status=int(signal.SIGKILL))

    def kill(self, pid: int, sig: int) -> None:
        self.signals.append((pid, sig))
        if pid in self.live:
            if sig == signal.SIGTERM and pid in self.ignore_term:
                return
            self.exit(pid, status=0 if sig == signal.SIGTERM else int(sig))
            return
        if any(exited_pid == pid for exited_pid, _ in self.exited):
            # Zombie: still signalable until collected.
            return
        raise ProcessLookupError(errno.ESRCH, "No such process")

    def waitpid(self, pid: int, options: int):
        self.wait_options.append(options)
        if self.on_wait is not None:
            hook, self.on_wait = self.on_wait, None
            hook()
        if self.exited:
            return self.exited.popleft()
        if not self.live:
            raise ChildProcessError(errno.ECHILD, "No child processes")
        if options & os.WNOHANG:
            return (0, 0)
        raise AssertionError(f"blocking waitpid would hang on {sorted(self.live)}")


class StubBridge:
    """Notification bridge without signal handlers; tests set flags directly."""

    def __init__(self):
        self.actions = PendingActions()
        self.waits = []
        self.notification_waits = []
        self.on_notification_wait = None

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        return self.actions.lifecycle_pending()

    def wait_for_notification(self, timeout: float) -> bool:
        self.notification_waits.append(timeout)
        if self.on_notification_wait is not None:
            hook, self.on_notification_wait = self.on_notification_wait, None
            hook()
            return True
        return False


def assert_slot_invariants(slots) -> None:
    pids = [identity.pid for identity in slots.identities()]
    assert len(pids) <= slots.size
    assert len(pids) == len(set(pids))
    assert slots.occupied_count() == len(pids)


@pytest.fixture
def host():
    return FakeProcessHost()


@pytest.fixture
def bridge():
    return StubBridge()


@pytest.fixture
def make_controller(host, bridge):
    """
    Returns a factory building a controller wired to the fake host and stub bridge.
    """
    def factory(size: int = 3, **settings) -> LifecycleController:
        return LifecycleController(
            size,
            bridge,
            host,
            settings=SupervisorSettings(**settings),
            kill=host.kill,
            waitpid=host.waitpid,
        )

    return factory


@pytest.fixture
def check_slots():
    return assert_slot_invariants
