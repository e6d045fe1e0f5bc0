import errno
import os
import signal
import time

import pytest

from jobctl.runtime import worker as worker_module
from jobctl.runtime.launcher import ForkLauncher
from jobctl.runtime.worker import heartbeat_loop, make_heartbeat_payload
from jobctl.utils.diagnostics import SpawnError


class _StopLoop(Exception):
    pass


def _wait_exit_code(pid: int, timeout: float = 5.0) -> int:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        reaped, status = os.waitpid(pid, os.WNOHANG)
        if reaped == pid:
            return os.waitstatus_to_exitcode(status)
        time.sleep(0.01)
    os.kill(pid, signal.SIGKILL)
    os.waitpid(pid, 0)
    pytest.fail(f"worker {pid} did not exit within {timeout}s")


def test_fork_failure_raises_spawn_error():
    def failing_fork():
        raise OSError(errno.EAGAIN, "Resource temporarily unavailable")

    launcher = ForkLauncher(payload=lambda: None, fork=failing_fork)

    with pytest.raises(SpawnError, match="fork failed: Resource temporarily unavailable"):
        launcher.spawn()


def test_fork_failure_restores_signal_mask():
    before = signal.pthread_sigmask(signal.SIG_BLOCK, [])

    def failing_fork():
        raise OSError(errno.ENOMEM, "Cannot allocate memory")

    with pytest.raises(SpawnError):
        ForkLauncher(payload=lambda: None, fork=failing_fork).spawn()

    assert signal.pthread_sigmask(signal.SIG_BLOCK, []) == before


def test_worker_exits_cleanly_on_sigterm():
    ready_read, ready_write = os.pipe()

    def payload():
        os.write(ready_write, b"r")
        while True:
            time.sleep(0.05)

    identity = ForkLauncher(payload=payload).spawn()
    try:
        assert os.read(ready_read, 1) == b"r"
        os.kill(identity.pid, signal.SIGTERM)
        assert _wait_exit_code(identity.pid) == 0
    finally:
        os.close(ready_read)
        os.close(ready_write)


def test_sigterm_sent_right_after_spawn_still_stops_worker():
    def payload():
        while True:
            time.sleep(0.05)

    identity = ForkLauncher(payload=payload).spawn()
    os.kill(identity.pid, signal.SIGTERM)

    assert _wait_exit_code(identity.pid) in (0, -signal.SIGTERM)


def test_worker_installs_local_overrides():
    def payload():
        assert signal.getsignal(signal.SIGINT) is signal.SIG_IGN
        assert signal.getsignal(signal.SIGHUP) is signal.SIG_IGN
        assert signal.getsignal(signal.SIGCHLD) is signal.SIG_DFL
        assert signal.getsignal(signal.SIGTERM) is worker_module._exit_immediately
        assert signal.set_wakeup_fd(-1) == -1

    identity = ForkLauncher(payload=payload).spawn()

    assert _wait_exit_code(identity.pid) == 0


def test_failing_payload_exits_with_status_one():
    def payload():
        raise RuntimeError("boom")

    identity = ForkLauncher(payload=payload).spawn()

    assert _wait_exit_code(identity.pid) == 1


def test_each_spawn_returns_a_new_identity():
    launcher = ForkLauncher(payload=lambda: None)

    first = launcher.spawn()
    second = launcher.spawn()
    try:
        assert first != second
    finally:
        _wait_exit_code(first.pid)
        _wait_exit_code(second.pid)


def test_heartbeat_loop_prints_numbered_beats(monkeypatch, capsys):
    sleeps = []

    def fake_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 2:
            raise _StopLoop

    monkeypatch.setattr(worker_module.time, "sleep", fake_sleep)

    with pytest.raises(_StopLoop):
        heartbeat_loop(0.5)

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        f"[worker {os.getpid()}] heartbeat 1",
        f"[worker {os.getpid()}] heartbeat 2",
    ]
    assert sleeps == [0.5, 0.5]


def test_make_heartbeat_payload_uses_interval(monkeypatch):
    captured = []
    monkeypatch.setattr(worker_module, "heartbeat_loop", lambda interval: captured.append(interval))

    make_heartbeat_payload(1.5)()

    assert captured == [1.5]
