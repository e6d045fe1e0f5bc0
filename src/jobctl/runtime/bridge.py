from __future__ import annotations

import select
import signal
import socket
import time
from typing import Any, Callable, Dict, Optional, Set

from jobctl.utils.diagnostics import SetupError

TERMINATE_SIGNALS = (signal.SIGINT, signal.SIGTERM)
RELOAD_SIGNALS = (signal.SIGHUP,)
CHILD_SIGNALS = (signal.SIGCHLD,)


class PendingActions:
    """Sticky lifecycle flags.

    Written only from signal handlers, read and cleared only by the controller.
    Repeated notifications of one class collapse into a single pending action.
    """

    __slots__ = ("terminate", "restart", "reap")

    def __init__(self) -> None:
        self.terminate = False
        self.restart = False
        self.reap = False

    def lifecycle_pending(self) -> bool:
        """Return True when a terminate or restart request is waiting."""
        return self.terminate or self.restart

    def __repr__(self) -> str:
        return (
            f"PendingActions(terminate={self.terminate}, "
            f"restart={self.restart}, reap={self.reap})"
        )


class NotificationBridge:
    """Translates lifecycle signals into `PendingActions` and wakes controller waits.

    Handlers do one attribute write each. Waking is done by the interpreter through
    `signal.set_wakeup_fd`, which writes the signal number to a socket pair that the
    controller's waits select on.
    """

    def __init__(self, actions: Optional[PendingActions] = None) -> None:
        self.actions = actions or PendingActions()
        self._installed = False
        self._reader: Optional[socket.socket] = None
        self._writer: Optional[socket.socket] = None
        self._previous_wakeup_fd: Optional[int] = None
        self._previous_handlers: Dict[int, Any] = {}
        self._interrupting: Set[int] = {int(sig) for sig in TERMINATE_SIGNALS + RELOAD_SIGNALS}

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> NotificationBridge:
        """Register signal handlers and the wakeup socket pair."""
        if self._installed:
            return self

        try:
            self._reader, self._writer = socket.socketpair()
            self._reader.setblocking(False)
            self._writer.setblocking(False)
            self._previous_wakeup_fd = signal.set_wakeup_fd(
                self._writer.fileno(), warn_on_full_buffer=False
            )
            for signum, handler in self._handlers().items():
                self._previous_handlers[signum] = signal.signal(signum, handler)
        except (OSError, ValueError) as exc:
            self.uninstall()
            raise SetupError(f"Could not install lifecycle signal handlers: {exc}") from exc

        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore previous handlers and wakeup fd, then close the socket pair."""
        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

        if self._previous_wakeup_fd is not None:
            signal.set_wakeup_fd(self._previous_wakeup_fd)
            self._previous_wakeup_fd = None

        for sock in (self._reader, self._writer):
            if sock is not None:
                sock.close()
        self._reader = None
        self._writer = None
        self._installed = False

    def __enter__(self) -> NotificationBridge:
        return self.install()

    def __exit__(self, *exc_info: object) -> None:
        self.uninstall()

    def wait(self, timeout: float) -> bool:
        """Idle-wait up to `timeout` seconds.

        Returns True as soon as a terminate or reload request is pending. Child
        status notifications do not end the wait.
        """
        deadline = time.monotonic() + timeout
        while not self.actions.lifecycle_pending():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            received = self._wait_readable(remaining)
            if received & self._interrupting:
                return True
        return True

    def wait_for_notification(self, timeout: float) -> bool:
        """Wait up to `timeout` seconds for any lifecycle or child notification."""
        return bool(self._wait_readable(timeout))

    def _wait_readable(self, timeout: float) -> Set[int]:
        if self._reader is None:
            time.sleep(timeout)
            return set()

        readable, _, _ = select.select([self._reader], [], [], timeout)
        if not readable:
            return set()
        return self._drain_wakeups()

    def _drain_wakeups(self) -> Set[int]:
        received: Set[int] = set()
        while True:
            try:
                data = self._reader.recv(4096)
            except (BlockingIOError, InterruptedError):
                break
            if not data:
                break
            received.update(data)
        return received

    def _handlers(self) -> Dict[int, Callable[[int, Any], None]]:
        handlers: Dict[int, Callable[[int, Any], None]] = {}
        for signum in TERMINATE_SIGNALS:
            handlers[signum] = self._on_terminate
        for signum in RELOAD_SIGNALS:
            handlers[signum] = self._on_reload
        for signum in CHILD_SIGNALS:
            handlers[signum] = self._on_child
        return handlers

    def _on_terminate(self, signum: int, frame: Any) -> None:
        self.actions.terminate = True

    def _on_reload(self, signum: int, frame: Any) -> None:
        self.actions.restart = True

    def _on_child(self, signum: int, frame: Any) -> None:
        self.actions.reap = True
