from __future__ import annotations

import os
import signal
from typing import Callable, List, Optional

from jobctl.cli.formatter import OutputFormatter
from jobctl.core.models import SupervisorSettings
from jobctl.runtime.bridge import NotificationBridge, PendingActions
from jobctl.runtime.lifecycle_contracts import (
    ControllerEvent,
    ControllerState,
    transition_controller_state,
)
from jobctl.runtime.reaper import Launcher, ReapReport, Reaper, WaitPid
from jobctl.runtime.slots import SlotTable, WorkerIdentity
from jobctl.utils.diagnostics import SignalDeliveryError, SpawnError

Kill = Callable[[int, int], None]

class LifecycleController:
    """Keeps a pool of `size` workers alive and sequences restart and shutdown.

    All pool state lives on this instance. The only state shared with signal
    handlers is `bridge.actions`.
    """

    def __init__(
        self,
        size: int,
        bridge: NotificationBridge,
        launcher: Launcher,
        settings: Optional[SupervisorSettings] = None,
        kill: Kill = os.kill,
        waitpid: WaitPid = os.waitpid,
    ) -> None:
        self.settings = settings or SupervisorSettings()
        self.bridge = bridge
        self.launcher = launcher
        self.slots = SlotTable(size)
        self.reaper = Reaper(
            self.slots,
            launcher,
            bridge,
            waitpid=waitpid,
            drain_poll_interval=self.settings.drain_poll_interval,
        )
        self.state: Optional[ControllerState] = None
        self.restarts_completed = 0
        # Result of the most recent crash reap pass while RUNNING.
        self.last_reap: Optional[ReapReport] = None
        self._kill = kill

    @property
    def size(self) -> int:
        return self.slots.size

    @property
    def actions(self) -> PendingActions:
        return self.bridge.actions

    def start(self) -> None:
        """Spawn the initial pool and enter RUNNING."""
        if self.state is not None:
            raise RuntimeError(f"LifecycleController already started (state={self.state.value}).")

        self._fill_empty_slots()
        self.state = ControllerState.RUNNING
        OutputFormatter.event(
            f"controller pid {os.getpid()} running with {self.slots.occupied_count()}/{self.size} workers"
        )

    def tick(self) -> ControllerState:
        """Run one step of the state machine and return the resulting state."""
        if self.state is None:
            raise RuntimeError("LifecycleController is not started. Call start() before tick().")

        if self.state == ControllerState.RUNNING:
            self._tick_running()
        elif self.state == ControllerState.RESTARTING:
            self._restart()
        elif self.state == ControllerState.STOPPING:
            self._stop()

        return self.state

    def run(self) -> int:
        """Start the pool and tick until STOPPED; returns the process exit status."""
        self.start()
        while self.state != ControllerState.STOPPED:
            self.tick()
        return 0

    def _tick_running(self) -> None:
        if self.actions.reap:
            self.actions.reap = False
            self.last_reap = self.reaper.reap_nonblocking()

        if self.actions.terminate:
            self._transition(ControllerEvent.TERMINATE_REQUESTED)
        elif self.actions.restart:
            self.actions.restart = False
            self._transition(ControllerEvent.RESTART_REQUESTED)
        else:
            self.bridge.wait(self.settings.tick_interval)

    def _restart(self) -> None:
        OutputFormatter.event("restart requested: stopping workers...")
        self._terminate_occupants()

        preempt = None
        if self.settings.preempt_restart_drain:
            preempt = self._terminate_pending
        report = self.reaper.reap_blocking_all(preempt=preempt)

        if report.preempted:
            OutputFormatter.event("termination requested during restart; abandoning restart")
            self._transition(ControllerEvent.TERMINATE_REQUESTED)
            return

        OutputFormatter.event("all workers stopped. restarting...")
        self._fill_empty_slots()
        self.restarts_completed += 1
        self._transition(ControllerEvent.RESTART_COMPLETE)
        OutputFormatter.event(
            f"restart complete with {self.slots.occupied_count()}/{self.size} workers"
        )

    def _stop(self) -> None:
        OutputFormatter.event("termination requested: shutting down workers...")
        self._terminate_occupants()
        self.reaper.reap_blocking_all()

        leftover = self.slots.release()
        if leftover:
            OutputFormatter.log(
                f"Released slot table while still tracking {', '.join(str(i) for i in leftover)}.",
                severity="error",
            )

        self._transition(ControllerEvent.DRAIN_COMPLETE)
        OutputFormatter.event("all workers stopped. exiting.")

    def _terminate_pending(self) -> bool:
        return self.actions.terminate

    def _terminate_occupants(self) -> None:
        for slot in self.slots.occupied():
            identity = slot.occupant
            OutputFormatter.event(f"sending SIGTERM to pid {identity.pid} (slot {slot.index})")
            try:
                self._kill(identity.pid, signal.SIGTERM)
            except OSError as exc:
                failure = SignalDeliveryError(
                    f"could not signal worker: {exc.strerror or exc}",
                    pid=identity.pid,
                    slot=slot.index,
                )
                OutputFormatter.print_diagnostic(failure.to_diagnostic())

    def _fill_empty_slots(self) -> List[WorkerIdentity]:
        spawned: List[WorkerIdentity] = []
        for index in self.slots.empty_indices():
            try:
                identity = self.launcher.spawn()
            except SpawnError as exc:
                failure = SpawnError(f"failed to spawn worker: {exc.message}", slot=index)
                OutputFormatter.print_diagnostic(failure.to_diagnostic())
                continue

            self.slots.install(index, identity)
            spawned.append(identity)
            OutputFormatter.event(f"spawned worker {index} -> pid {identity.pid}")
        return spawned

    def _transition(self, event: ControllerEvent) -> None:
        previous = self.state
        self.state = transition_controller_state(self.state, event)
        OutputFormatter.log(f"Controller {previous.value} -> {self.state.value} ({event.value})", severity="debug")
