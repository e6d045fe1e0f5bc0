"""Pool lifecycle: signal bridge, slot table, launcher, reaper and controller."""

from jobctl.runtime.bridge import NotificationBridge, PendingActions
from jobctl.runtime.controller import LifecycleController
from jobctl.runtime.launcher import ForkLauncher
from jobctl.runtime.lifecycle_contracts import (
	ControllerEvent,
	ControllerState,
	transition_controller_state,
)
from jobctl.runtime.reaper import ReapedWorker, Reaper, ReapReport
from jobctl.runtime.slots import Slot, SlotTable, WorkerIdentity

__all__ = [
	"ControllerEvent",
	"ControllerState",
	"ForkLauncher",
	"LifecycleController",
	"NotificationBridge",
	"PendingActions",
	"ReapReport",
	"ReapedWorker",
	"Reaper",
	"Slot",
	"SlotTable",
	"WorkerIdentity",
	"transition_controller_state",
]
