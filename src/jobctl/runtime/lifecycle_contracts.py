from __future__ import annotations

from enum import Enum


class ControllerState(str, Enum):
    """States of the pool lifecycle controller."""

    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ControllerEvent(str, Enum):
    """Events that drive controller state transitions."""

    TERMINATE_REQUESTED = "terminate_requested"
    RESTART_REQUESTED = "restart_requested"
    RESTART_COMPLETE = "restart_complete"
    DRAIN_COMPLETE = "drain_complete"


def transition_controller_state(current: ControllerState, event: ControllerEvent) -> ControllerState:
    """Compute the next controller state for a given event.

    Terminate wins from any live state, including a restart whose drain was
    preempted. STOPPED is terminal. Invalid transitions raise ValueError.
    """

    if current == ControllerState.STOPPED:
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if event == ControllerEvent.TERMINATE_REQUESTED:
        if current in {ControllerState.RUNNING, ControllerState.RESTARTING}:
            return ControllerState.STOPPING
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if current == ControllerState.RUNNING:
        if event == ControllerEvent.RESTART_REQUESTED:
            return ControllerState.RESTARTING
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if current == ControllerState.RESTARTING:
        if event == ControllerEvent.RESTART_COMPLETE:
            return ControllerState.RUNNING
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if current == ControllerState.STOPPING:
        if event == ControllerEvent.DRAIN_COMPLETE:
            return ControllerState.STOPPED
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    raise ValueError(f"Unknown controller state: {current}")
