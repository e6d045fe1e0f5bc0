from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from jobctl.utils.diagnostics import SetupError


@dataclass(frozen=True)
class WorkerIdentity:
    """Handle to one live worker process."""

    pid: int

    def __str__(self) -> str:
        return f"pid {self.pid}"


@dataclass
class Slot:
    """One fixed position in the pool; `occupant` is None when empty."""

    index: int
    occupant: Optional[WorkerIdentity] = None

    @property
    def is_empty(self) -> bool:
        return self.occupant is None


class SlotTable:
    """Fixed-size ordered table of worker slots with an identity -> index map."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise SetupError(f"Slot table size must be positive, got {size}.")

        try:
            self._slots: List[Slot] = [Slot(index=index) for index in range(size)]
        except MemoryError as exc:
            raise SetupError(f"Could not allocate slot table of size {size}.") from exc

        self._index_by_pid: Dict[int, int] = {}
        self._released = False

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._slots)

    def __getitem__(self, index: int) -> Slot:
        return self._slots[index]

    @property
    def size(self) -> int:
        return len(self._slots)

    @property
    def released(self) -> bool:
        return self._released

    def occupied(self) -> List[Slot]:
        """Return occupied slots in index order."""
        return [slot for slot in self._slots if not slot.is_empty]

    def occupied_count(self) -> int:
        return len(self._index_by_pid)

    def identities(self) -> List[WorkerIdentity]:
        """Return live identities in slot order."""
        return [slot.occupant for slot in self._slots if slot.occupant is not None]

    def empty_indices(self) -> List[int]:
        return [slot.index for slot in self._slots if slot.is_empty]

    def first_empty(self) -> Optional[int]:
        for slot in self._slots:
            if slot.is_empty:
                return slot.index
        return None

    def index_of(self, pid: int) -> Optional[int]:
        """Return the slot index holding `pid`, or None when untracked."""
        return self._index_by_pid.get(pid)

    def install(self, index: int, identity: WorkerIdentity) -> None:
        """Place `identity` into the empty slot at `index`."""
        self._check_not_released()
        slot = self._slots[index]
        if not slot.is_empty:
            raise ValueError(f"Slot {index} is already occupied by {slot.occupant}.")
        if identity.pid in self._index_by_pid:
            raise ValueError(
                f"Worker {identity} already occupies slot {self._index_by_pid[identity.pid]}."
            )

        slot.occupant = identity
        self._index_by_pid[identity.pid] = index

    def install_first_empty(self, identity: WorkerIdentity) -> Optional[int]:
        """Place `identity` into the first empty slot; returns None when the table is full."""
        index = self.first_empty()
        if index is None:
            return None
        self.install(index, identity)
        return index

    def vacate(self, pid: int) -> Optional[int]:
        """Clear the slot holding `pid` and return its index, or None when untracked."""
        self._check_not_released()
        index = self._index_by_pid.pop(pid, None)
        if index is None:
            return None
        self._slots[index].occupant = None
        return index

    def release(self) -> List[WorkerIdentity]:
        """Drop all slots at shutdown; returns identities that were still tracked."""
        leftover = self.identities()
        for slot in self._slots:
            slot.occupant = None
        self._index_by_pid.clear()
        self._released = True
        return leftover

    def _check_not_released(self) -> None:
        if self._released:
            raise RuntimeError("SlotTable has been released.")
