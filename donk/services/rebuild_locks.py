"""Per-instance serialization of composite rebuilds."""

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional
from uuid import UUID


@dataclass
class RebuildGate:
    """Serializes rebuilds of one instance and coalesces redundant ones.

    Every change that needs a rebuild takes a ticket after its tile write has
    landed. A rebuild records the newest ticket it has seen before reading
    tiles, so once it finishes every change with a ticket at or below that
    number is reflected in the composite and those callers can skip their own
    rebuild.
    """

    lock: threading.Lock = field(default_factory=threading.Lock)
    requested: int = 0
    completed: int = 0
    _counter_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def request(self) -> int:
        with self._counter_lock:
            self.requested += 1
            return self.requested

    def run(self, rebuild: Callable[[], None], ticket: Optional[int] = None) -> bool:
        """Run ``rebuild`` under the gate's lock.

        Args:
            rebuild: Callable performing the full rebuild
            ticket: Ticket from request(); None forces a rebuild

        Returns:
            True if a rebuild ran, False if a newer one already covered it
        """
        with self.lock:
            if ticket is not None and self.completed >= ticket:
                return False
            with self._counter_lock:
                snapshot = self.requested
            rebuild()
            self.completed = max(self.completed, snapshot)
            return True


class RebuildLocks:
    """Registry of rebuild gates, one per instance id."""

    def __init__(self):
        self._gates: dict[UUID, RebuildGate] = {}
        self._lock = threading.Lock()

    def gate(self, instance_id: UUID) -> RebuildGate:
        with self._lock:
            gate = self._gates.get(instance_id)
            if gate is None:
                gate = self._gates[instance_id] = RebuildGate()
            return gate


# Shared by every service in the process
rebuild_locks = RebuildLocks()
