"""In-process serialisation of merges that share an entity id."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from entityfold.domain.errors import TransactionError

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator


@dataclass(slots=True)
class _Slot:
    lock: threading.Lock
    holders: int = 0


class EntityLockRegistry:
    """Per-entity-id locks, always taken in ascending id order.

    Two merges touching any common id run one after the other; disjoint merges
    run in parallel. Ordered acquisition rules out lock-order deadlocks between
    overlapping requests. Database row locks cover other processes.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._slots: dict[int, _Slot] = {}

    def _checkout(self, entity_id: int) -> _Slot:
        with self._guard:
            slot = self._slots.get(entity_id)
            if slot is None:
                slot = self._slots[entity_id] = _Slot(lock=threading.Lock())
            slot.holders += 1
            return slot

    def _checkin(self, entity_id: int) -> None:
        with self._guard:
            slot = self._slots[entity_id]
            slot.holders -= 1
            if slot.holders == 0:
                del self._slots[entity_id]

    @contextmanager
    def hold(self, entity_ids: Collection[int], *, timeout: float | None = None) -> Iterator[None]:
        ordered = sorted(set(entity_ids))
        deadline = None if timeout is None else time.monotonic() + timeout
        acquired: list[tuple[int, _Slot]] = []
        try:
            for entity_id in ordered:
                slot = self._checkout(entity_id)
                remaining = -1.0 if deadline is None else max(0.0, deadline - time.monotonic())
                if not slot.lock.acquire(timeout=remaining):
                    self._checkin(entity_id)
                    raise TransactionError(
                        f"Timed out waiting for a concurrent merge on entity {entity_id}"
                    )
                acquired.append((entity_id, slot))
            yield
        finally:
            for entity_id, slot in reversed(acquired):
                slot.lock.release()
                self._checkin(entity_id)

    def held_ids(self) -> list[int]:
        with self._guard:
            return sorted(self._slots)
