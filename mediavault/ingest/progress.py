from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import AsyncIterator, Dict, Mapping, Set

__all__ = ["ProgressTracker"]


class ProgressTracker:
    """Last known copy fraction per in-flight reference identity.

    Mutated only from the event loop thread; copy threads hand their updates
    over with ``loop.call_soon_threadsafe``. Each key has a single writer, the
    task copying that reference.
    """

    def __init__(self) -> None:
        self._values: Dict[str, float] = {}
        self._watchers: Set[asyncio.Queue[Mapping[str, float]]] = set()

    def snapshot(self) -> Mapping[str, float]:
        return MappingProxyType(dict(self._values))

    def get(self, identity: str) -> float | None:
        return self._values.get(identity)

    def start(self, identity: str) -> None:
        self.update(identity, 0.0)

    def update(self, identity: str, fraction: float) -> None:
        self._values[identity] = min(max(fraction, 0.0), 1.0)
        self._publish()

    def finish(self, identity: str) -> None:
        if self._values.pop(identity, None) is not None:
            self._publish()

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for queue in self._watchers:
            # A watcher that falls behind only sees the newest state.
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(snapshot)

    async def watch(self) -> AsyncIterator[Mapping[str, float]]:
        """Yield the current state, then every subsequent change."""
        queue: asyncio.Queue[Mapping[str, float]] = asyncio.Queue(maxsize=1)
        self._watchers.add(queue)
        try:
            yield self.snapshot()
            while True:
                yield await queue.get()
        finally:
            self._watchers.discard(queue)

    def __len__(self) -> int:
        return len(self._values)
