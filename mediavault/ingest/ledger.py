from __future__ import annotations

import threading
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Set

from mediavault.core.logging import get_logger
from mediavault.core.storage import PrivateStore

__all__ = ["TempFileLedger"]


class TempFileLedger:
    """Tracks provisional files that are still eligible for deletion.

    A file leaves the ledger either by promotion (kept, never deleted by the
    ledger afterwards) or by cleanup (deleted, then forgotten). One ledger is
    owned per session and torn down with :meth:`close`.
    """

    def __init__(self, store: PrivateStore):
        self.store = store
        self._lock = threading.Lock()
        self._provisional: Set[Path] = set()
        self.logger = get_logger(component="temp_file_ledger")

    def register(self, file_id: Path) -> bool:
        """Start tracking ``file_id``. Returns False if it was already tracked."""
        path = Path(file_id)
        with self._lock:
            if path in self._provisional:
                return False
            self._provisional.add(path)
        return True

    def promote(self, file_ids: Iterable[Path]) -> List[Path]:
        """Stop tracking ``file_ids`` without touching the files."""
        promoted: List[Path] = []
        with self._lock:
            for file_id in file_ids:
                path = Path(file_id)
                if path in self._provisional:
                    self._provisional.remove(path)
                    promoted.append(path)
        if promoted:
            self.logger.info("ledger_promoted", count=len(promoted))
        return promoted

    def cleanup(self, file_ids: Optional[Iterable[Path]] = None) -> List[Path]:
        """Delete tracked files and forget them.

        Only ids currently tracked are touched, so promoted files survive.
        Files already missing on disk are forgotten without error. A file
        whose deletion fails stays tracked for a later attempt.
        """
        removed: List[Path] = []
        failed = 0
        with self._lock:
            if file_ids is None:
                targets = list(self._provisional)
            else:
                targets = [Path(f) for f in file_ids if Path(f) in self._provisional]
            for path in targets:
                try:
                    self.store.delete(path)
                except OSError as exc:
                    failed += 1
                    self.logger.error("ledger_delete_failed", file=path.name, error=str(exc))
                    continue
                self._provisional.discard(path)
                removed.append(path)
        if removed or failed:
            self.logger.info("ledger_cleanup", removed=len(removed), failed=failed)
        return removed

    def tracked(self) -> FrozenSet[Path]:
        with self._lock:
            return frozenset(self._provisional)

    def close(self) -> None:
        self.cleanup()

    def __contains__(self, file_id: object) -> bool:
        if not isinstance(file_id, (str, Path)):
            return False
        with self._lock:
            return Path(file_id) in self._provisional

    def __len__(self) -> int:
        with self._lock:
            return len(self._provisional)
