from __future__ import annotations

from typing import Optional

from mediavault.core.logging import get_logger
from mediavault.core.storage import PrivateStore

__all__ = ["DiskSpaceGuard", "DEFAULT_MULTIPLIER"]

DEFAULT_MULTIPLIER = 2.0


class DiskSpaceGuard:
    """Rejects copies that would not leave a safety margin on the store's volume."""

    def __init__(self, multiplier: float = DEFAULT_MULTIPLIER):
        self.multiplier = multiplier
        self.logger = get_logger(component="disk_space_guard")

    def has_headroom(self, store: PrivateStore, required_bytes: Optional[int]) -> bool:
        required = max(required_bytes or 0, 0)
        try:
            available = store.available_bytes()
        except OSError as exc:
            self.logger.warning("disk_space_query_failed", root=str(store.root), error=str(exc))
            return False
        ok = available > required * self.multiplier
        if not ok:
            self.logger.info(
                "disk_space_insufficient",
                available_bytes=available,
                required_bytes=required,
                multiplier=self.multiplier,
            )
        return ok
