from typing import Dict, List

from voxqueue.core.exceptions import ConfigurationError

class PrefetchManager:
    """
    Caps concurrent synthesis so generation stays ahead of playback.
    Pure bookkeeping; the queue manager owns when things actually run.
    """

    def __init__(self, prefetch_size: int = 2):
        if prefetch_size < 1:
            raise ConfigurationError(f"prefetch_size must be at least 1, got {prefetch_size}")
        self._prefetch_size = prefetch_size
        self._generating = 0
        # dict keeps insertion order and gives O(1) membership
        self._pending: Dict[str, None] = {}

    @property
    def prefetch_size(self) -> int:
        return self._prefetch_size

    @property
    def generating_count(self) -> int:
        return self._generating

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def add_pending_item(self, item_id: str):
        if item_id not in self._pending:
            self._pending[item_id] = None

    def items_to_generate(self) -> List[str]:
        """Ids that may start generating now, oldest first. Does not mutate."""
        slots = self._prefetch_size - self._generating
        if slots <= 0 or not self._pending:
            return []
        return list(self._pending)[:slots]

    def increment_generating(self):
        self._generating += 1

    def decrement_generating(self):
        if self._generating > 0:
            self._generating -= 1

    def remove_item(self, item_id: str):
        self._pending.pop(item_id, None)

    def clear(self):
        self._pending.clear()
        self._generating = 0
