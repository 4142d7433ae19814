import logging
from typing import Callable, Dict, FrozenSet, List

from voxqueue.core.exceptions import InvalidTransition
from voxqueue.orchestrator.state import ItemStatus, QueueState, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

ItemCallback = Callable[[str, ItemStatus, ItemStatus], None]
QueueCallback = Callable[[QueueState, QueueState], None]

_ITEM_TRANSITIONS: Dict[ItemStatus, FrozenSet[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.GENERATING}),
    ItemStatus.GENERATING: frozenset({ItemStatus.READY, ItemStatus.ERROR}),
    ItemStatus.READY: frozenset({ItemStatus.PLAYING, ItemStatus.ERROR}),
    ItemStatus.PLAYING: frozenset({ItemStatus.COMPLETED, ItemStatus.ERROR}),
    ItemStatus.COMPLETED: frozenset(),
    ItemStatus.ERROR: frozenset(),
}

_QUEUE_TRANSITIONS: Dict[QueueState, FrozenSet[QueueState]] = {
    QueueState.IDLE: frozenset({QueueState.ACTIVE}),
    QueueState.ACTIVE: frozenset({QueueState.IDLE, QueueState.DRAINING}),
    QueueState.DRAINING: frozenset({QueueState.IDLE, QueueState.ACTIVE}),
}

class ItemStateMachine:
    """
    Lifecycle of one queue item.

    PENDING -> GENERATING -> READY -> PLAYING -> COMPLETED, with ERROR
    reachable from GENERATING, READY and PLAYING.
    """

    def __init__(self, item_id: str, initial: ItemStatus = ItemStatus.PENDING):
        self.item_id = item_id
        self.state = initial
        self._callbacks: List[ItemCallback] = []

    def add_callback(self, callback: ItemCallback):
        self._callbacks.append(callback)

    def can_transition(self, new_state: ItemStatus) -> bool:
        return new_state in _ITEM_TRANSITIONS[self.state]

    def available_transitions(self) -> List[ItemStatus]:
        return sorted(_ITEM_TRANSITIONS[self.state], key=lambda s: s.value)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATUSES

    def transition(self, new_state: ItemStatus):
        """
        Move to new_state and notify callbacks before returning.

        Raises:
            InvalidTransition: new_state is not reachable from the current state;
                the state is left unchanged.
        """
        if not self.can_transition(new_state):
            raise InvalidTransition(f"item {self.item_id}", self.state, new_state)

        old_state = self.state
        self.state = new_state
        logger.debug(f"Item {self.item_id}: {old_state.name} -> {new_state.name}",
                     extra={"item_id": self.item_id, "old_state": old_state.name, "new_state": new_state.name})

        for callback in list(self._callbacks):
            callback(self.item_id, old_state, new_state)

class QueueStateMachine:
    """Queue-level mode: IDLE, ACTIVE, or DRAINING an interrupted playback."""

    def __init__(self):
        self.state = QueueState.IDLE
        self._callbacks: List[QueueCallback] = []

    def add_callback(self, callback: QueueCallback):
        self._callbacks.append(callback)

    @property
    def accepts_playback(self) -> bool:
        return self.state != QueueState.DRAINING

    def transition(self, new_state: QueueState):
        if self.state == new_state:
            return

        if new_state not in _QUEUE_TRANSITIONS[self.state]:
            raise InvalidTransition("queue", self.state, new_state)

        old_state = self.state
        self.state = new_state
        logger.info(f"Queue transition: {old_state.name} -> {new_state.name}",
                    extra={"old_state": old_state.name, "new_state": new_state.name})

        for callback in list(self._callbacks):
            callback(old_state, new_state)
