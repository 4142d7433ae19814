from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from voxqueue.orchestrator.state import ItemStatus, QueueState

class Event(Enum):
    ITEM_ADDED = auto()
    ITEM_STATUS_CHANGED = auto()
    ITEM_REMOVED = auto()
    ITEM_COMPLETED = auto()
    QUEUE_STATUS_CHANGED = auto()
    QUEUE_CLEARED = auto()
    ERROR = auto()

@dataclass(frozen=True)
class ItemStatusChange:
    item: Any # QueueItem
    old: ItemStatus
    new: ItemStatus

@dataclass(frozen=True)
class QueueStatusChange:
    old: QueueState
    new: QueueState
