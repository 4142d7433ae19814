from enum import Enum, auto

class ItemStatus(Enum):
    PENDING = auto()
    GENERATING = auto()
    READY = auto()
    PLAYING = auto()
    COMPLETED = auto()
    ERROR = auto()

class QueueState(Enum):
    IDLE = auto()
    ACTIVE = auto()
    DRAINING = auto()

# Statuses in which an item owns its synthesized audio
AUDIO_STATUSES = frozenset({ItemStatus.READY, ItemStatus.PLAYING, ItemStatus.COMPLETED})
TERMINAL_STATUSES = frozenset({ItemStatus.COMPLETED, ItemStatus.ERROR})
