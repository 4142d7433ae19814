import asyncio
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from voxqueue.core.config import QueueDefaults
from voxqueue.core.exceptions import InvalidTransition
from voxqueue.orchestrator.fsm import ItemStateMachine
from voxqueue.orchestrator.state import ItemStatus

_sequence = itertools.count()

@dataclass(frozen=True)
class PlaybackOptions:
    """Caller intent for one enqueue. None means "use the configured default"."""
    immediate: Optional[bool] = None
    wait_for_start: Optional[bool] = None
    wait_for_end: Optional[bool] = None

    def resolve(self, defaults: QueueDefaults) -> "PlaybackOptions":
        return PlaybackOptions(
            immediate=defaults.immediate if self.immediate is None else self.immediate,
            wait_for_start=defaults.wait_for_start if self.wait_for_start is None else self.wait_for_start,
            wait_for_end=defaults.wait_for_end if self.wait_for_end is None else self.wait_for_end,
        )

@dataclass(eq=False)
class QueueItem:
    speaker: int
    text: Optional[str] = None
    query: Optional[Dict[str, Any]] = None
    speed_scale: Optional[float] = None
    options: PlaybackOptions = field(default_factory=PlaybackOptions)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sequence: int = field(default_factory=lambda: next(_sequence))
    audio_data: Optional[bytes] = None
    error: Optional[BaseException] = None
    start_handle: Optional[asyncio.Future] = None
    end_handle: Optional[asyncio.Future] = None
    machine: ItemStateMachine = field(init=False, repr=False)

    def __post_init__(self):
        self.machine = ItemStateMachine(self.id)

    @property
    def status(self) -> ItemStatus:
        return self.machine.state

    @property
    def is_terminal(self) -> bool:
        return self.machine.is_terminal

    def mark_ready(self, audio_data: bytes):
        """
        Attach synthesized audio and move to READY.

        Raises:
            InvalidTransition: READY is not reachable; audio_data is left untouched
        """
        if not self.machine.can_transition(ItemStatus.READY):
            raise InvalidTransition(f"item {self.id}", self.status, ItemStatus.READY)
        # observers of the READY transition already see the audio
        self.audio_data = audio_data
        self.machine.transition(ItemStatus.READY)

    def fail(self, error: BaseException):
        """Record error and move to ERROR when the current state allows it."""
        self.error = error
        if self.machine.can_transition(ItemStatus.ERROR):
            self.audio_data = None
            self.machine.transition(ItemStatus.ERROR)

    def settle_start(self, error: Optional[BaseException] = None):
        _settle(self.start_handle, error)

    def settle_end(self, error: Optional[BaseException] = None):
        _settle(self.end_handle, error)

    def reject_handles(self, error: BaseException):
        self.settle_start(error)
        self.settle_end(error)

@dataclass
class EnqueueResult:
    item: QueueItem
    start_handle: Optional[asyncio.Future] = None
    end_handle: Optional[asyncio.Future] = None

    @property
    def handles(self) -> Tuple[asyncio.Future, ...]:
        return tuple(h for h in (self.start_handle, self.end_handle) if h is not None)

def new_handle(loop: asyncio.AbstractEventLoop) -> asyncio.Future:
    handle = loop.create_future()
    # handles the caller never awaits must not warn when they are rejected
    handle.add_done_callback(_retrieve)
    return handle

def _retrieve(handle: asyncio.Future):
    if not handle.cancelled():
        handle.exception()

def _settle(handle: Optional[asyncio.Future], error: Optional[BaseException]):
    if handle is None or handle.done():
        return
    if error is None:
        handle.set_result(None)
    else:
        handle.set_exception(error)
