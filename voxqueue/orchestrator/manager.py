import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from voxqueue.core.config import Config
from voxqueue.core.exceptions import (
    Cleared,
    EmptyInputError,
    InvalidTransition,
    PlaybackError,
    QueueInterrupted,
    Superseded,
    SynthesisError,
)
from voxqueue.core.logging import set_correlation_id
from voxqueue.core.metrics import MetricsRegistry
from voxqueue.interfaces.playback import ABCPlaybackStrategy
from voxqueue.interfaces.synthesis import ABCSynthesizer
from voxqueue.orchestrator.events import Event, ItemStatusChange, QueueStatusChange
from voxqueue.orchestrator.fsm import QueueStateMachine
from voxqueue.orchestrator.item import EnqueueResult, PlaybackOptions, QueueItem, new_handle
from voxqueue.orchestrator.prefetch import PrefetchManager
from voxqueue.orchestrator.router import EventHandler, EventManager
from voxqueue.orchestrator.state import ItemStatus, QueueState
from voxqueue.playback.factory import create_playback_strategy
from voxqueue.playback.files import AudioFileManager
from voxqueue.synthesis.generator import AudioGenerator

logger = logging.getLogger(__name__)

@dataclass(eq=False)
class ActivePlayback:
    item: QueueItem
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    done: asyncio.Event = field(default_factory=asyncio.Event)
    cause: Optional[QueueInterrupted] = None

class QueueManager:
    """
    Orchestrates synthesis and playback of queued speech.

    Synthesis runs concurrently up to the prefetch limit; playback is strictly
    serial and always takes the head of the queue, so items play in enqueue
    order no matter which finishes generating first. Immediate enqueues and
    clear_queue() interrupt the active playback and wait for it to drain.
    """

    def __init__(self, synthesizer: ABCSynthesizer,
                 strategy: Optional[ABCPlaybackStrategy] = None,
                 config: Optional[Config] = None,
                 events: Optional[EventManager] = None,
                 files: Optional[AudioFileManager] = None,
                 metrics: Optional[MetricsRegistry] = None):
        self.config = config or Config()
        self.metrics = metrics or MetricsRegistry()
        self.strategy = strategy or create_playback_strategy(self.config.playback)
        self.events = events or EventManager()
        self.files = files or AudioFileManager()
        self.generator = AudioGenerator(synthesizer, self.metrics)
        self.prefetch = PrefetchManager(self.config.playback.prefetch_size)

        self.queue_state = QueueStateMachine()
        self.queue_state.add_callback(self._on_queue_transition)

        self._queue: List[QueueItem] = []
        self._items: Dict[str, QueueItem] = {}
        self._generation_tasks: Dict[str, asyncio.Task] = {}
        self._active: Optional[ActivePlayback] = None
        self._wakeup = asyncio.Event()
        self._runner: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    async def __aenter__(self) -> "QueueManager":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # Public API

    async def enqueue(self, text_or_query: Union[str, Mapping[str, Any]],
                      speaker: Optional[int] = None,
                      speed_scale: Optional[float] = None,
                      options: Optional[PlaybackOptions] = None) -> EnqueueResult:
        """
        Queue text (or a pre-built synthesis query) for playback.

        Args:
            text_or_query: Raw text, or an audio query dict from the engine
            speaker: Voice id; the configured default when None
            speed_scale: Overrides the query's speedScale
            options: Playback intent; unset fields take the configured defaults

        Returns:
            EnqueueResult holding the item and any requested start/end handles

        Raises:
            EmptyInputError: nothing to speak; the queue is left untouched
        """
        text, query = self._validate_input(text_or_query)
        resolved = (options or PlaybackOptions()).resolve(self.config.defaults)

        if speaker is None:
            speaker = self.config.synthesis.default_speaker
        if speed_scale is None and text is not None:
            speed_scale = self.config.synthesis.default_speed_scale

        loop = asyncio.get_running_loop()
        item = QueueItem(speaker=speaker, text=text, query=query, speed_scale=speed_scale, options=resolved)
        if resolved.wait_for_start:
            item.start_handle = new_handle(loop)
        if resolved.wait_for_end:
            item.end_handle = new_handle(loop)
        item.machine.add_callback(functools.partial(self._on_item_transition, item))

        self._ensure_runner()

        drain = None
        if resolved.immediate:
            drain = self._interrupt(Superseded, "Superseded by an immediate enqueue")
            self._queue.insert(0, item)
        else:
            self._queue.append(item)
        self._items[item.id] = item

        if self.queue_state.state == QueueState.IDLE:
            self._transition_queue(QueueState.ACTIVE)

        self.metrics.increment("items_enqueued")
        logger.info(f"Enqueued item {item.id} (immediate={resolved.immediate})",
                    extra={"item_id": item.id, "speaker": speaker, "queue_length": len(self._queue)})
        self.events.emit(Event.ITEM_ADDED, item)

        self.prefetch.add_pending_item(item.id)
        self._pump_generation()
        self._wakeup.set()

        if drain is not None:
            await drain.wait()

        return EnqueueResult(item=item, start_handle=item.start_handle, end_handle=item.end_handle)

    async def clear_queue(self):
        """Stop playback and drop every queued item. Safe to call repeatedly."""
        drain = self._interrupt(Cleared, "Queue cleared")
        if drain is None:
            self._settle_queue_state()
        logger.info("Queue cleared")
        self.events.emit(Event.QUEUE_CLEARED, None)
        if drain is not None:
            await drain.wait()

    async def remove_item(self, item_id: str) -> bool:
        """Drop one item, stopping it first if it is playing."""
        item = self._items.get(item_id)
        if item is None:
            return False

        active = self._active
        if active is not None and active.item is item:
            if active.cause is None:
                active.cause = Cleared(f"Item {item_id} removed", item_id=item_id)
                active.cancel.set()
                self._stop_strategy()
            await active.done.wait()
        else:
            self._discard(item, Cleared(f"Item {item_id} removed", item_id=item_id))
            self._settle_queue_state()
            self._pump_generation()
        return True

    def get_queue_length(self) -> int:
        return sum(1 for item in self._queue if not item.is_terminal)

    def get_queue(self) -> List[QueueItem]:
        return list(self._queue)

    def get_item_status(self, item_id: str) -> Optional[ItemStatus]:
        item = self._items.get(item_id)
        return item.status if item else None

    def is_streaming_enabled(self) -> bool:
        return self.strategy.supports_streaming()

    async def wait_until_idle(self):
        """Block until every queued item has finished, failed or been discarded."""
        await self._idle.wait()

    def subscribe(self, event: Event, handler: EventHandler):
        self.events.subscribe(event, handler)

    def unsubscribe(self, event: Event, handler: EventHandler) -> bool:
        return self.events.unsubscribe(event, handler)

    async def close(self):
        """Stop playback, cancel background work and delete temp files."""
        await self.clear_queue()

        if self._runner is not None:
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
            self._runner = None

        self.files.release_all()
        close = getattr(self.strategy, "close", None)
        if callable(close):
            close()
        logger.info("Queue manager closed")

    # Interrupts

    def _validate_input(self, text_or_query):
        if isinstance(text_or_query, str):
            if not text_or_query.strip():
                raise EmptyInputError("Text is empty")
            return text_or_query, None
        if not text_or_query:
            raise EmptyInputError("Query is empty")
        if not isinstance(text_or_query, Mapping):
            raise TypeError(f"Expected text or an audio query dict, got {type(text_or_query).__name__}")
        return None, dict(text_or_query)

    def _interrupt(self, cause_cls: Type[QueueInterrupted], reason: str) -> Optional[asyncio.Event]:
        """
        Discard every item that is not playing and cancel the active playback.

        Returns:
            The active playback's done event to await, or None when nothing plays
        """
        active = self._active
        for item in list(self._queue):
            if active is not None and item is active.item:
                continue
            self._discard(item, cause_cls(reason, item_id=item.id))
        self.prefetch.clear()

        if active is None:
            return None

        if active.cause is None:
            active.cause = cause_cls(reason, item_id=active.item.id)
            active.cancel.set()
            self._stop_strategy()
            self._transition_queue(QueueState.DRAINING)
        return active.done

    def _discard(self, item: QueueItem, cause: QueueInterrupted):
        task = self._generation_tasks.pop(item.id, None)
        if task is not None:
            task.cancel()
            self.prefetch.decrement_generating()
        self.prefetch.remove_item(item.id)

        item.fail(cause)
        item.reject_handles(cause)
        self._forget(item)
        logger.debug(f"Discarded item {item.id} ({type(cause).__name__})", extra={"item_id": item.id})
        self.events.emit(Event.ITEM_REMOVED, item)

    def _stop_strategy(self):
        try:
            self.strategy.stop()
        except Exception as e:
            logger.error(f"Playback strategy failed to stop: {e}", exc_info=True)

    def _forget(self, item: QueueItem):
        self._items.pop(item.id, None)
        for index, queued in enumerate(self._queue):
            if queued is item:
                del self._queue[index]
                break

    # Queue state

    def _transition_queue(self, new_state: QueueState):
        try:
            self.queue_state.transition(new_state)
        except InvalidTransition as e:
            logger.error(str(e))

    def _settle_queue_state(self):
        if self._active is not None:
            return
        has_work = any(not item.is_terminal for item in self._queue)
        self._transition_queue(QueueState.ACTIVE if has_work else QueueState.IDLE)

    def _on_queue_transition(self, old: QueueState, new: QueueState):
        if new == QueueState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
        self.events.emit(Event.QUEUE_STATUS_CHANGED, QueueStatusChange(old, new))

    def _on_item_transition(self, item: QueueItem, item_id: str, old: ItemStatus, new: ItemStatus):
        self.events.emit(Event.ITEM_STATUS_CHANGED, ItemStatusChange(item, old, new))

    # Generation

    def _pump_generation(self):
        for item_id in self.prefetch.items_to_generate():
            self.prefetch.remove_item(item_id)
            item = self._items.get(item_id)
            if item is None:
                continue

            try:
                item.machine.transition(ItemStatus.GENERATING)
            except InvalidTransition as e:
                logger.error(str(e), extra={"item_id": item_id})
                continue

            self.prefetch.increment_generating()
            self._generation_tasks[item_id] = asyncio.create_task(
                self._generate(item), name=f"generate-{item_id}"
            )

    async def _generate(self, item: QueueItem):
        set_correlation_id(item.id)
        task = asyncio.current_task()
        error = None
        audio = None
        try:
            audio = await self.generator.generate(item)
        except SynthesisError as e:
            error = e

        if self._generation_tasks.get(item.id) is not task:
            logger.debug(f"Ignoring stale generation result for {item.id}")
            return
        del self._generation_tasks[item.id]
        self.prefetch.decrement_generating()

        if error is None:
            try:
                item.mark_ready(audio)
            except InvalidTransition as e:
                logger.error(str(e), extra={"item_id": item.id})
        else:
            logger.error(f"Generation failed for item {item.id}: {error}", extra={"item_id": item.id})
            self._fail_item(item, error)

        self._pump_generation()
        self._wakeup.set()

    def _fail_item(self, item: QueueItem, error: BaseException):
        item.fail(error)
        item.reject_handles(error)
        self._forget(item)
        self.metrics.increment("items_failed")
        self.events.emit(Event.ERROR, item)
        self._settle_queue_state()

    # Playback

    def _ensure_runner(self):
        if self._runner is None or self._runner.done():
            self._runner = asyncio.create_task(self._run(), name="voxqueue-playback")

    async def _run(self):
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            try:
                item = self._next_playable()
                if item is not None:
                    await self._play(item)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in playback loop: {e}", exc_info=True)

    def _next_playable(self) -> Optional[QueueItem]:
        if self._active is not None or not self.queue_state.accepts_playback:
            return None
        if not self._queue:
            return None
        head = self._queue[0]
        return head if head.status == ItemStatus.READY else None

    async def _play(self, item: QueueItem):
        active = ActivePlayback(item)
        self._active = active
        set_correlation_id(item.id)
        start = time.perf_counter()
        error = None

        try:
            item.machine.transition(ItemStatus.PLAYING)
            item.settle_start()
            logger.info(f"Playing item {item.id}", extra={"item_id": item.id})

            if self.strategy.supports_streaming():
                await self.strategy.play_from_buffer(item.audio_data, active.cancel)
            else:
                async with self.files.temp_file(item.audio_data) as path:
                    await self.strategy.play_from_file(path, active.cancel)

        except asyncio.CancelledError:
            if active.cause is None:
                active.cause = Cleared("Playback task cancelled", item_id=item.id)
            raise

        except (PlaybackError, InvalidTransition) as e:
            error = e

        except Exception as e:
            logger.error(f"Unexpected playback failure for item {item.id}: {e}", exc_info=True)
            error = PlaybackError(f"Playback failed: {e}")

        finally:
            self._finish_playback(active, error, (time.perf_counter() - start) * 1000)

    def _finish_playback(self, active: ActivePlayback, error: Optional[BaseException], elapsed_ms: float):
        item = active.item

        if active.cause is not None:
            item.fail(active.cause)
            item.reject_handles(active.cause)
            logger.info(f"Playback of {item.id} interrupted ({type(active.cause).__name__})",
                        extra={"item_id": item.id})
            self._forget(item)
            self.events.emit(Event.ITEM_REMOVED, item)

        elif error is not None:
            logger.error(f"Playback failed for item {item.id}: {error}", extra={"item_id": item.id})
            self.metrics.increment("playback_failed")
            self._fail_item(item, error)

        else:
            try:
                item.machine.transition(ItemStatus.COMPLETED)
            except InvalidTransition as e:
                logger.error(str(e), extra={"item_id": item.id})
            item.settle_end()
            self._forget(item)
            self.metrics.increment("items_completed")
            self.metrics.record_latency("playback", elapsed_ms)
            self.events.emit(Event.ITEM_COMPLETED, item)

        self._active = None
        active.done.set()
        self._settle_queue_state()
        self._wakeup.set()
