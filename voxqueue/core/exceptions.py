from typing import Optional


class VoxQueueError(Exception):
    """Base exception for all application errors."""
    pass

class ConfigurationError(VoxQueueError):
    pass

class EmptyInputError(VoxQueueError, ValueError):
    """Raised synchronously by enqueue when there is nothing to speak."""
    pass

class SynthesisError(VoxQueueError):
    """The synthesis backend failed for one item."""

    def __init__(self, message: str, speaker: Optional[int] = None, status: Optional[int] = None):
        super().__init__(message)
        self.speaker = speaker
        self.status = status

class PlaybackError(VoxQueueError):
    """The audio player failed for one item."""

    def __init__(self, message: str, path: Optional[str] = None, returncode: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.returncode = returncode

class QueueInterrupted(VoxQueueError):
    """
    Handle rejection cause for items displaced by an interrupt.
    Not a failure of the item's own synthesis or playback.
    """

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message)
        self.item_id = item_id

class Superseded(QueueInterrupted):
    """Displaced by an immediate enqueue."""
    pass

class Cleared(QueueInterrupted):
    """Displaced by clear_queue()."""
    pass

class InvalidTransition(VoxQueueError):
    """A state machine was asked for a transition it does not allow."""

    def __init__(self, subject: str, current, requested):
        super().__init__(f"Invalid transition for {subject}: {current.name} -> {requested.name}")
        self.subject = subject
        self.current = current
        self.requested = requested
