import asyncio
from abc import ABC, abstractmethod

class ABCPlaybackStrategy(ABC):
    """
    Interface for host audio output.
    Responsibility: Turn ready audio into sound, and stop it on request.

    Cancellation is cooperative: once `cancel` is set the strategy halts the
    underlying player and returns normally. Failures not caused by
    cancellation raise PlaybackError.
    """

    @abstractmethod
    def supports_streaming(self) -> bool:
        """Whether play_from_buffer can play straight from memory."""
        pass

    @abstractmethod
    async def play_from_buffer(self, data: bytes, cancel: asyncio.Event) -> None:
        """Play WAV bytes held in memory."""
        pass

    @abstractmethod
    async def play_from_file(self, path: str, cancel: asyncio.Event) -> None:
        """Play a WAV file from disk."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """
        Halt any active playback. No-op when nothing is playing.
        """
        pass
