import asyncio
import logging
import os
from typing import List, Optional

from voxqueue.core.exceptions import PlaybackError
from voxqueue.playback.process import BinaryLookup, ProcessPlaybackStrategy

logger = logging.getLogger(__name__)

class FfplayStrategy(ProcessPlaybackStrategy):
    """
    Plays through ffplay, feeding WAV bytes over stdin when streaming
    is enabled so no temp file is needed.
    """

    BASE_ARGS = ["-nodisp", "-autoexit", "-loglevel", "error"]

    def __init__(self, use_streaming: Optional[bool] = None, stop_grace_seconds: float = 2.0,
                 binary: str = "ffplay", binaries: Optional[BinaryLookup] = None):
        super().__init__(stop_grace_seconds=stop_grace_seconds, binaries=binaries)
        self.use_streaming = use_streaming
        self.binary = binary

    def available(self) -> bool:
        return self.binaries.find(self.binary) is not None

    def supports_streaming(self) -> bool:
        if self.use_streaming is False:
            return False
        return self.available()

    async def play_from_buffer(self, data: bytes, cancel: asyncio.Event) -> None:
        await self._run(self._command("pipe:0"), cancel, stdin_data=data)

    async def play_from_file(self, path: str, cancel: asyncio.Event) -> None:
        if not os.path.exists(path):
            raise PlaybackError(f"Audio file not found: {path}", path=path)
        await self._run(self._command(path), cancel, path=path)

    def _command(self, source: str) -> List[str]:
        executable = self.binaries.find(self.binary)
        if executable is None:
            raise PlaybackError(f"{self.binary} not found on PATH (install ffmpeg)")
        return [executable, *self.BASE_ARGS, "-i", source]
