import asyncio
import logging
import os
import sys
from typing import List, Optional

from voxqueue.core.exceptions import PlaybackError
from voxqueue.playback.process import BinaryLookup, ProcessPlaybackStrategy

logger = logging.getLogger(__name__)

# Search order on Linux; aplay is assumed when none is found
LINUX_PLAYERS = ("aplay", "paplay", "play", "ffplay")

WINDOWS_SCRIPT = (
    "Add-Type -AssemblyName presentationCore; "
    "$player = New-Object System.Windows.Media.MediaPlayer; "
    "$player.Open([Uri]'{path}'); "
    "$player.Play(); "
    "Start-Sleep -Milliseconds 500; "
    "while ($player.NaturalDuration.HasTimeSpan -eq $false) {{ Start-Sleep -Milliseconds 50 }}; "
    "Start-Sleep -Milliseconds $player.NaturalDuration.TimeSpan.TotalMilliseconds; "
    "$player.Close()"
)

class SystemPlayerStrategy(ProcessPlaybackStrategy):
    """
    File-based playback through the platform's stock player:
    afplay on macOS, PowerShell MediaPlayer on Windows, the first of
    aplay/paplay/play/ffplay on Linux.
    """

    def __init__(self, platform: Optional[str] = None, stop_grace_seconds: float = 2.0,
                 binaries: Optional[BinaryLookup] = None):
        super().__init__(stop_grace_seconds=stop_grace_seconds, binaries=binaries)
        self.platform = platform or sys.platform
        self._linux_player: Optional[str] = None

    def supports_streaming(self) -> bool:
        return False

    async def play_from_buffer(self, data: bytes, cancel: asyncio.Event) -> None:
        raise PlaybackError("System player cannot stream; play from a file instead")

    async def play_from_file(self, path: str, cancel: asyncio.Event) -> None:
        if not os.path.exists(path):
            raise PlaybackError(f"Audio file not found: {path}", path=path)
        await self._run(self.command_for(path), cancel, path=path)

    def command_for(self, path: str) -> List[str]:
        if self.platform == "darwin":
            return ["afplay", path]

        if self.platform == "win32":
            script = WINDOWS_SCRIPT.format(path=path.replace("'", "''"))
            return ["powershell", "-NoProfile", "-NonInteractive", "-Command", script]

        if self.platform.startswith("linux"):
            player = self.linux_player()
            if player == "ffplay":
                return ["ffplay", "-nodisp", "-autoexit", "-loglevel", "error", path]
            if player == "aplay":
                return ["aplay", "-q", path]
            return [player, path]

        raise PlaybackError(f"Unsupported platform for system playback: {self.platform}", path=path)

    def linux_player(self) -> str:
        if self._linux_player is None:
            self._linux_player = next((p for p in LINUX_PLAYERS if self.binaries.find(p)), "aplay")
            logger.info(f"Using {self._linux_player} for system playback")
        return self._linux_player
