"""
Playback Module - VoxQueue

Host audio output for ready queue items.

Main Components:
- FfplayStrategy: ffplay subprocess, streams WAV bytes over stdin
- PyAudioStrategy: in-process PortAudio output (optional 'audio' extra)
- SystemPlayerStrategy: afplay / PowerShell / aplay-family, file based
- AudioFileManager: temp-file lifecycle for file-based strategies
- create_playback_strategy: picks a strategy from PlaybackConfig
- BinaryLookup: cached PATH lookups shared by process-based strategies

Example Usage:
    from voxqueue.playback import create_playback_strategy
    from voxqueue.core.config import Config

    config = Config.load()
    strategy = create_playback_strategy(config.playback)

    cancel = asyncio.Event()
    await strategy.play_from_buffer(wav_bytes, cancel)
"""

from voxqueue.playback.factory import create_playback_strategy
from voxqueue.playback.ffplay import FfplayStrategy
from voxqueue.playback.files import AudioFileManager
from voxqueue.playback.process import BinaryLookup
from voxqueue.playback.pyaudio_player import PyAudioStrategy
from voxqueue.playback.system import SystemPlayerStrategy

__all__ = [
    "create_playback_strategy",
    "FfplayStrategy",
    "PyAudioStrategy",
    "SystemPlayerStrategy",
    "AudioFileManager",
    "BinaryLookup",
]
