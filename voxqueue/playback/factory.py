import logging
from typing import Optional

from voxqueue.core.config import PlaybackConfig
from voxqueue.interfaces.playback import ABCPlaybackStrategy
from voxqueue.playback.ffplay import FfplayStrategy
from voxqueue.playback.process import BinaryLookup
from voxqueue.playback.pyaudio_player import PyAudioStrategy, pyaudio_available
from voxqueue.playback.system import SystemPlayerStrategy

logger = logging.getLogger(__name__)

def create_playback_strategy(config: PlaybackConfig, platform: Optional[str] = None,
                             binaries: Optional[BinaryLookup] = None) -> ABCPlaybackStrategy:
    """
    Pick the host playback strategy.

    An explicit config.player wins. Otherwise ffplay, then PyAudio, are
    preferred when streaming is not disabled; the system player is the
    fallback. Binary lookups go through binaries, shared by every process
    based strategy this call builds.
    """
    grace = config.stop_grace_seconds
    binaries = binaries or BinaryLookup()

    if config.player == "ffplay":
        strategy = FfplayStrategy(use_streaming=config.use_streaming, stop_grace_seconds=grace, binaries=binaries)
    elif config.player == "pyaudio":
        strategy = PyAudioStrategy(output_device_index=config.output_device_index)
    elif config.player == "system":
        strategy = SystemPlayerStrategy(platform=platform, stop_grace_seconds=grace, binaries=binaries)
    elif config.use_streaming is not False and binaries.find("ffplay"):
        strategy = FfplayStrategy(use_streaming=config.use_streaming, stop_grace_seconds=grace, binaries=binaries)
    elif config.use_streaming is not False and pyaudio_available():
        strategy = PyAudioStrategy(output_device_index=config.output_device_index)
    else:
        strategy = SystemPlayerStrategy(platform=platform, stop_grace_seconds=grace, binaries=binaries)

    logger.info(f"Playback strategy: {type(strategy).__name__} "
                f"(streaming={'on' if strategy.supports_streaming() else 'off'})")
    return strategy
