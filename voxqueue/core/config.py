import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from voxqueue.core.exceptions import ConfigurationError

@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"

@dataclass
class SynthesisConfig:
    url: str = "http://localhost:50021"
    timeout_seconds: float = 30.0
    default_speaker: int = 1
    default_speed_scale: float = 1.0

@dataclass
class PlaybackConfig:
    prefetch_size: int = 2
    use_streaming: Optional[bool] = None # None: stream whenever the host supports it
    player: Optional[str] = None # "ffplay", "pyaudio" or "system"; None probes
    stop_grace_seconds: float = 2.0 # terminate -> kill escalation delay
    output_device_index: int = -1

@dataclass
class QueueDefaults:
    immediate: bool = True
    wait_for_start: bool = False
    wait_for_end: bool = False

@dataclass
class Config:
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    defaults: QueueDefaults = field(default_factory=QueueDefaults)

    @classmethod
    def load(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build a config from VOICEVOX_* environment variables.

        Args:
            env: Mapping to read instead of os.environ (tests)

        Raises:
            ConfigurationError: a variable is set to a value of the wrong type
        """
        env = os.environ if env is None else env
        config = cls()

        if "VOICEVOX_URL" in env:
            config.synthesis.url = env["VOICEVOX_URL"].rstrip("/")
        config.synthesis.default_speaker = _int(env, "VOICEVOX_DEFAULT_SPEAKER", config.synthesis.default_speaker)
        config.synthesis.default_speed_scale = _float(env, "VOICEVOX_DEFAULT_SPEED_SCALE", config.synthesis.default_speed_scale)

        config.defaults.immediate = _bool(env, "VOICEVOX_DEFAULT_IMMEDIATE", config.defaults.immediate)
        config.defaults.wait_for_start = _bool(env, "VOICEVOX_DEFAULT_WAIT_FOR_START", config.defaults.wait_for_start)
        config.defaults.wait_for_end = _bool(env, "VOICEVOX_DEFAULT_WAIT_FOR_END", config.defaults.wait_for_end)

        config.playback.prefetch_size = _int(env, "VOICEVOX_PREFETCH_SIZE", config.playback.prefetch_size)
        if config.playback.prefetch_size < 1:
            raise ConfigurationError("VOICEVOX_PREFETCH_SIZE must be at least 1")
        config.playback.use_streaming = _bool(env, "VOICEVOX_STREAMING_PLAYBACK", config.playback.use_streaming)
        if "VOICEVOX_PLAYER" in env:
            player = env["VOICEVOX_PLAYER"].strip().lower()
            if player not in ("ffplay", "pyaudio", "system"):
                raise ConfigurationError(f"Unknown VOICEVOX_PLAYER: {player!r}")
            config.playback.player = player

        if "VOICEVOX_LOG_LEVEL" in env:
            config.logging.level = env["VOICEVOX_LOG_LEVEL"].upper()
        return config

def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None

def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None

def _bool(env: Mapping[str, str], name: str, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ConfigurationError(f"{name} must be true/false, got {raw!r}")
