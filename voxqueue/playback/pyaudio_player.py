import asyncio
import io
import logging
import wave

from voxqueue.core.exceptions import PlaybackError
from voxqueue.interfaces.playback import ABCPlaybackStrategy

try:
    import pyaudio
except ImportError:
    pyaudio = None

logger = logging.getLogger(__name__)

def pyaudio_available() -> bool:
    return pyaudio is not None

class PyAudioStrategy(ABCPlaybackStrategy):
    """
    In-process playback through PortAudio.

    WAV frames are written chunk by chunk from an executor thread;
    cancellation and stop() are honoured between chunks.
    """

    CHUNK_FRAMES = 1024

    def __init__(self, output_device_index: int = -1):
        self.output_device_index = output_device_index
        self.pa = None
        self._stream = None
        self._stop_requested = False

    def supports_streaming(self) -> bool:
        return pyaudio is not None

    async def play_from_buffer(self, data: bytes, cancel: asyncio.Event) -> None:
        try:
            wav = wave.open(io.BytesIO(data), "rb")
        except (wave.Error, EOFError) as e:
            raise PlaybackError(f"Audio is not a playable WAV: {e}") from e
        with wav:
            await self._play_wave(wav, cancel)

    async def play_from_file(self, path: str, cancel: asyncio.Event) -> None:
        try:
            wav = wave.open(path, "rb")
        except FileNotFoundError as e:
            raise PlaybackError(f"Audio file not found: {path}", path=path) from e
        except (wave.Error, EOFError) as e:
            raise PlaybackError(f"Audio file is not a playable WAV: {e}", path=path) from e
        with wav:
            await self._play_wave(wav, cancel)

    def stop(self) -> None:
        if self._stream is not None:
            self._stop_requested = True
            logger.info("PyAudio playback stop requested")

    def close(self):
        if self.pa:
            self.pa.terminate()
            self.pa = None

    async def _play_wave(self, wav: wave.Wave_read, cancel: asyncio.Event):
        if pyaudio is None:
            raise PlaybackError("PyAudio is not installed (pip install 'voxqueue[audio]')")
        if cancel.is_set():
            return

        if self.pa is None:
            self.pa = pyaudio.PyAudio()

        device_index = None if self.output_device_index < 0 else self.output_device_index
        try:
            stream = self.pa.open(
                format=pyaudio.get_format_from_width(wav.getsampwidth()),
                channels=wav.getnchannels(),
                rate=wav.getframerate(),
                output=True,
                output_device_index=device_index,
            )
        except (OSError, ValueError) as e:
            raise PlaybackError(f"Failed to open output stream: {e}") from e

        self._stream = stream
        self._stop_requested = False
        loop = asyncio.get_running_loop()
        try:
            while not cancel.is_set() and not self._stop_requested:
                frames = wav.readframes(self.CHUNK_FRAMES)
                if not frames:
                    break
                await loop.run_in_executor(None, stream.write, frames)
        except OSError as e:
            if not (cancel.is_set() or self._stop_requested):
                raise PlaybackError(f"Output stream failed: {e}") from e
        finally:
            self._stream = None
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing output stream: {e}")
