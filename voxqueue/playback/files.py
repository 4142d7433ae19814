import logging
import os
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Set

from voxqueue.core.exceptions import PlaybackError

logger = logging.getLogger(__name__)

class AudioFileManager:
    """
    Temp-file lifecycle for strategies that play from disk.
    Every acquired path is tracked until released.
    """

    def __init__(self, directory: Optional[str] = None, prefix: str = "voxqueue-", suffix: str = ".wav"):
        self.directory = directory
        self.prefix = prefix
        self.suffix = suffix
        self._paths: Set[str] = set()

    @property
    def active_paths(self) -> Set[str]:
        return set(self._paths)

    def acquire_temp_file(self, data: bytes) -> str:
        fd, path = tempfile.mkstemp(prefix=self.prefix, suffix=self.suffix, dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            self._remove(path)
            raise PlaybackError(f"Failed to write temp audio file: {e}", path=path) from e

        self._paths.add(path)
        logger.debug(f"Acquired temp file {path} ({len(data)} bytes)")
        return path

    def release(self, path: str):
        self._paths.discard(path)
        self._remove(path)

    def release_all(self):
        for path in list(self._paths):
            self.release(path)

    @asynccontextmanager
    async def temp_file(self, data: bytes) -> AsyncIterator[str]:
        """Temp file holding data, deleted on success, error and cancellation alike."""
        path = self.acquire_temp_file(data)
        try:
            yield path
        finally:
            self.release(path)

    def save_audio_file(self, data: bytes, output: str) -> str:
        """Write data to output (parent directories created) and return its absolute path."""
        output = os.path.abspath(output)
        parent = os.path.dirname(output)
        try:
            os.makedirs(parent, exist_ok=True)
            with open(output, "wb") as f:
                f.write(data)
        except OSError as e:
            raise PlaybackError(f"Failed to save audio file: {e}", path=output) from e
        return output

    def _remove(self, path: str):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to delete temp file {path}: {e}")
