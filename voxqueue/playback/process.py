import asyncio
import logging
import shutil
from typing import Callable, Dict, List, Optional

from voxqueue.core.exceptions import PlaybackError
from voxqueue.interfaces.playback import ABCPlaybackStrategy

logger = logging.getLogger(__name__)

class BinaryLookup:
    """Looks up player binaries on PATH, once per name and instance."""

    def __init__(self, which: Optional[Callable[[str], Optional[str]]] = None):
        self._which = which or shutil.which
        self._found: Dict[str, Optional[str]] = {}

    def find(self, name: str) -> Optional[str]:
        if name not in self._found:
            self._found[name] = self._which(name)
            logger.debug(f"Lookup {name}: {self._found[name] or 'not found'}")
        return self._found[name]

class ProcessPlaybackStrategy(ABCPlaybackStrategy):
    """
    Shared plumbing for strategies that spawn an external player.

    Each spawned process is tracked until its play call returns, which
    releases the handle exactly once. stop() signals every tracked process;
    a process that was stopped or cancelled never reports an error.
    """

    def __init__(self, stop_grace_seconds: float = 2.0, binaries: Optional[BinaryLookup] = None):
        self.stop_grace_seconds = stop_grace_seconds
        self.binaries = binaries or BinaryLookup()
        # process -> True once it was asked to stop
        self._processes: Dict[asyncio.subprocess.Process, bool] = {}

    @property
    def active_count(self) -> int:
        return len(self._processes)

    def stop(self) -> None:
        for process in list(self._processes):
            self._processes[process] = True
            self._signal(process)
        if self._processes:
            logger.info(f"Stopped {len(self._processes)} playback process(es)")

    async def _run(self, argv: List[str], cancel: asyncio.Event,
                   stdin_data: Optional[bytes] = None, path: Optional[str] = None) -> None:
        if cancel.is_set():
            return

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise PlaybackError(f"Failed to start {argv[0]}: {e}", path=path) from e

        self._processes[process] = False
        logger.debug(f"Spawned {argv[0]} (pid {process.pid})")

        feeder = asyncio.create_task(self._feed(process, stdin_data)) if stdin_data is not None else None
        waiter = asyncio.create_task(process.wait())
        canceller = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({waiter, canceller}, return_when=asyncio.FIRST_COMPLETED)
            if not waiter.done():
                self._processes[process] = True
                await self._terminate(process)
        except asyncio.CancelledError:
            self._processes[process] = True
            self._signal(process)
            raise
        finally:
            canceller.cancel()
            if not waiter.done():
                waiter.cancel()
            if feeder is not None and not feeder.done():
                feeder.cancel()
            stopped = self._processes.pop(process, True)

        if stopped:
            logger.debug(f"{argv[0]} (pid {process.pid}) halted on request")
            return
        if process.returncode != 0:
            raise PlaybackError(
                f"{argv[0]} exited with code {process.returncode}",
                path=path, returncode=process.returncode,
            )

    async def _feed(self, process: asyncio.subprocess.Process, data: bytes):
        try:
            process.stdin.write(data)
            await process.stdin.drain()
            process.stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            # player exited early; its return code decides the outcome
            logger.debug(f"Player stdin closed early (pid {process.pid})")

    async def _terminate(self, process: asyncio.subprocess.Process):
        self._signal(process)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Player pid {process.pid} ignored terminate, killing")
            self._kill(process)
            await process.wait()

    def _signal(self, process: asyncio.subprocess.Process):
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        asyncio.get_running_loop().call_later(self.stop_grace_seconds, self._kill, process)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process):
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
