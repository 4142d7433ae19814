import asyncio
import os
from typing import Dict, List, Set

import pytest

from voxqueue.core.config import Config
from voxqueue.core.exceptions import PlaybackError, SynthesisError
from voxqueue.core.metrics import MetricsRegistry
from voxqueue.interfaces.playback import ABCPlaybackStrategy
from voxqueue.interfaces.synthesis import ABCSynthesizer
from voxqueue.orchestrator.manager import QueueManager
from voxqueue.playback.files import AudioFileManager

class FakeSynthesizer(ABCSynthesizer):
    """Returns b"RIFF" + text. Texts can be held on a gate or made to fail."""

    def __init__(self):
        self.gates: Dict[str, asyncio.Event] = {}
        self.failures: Set[str] = set()
        self.calls: List[tuple] = []

    def hold(self, *texts: str):
        for text in texts:
            self.gates[text] = asyncio.Event()

    def release(self, text: str):
        self.gates[text].set()

    def synthesized(self) -> List[str]:
        return [text for name, text in self.calls if name == "synthesize"]

    async def build_query(self, text: str, speaker: int):
        self.calls.append(("build_query", text))
        return {"text": text, "speaker": speaker, "speedScale": 1.0,
                "prePhonemeLength": 0.1, "postPhonemeLength": 0.1}

    async def synthesize(self, query, speaker: int) -> bytes:
        text = query["text"]
        self.calls.append(("synthesize", text))
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if text in self.failures:
            raise SynthesisError(f"engine rejected {text}", speaker=speaker, status=500)
        return b"RIFF" + text.encode()

class RecordingStrategy(ABCPlaybackStrategy):
    """Records what was played. With hold=True playback lasts until release() or cancel."""

    def __init__(self):
        self.streaming = True
        self.hold = False
        self.played: List[bytes] = []
        self.cancelled: List[bytes] = []
        self.paths: List[str] = []
        self.fail_on: Set[bytes] = set()
        self.stop_calls = 0
        self._released = asyncio.Event()

    def release(self):
        self._released.set()

    def supports_streaming(self) -> bool:
        return self.streaming

    async def play_from_buffer(self, data: bytes, cancel: asyncio.Event) -> None:
        self.played.append(data)
        if data in self.fail_on:
            raise PlaybackError("output device lost")
        if not self.hold:
            await asyncio.sleep(0)
            return

        released = asyncio.create_task(self._released.wait())
        cancelled = asyncio.create_task(cancel.wait())
        await asyncio.wait({released, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        released.cancel()
        cancelled.cancel()
        if cancel.is_set():
            self.cancelled.append(data)

    async def play_from_file(self, path: str, cancel: asyncio.Event) -> None:
        assert os.path.exists(path)
        self.paths.append(path)
        with open(path, "rb") as f:
            data = f.read()
        await self.play_from_buffer(data, cancel)

    def stop(self) -> None:
        self.stop_calls += 1

async def wait_until(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)

@pytest.fixture
def synth():
    return FakeSynthesizer()

@pytest.fixture
def player():
    return RecordingStrategy()

@pytest.fixture
def until():
    return wait_until

@pytest.fixture
def make_manager(synth, player, tmp_path):
    def factory(prefetch_size: int = 2, immediate: bool = True) -> QueueManager:
        config = Config()
        config.playback.prefetch_size = prefetch_size
        config.defaults.immediate = immediate
        return QueueManager(
            synth,
            strategy=player,
            config=config,
            files=AudioFileManager(directory=str(tmp_path)),
            metrics=MetricsRegistry(),
        )
    return factory
