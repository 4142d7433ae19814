import asyncio
import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from voxqueue.core.config import Config
from voxqueue.core.exceptions import EmptyInputError
from voxqueue.core.metrics import MetricsRegistry
from voxqueue.orchestrator.item import PlaybackOptions, QueueItem
from voxqueue.orchestrator.manager import QueueManager
from voxqueue.synthesis.voicevox import VoicevoxClient

logger = logging.getLogger(__name__)

MAX_SEGMENT_LENGTH = 150

# Split after sentence-ending punctuation (Japanese and ASCII) and newlines
_SENTENCE_END = re.compile(r"(?<=[。！？!?．.\n])")

@dataclass
class SpeechSegment:
    text: str
    speaker: Optional[int] = None

SpeechInput = Union[str, Sequence[str], Sequence[SpeechSegment]]

def split_text(text: str, max_length: int = MAX_SEGMENT_LENGTH) -> List[str]:
    """
    Break text into sentence-aligned segments of at most max_length characters.
    Sentences longer than max_length are cut hard.
    """
    segments: List[str] = []
    current = ""
    for piece in _SENTENCE_END.split(text):
        if not piece.strip():
            current += piece
            continue
        if current.strip() and len(current) + len(piece) > max_length:
            segments.append(current.strip())
            current = ""
        current += piece
        while len(current.strip()) > max_length:
            stripped = current.strip()
            segments.append(stripped[:max_length])
            current = stripped[max_length:]
    if current.strip():
        segments.append(current.strip())
    return segments

class SpeechClient:
    """
    High-level speech API on top of the queue manager.

    Long text is split into segments that are queued in order; only the first
    segment may interrupt current playback.
    """

    def __init__(self, config: Optional[Config] = None,
                 synthesizer: Optional[VoicevoxClient] = None,
                 queue: Optional[QueueManager] = None,
                 metrics: Optional[MetricsRegistry] = None,
                 max_segment_length: int = MAX_SEGMENT_LENGTH):
        self.config = config or Config()
        self.synthesizer = synthesizer or VoicevoxClient(self.config.synthesis)
        self.queue = queue or QueueManager(self.synthesizer, config=self.config, metrics=metrics)
        self.max_segment_length = max_segment_length

    async def __aenter__(self) -> "SpeechClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def speak(self, text: SpeechInput, speaker: Optional[int] = None,
                    speed_scale: Optional[float] = None,
                    options: Optional[PlaybackOptions] = None) -> List[QueueItem]:
        """
        Queue text for playback and wait on whatever handles options request.

        Args:
            text: A string (segmented automatically), a list of strings,
                or a list of SpeechSegment with per-segment speakers
            speaker: Voice for segments that do not name one
            speed_scale: Speed applied to every segment
            options: Playback options for the first segment; later segments
                never interrupt

        Returns:
            The queued items, in playback order

        Raises:
            EmptyInputError: no segment has any text
        """
        segments = self._normalize(text, speaker)
        if not segments:
            raise EmptyInputError("Text is empty")

        options = options or PlaybackOptions()
        follow_up = replace(options, immediate=False)

        items: List[QueueItem] = []
        handles: List[asyncio.Future] = []
        for index, segment in enumerate(segments):
            result = await self.queue.enqueue(
                segment.text,
                speaker=segment.speaker,
                speed_scale=speed_scale,
                options=options if index == 0 else follow_up,
            )
            items.append(result.item)
            handles.extend(result.handles)

        logger.info(f"Queued {len(segments)} segment(s)", extra={"segments": len(segments)})
        if handles:
            await asyncio.gather(*handles)
        return items

    async def generate_query(self, text: str, speaker: Optional[int] = None,
                             speed_scale: Optional[float] = None) -> Dict[str, Any]:
        speaker = self._speaker(speaker)
        if speed_scale is None:
            speed_scale = self.config.synthesis.default_speed_scale
        return await self.queue.generator.build_query(text, speaker, speed_scale)

    async def generate_audio_file(self, text: str, output: Optional[str] = None,
                                  speaker: Optional[int] = None,
                                  speed_scale: Optional[float] = None) -> str:
        """Synthesize text straight to a WAV file, bypassing the queue. Returns the path."""
        if not text or not text.strip():
            raise EmptyInputError("Text is empty")
        speaker = self._speaker(speaker)
        query = await self.generate_query(text, speaker, speed_scale)
        audio = await self.synthesizer.synthesize(query, speaker)

        if not output:
            stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
            output = f"audio_{stamp}_speaker{speaker}.wav"
        path = self.queue.files.save_audio_file(audio, output)
        logger.info(f"Wrote {len(audio)} bytes to {path}")
        return path

    async def get_speakers(self) -> List[Dict[str, Any]]:
        return await self.synthesizer.get_speakers()

    async def get_speaker_info(self, speaker_uuid: str) -> Dict[str, Any]:
        return await self.synthesizer.get_speaker_info(speaker_uuid)

    async def check_health(self) -> Dict[str, Any]:
        return await self.synthesizer.check_health()

    async def stop_speaker(self):
        await self.queue.clear_queue()

    async def close(self):
        await self.queue.close()

    def _speaker(self, speaker: Optional[int]) -> int:
        return self.config.synthesis.default_speaker if speaker is None else speaker

    def _normalize(self, text: SpeechInput, speaker: Optional[int]) -> List[SpeechSegment]:
        if isinstance(text, str):
            return [SpeechSegment(part, self._speaker(speaker))
                    for part in split_text(text, self.max_segment_length)]

        segments = []
        for entry in text:
            if isinstance(entry, SpeechSegment):
                if entry.text.strip():
                    voice = speaker if entry.speaker is None else entry.speaker
                    segments.append(SpeechSegment(entry.text, self._speaker(voice)))
            elif entry.strip():
                segments.append(SpeechSegment(entry, self._speaker(speaker)))
        return segments
