import asyncio
import logging
import time
from typing import Any, Dict, Optional

from voxqueue.core.exceptions import SynthesisError
from voxqueue.core.metrics import MetricsRegistry
from voxqueue.interfaces.synthesis import ABCSynthesizer
from voxqueue.orchestrator.item import QueueItem

logger = logging.getLogger(__name__)

class AudioGenerator:
    """
    Turns a queue item into WAV bytes through the synthesis backend.

    Raw text costs two backend calls (build query, synthesize); a pre-built
    query costs one. Failures always come out as SynthesisError.
    """

    def __init__(self, synthesizer: ABCSynthesizer, metrics: Optional[MetricsRegistry] = None):
        self.synthesizer = synthesizer
        self.metrics = metrics or MetricsRegistry()

    async def build_query(self, text: str, speaker: int, speed_scale: Optional[float] = None) -> Dict[str, Any]:
        query = await self.synthesizer.build_query(text, speaker)
        # segments play back to back, no padding silence
        query["prePhonemeLength"] = 0
        query["postPhonemeLength"] = 0
        if speed_scale is not None:
            query["speedScale"] = speed_scale
        return query

    async def generate(self, item: QueueItem) -> bytes:
        start = time.perf_counter()
        try:
            if item.query is None:
                item.query = await self.build_query(item.text, item.speaker, item.speed_scale)
            elif item.speed_scale is not None:
                item.query = {**item.query, "speedScale": item.speed_scale}

            audio = await self.synthesizer.synthesize(item.query, item.speaker)

        except asyncio.CancelledError:
            raise

        except SynthesisError:
            self.metrics.increment("synthesis_failed")
            raise

        except Exception as e:
            self.metrics.increment("synthesis_failed")
            raise SynthesisError(f"Synthesis failed for item {item.id}: {e}", speaker=item.speaker) from e

        if not audio:
            self.metrics.increment("synthesis_failed")
            raise SynthesisError(f"Backend returned no audio for item {item.id}", speaker=item.speaker)

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_latency("synthesis", elapsed_ms)
        logger.info(f"Synthesized {len(audio)} bytes in {elapsed_ms:.0f}ms",
                    extra={"item_id": item.id, "bytes": len(audio)})
        return audio
