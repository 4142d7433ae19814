import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from voxqueue.core.config import SynthesisConfig
from voxqueue.core.exceptions import SynthesisError
from voxqueue.interfaces.synthesis import ABCSynthesizer

logger = logging.getLogger(__name__)

class VoicevoxClient(ABCSynthesizer):
    """
    HTTP client for a VOICEVOX-compatible engine.
    Every failure (connection, timeout, non-200) surfaces as SynthesisError.
    """

    def __init__(self, config: SynthesisConfig):
        self.config = config
        self.base_url = config.url.rstrip("/")

    async def build_query(self, text: str, speaker: int) -> Dict[str, Any]:
        logger.debug(f"Requesting audio query (speaker={speaker}, {len(text)} chars)")
        return await self._request(
            "POST", "/audio_query",
            params={"text": text, "speaker": str(speaker)},
            speaker=speaker,
        )

    async def synthesize(self, query: Dict[str, Any], speaker: int) -> bytes:
        return await self._request(
            "POST", "/synthesis",
            params={"speaker": str(speaker)},
            json=query,
            headers={"Accept": "audio/wav"},
            speaker=speaker,
            binary=True,
        )

    async def build_query_from_preset(self, text: str, preset_id: int,
                                      core_version: Optional[str] = None) -> Dict[str, Any]:
        params = {"text": text, "preset_id": str(preset_id)}
        if core_version:
            params["core_version"] = core_version
        return await self._request("POST", "/audio_query_from_preset", params=params)

    async def get_speakers(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/speakers")

    async def get_speaker_info(self, speaker_uuid: str) -> Dict[str, Any]:
        return await self._request("GET", "/speaker_info", params={"speaker_uuid": speaker_uuid})

    async def check_health(self) -> Dict[str, Any]:
        """
        Probe the engine's /version endpoint.

        Returns:
            {"connected": bool, "url": str} plus "version" when reachable
        """
        try:
            version = await self._request("GET", "/version")
        except SynthesisError as e:
            logger.warning(f"Engine at {self.base_url} unreachable: {e}")
            return {"connected": False, "url": self.base_url}
        return {"connected": True, "version": version, "url": self.base_url}

    async def _request(self, method: str, endpoint: str, params: Dict[str, str] = None,
                       json: Any = None, headers: Dict[str, str] = None,
                       speaker: Optional[int] = None, binary: bool = False):
        url = f"{self.base_url}{endpoint}"
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, params=params, json=json, headers=headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"Engine API error {response.status} on {endpoint}: {error_text[:200]}")
                        raise SynthesisError(
                            f"Request to {endpoint} failed: {response.status}",
                            speaker=speaker, status=response.status,
                        )
                    if binary:
                        return await response.read()
                    return await response.json(content_type=None)

        except asyncio.CancelledError:
            raise

        except SynthesisError:
            raise

        except asyncio.TimeoutError:
            raise SynthesisError(
                f"Request to {endpoint} timed out after {self.config.timeout_seconds}s", speaker=speaker
            ) from None

        except (aiohttp.ClientError, ValueError) as e:
            raise SynthesisError(f"Request to {endpoint} failed: {e}", speaker=speaker) from e
