from abc import ABC, abstractmethod
from typing import Any, Dict

class ABCSynthesizer(ABC):
    """
    Interface for text-to-speech backends.
    Responsibility: Turn text into a synthesis query and a query into audio.
    """

    @abstractmethod
    async def build_query(self, text: str, speaker: int) -> Dict[str, Any]:
        """Build a synthesis query (pitch, speed, intonation...) for text."""
        pass

    @abstractmethod
    async def synthesize(self, query: Dict[str, Any], speaker: int) -> bytes:
        """Render a query to WAV bytes."""
        pass
