"""
Speech-to-Text Transcription Service using the OpenAI Whisper API.
"""

import io
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..config import settings
from ..core.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Transcribes recorded voice input to text."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """
        Args:
            api_key: OpenAI API key. Defaults to settings.openai_api_key
            model: Transcription model. Defaults to settings.transcription_model
        """
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.transcription_model
        self.client = AsyncOpenAI(api_key=self.api_key) if self.api_key else None

    def is_configured(self) -> bool:
        return self.client is not None

    async def transcribe_audio(
        self,
        audio_data: bytes,
        filename: str = "audio.webm",
        language: Optional[str] = None,
    ) -> str:
        """
        Transcribe an audio clip.

        Args:
            audio_data: Raw audio bytes
            filename: Original filename (helps Whisper detect the format)
            language: ISO 639-1 code or a locale such as "en-US"

        Returns:
            Transcribed text

        Raises:
            RuntimeError: No API key configured
            ProviderUnavailable: The transcription request failed
        """
        if not self.client:
            raise RuntimeError(
                "OpenAI API key not configured. Please set OPENAI_API_KEY in environment variables."
            )

        audio_file = io.BytesIO(audio_data)
        audio_file.name = filename

        params = {"model": self.model, "file": audio_file}
        if language:
            # Whisper wants the bare language code
            params["language"] = language.split("-")[0].lower()

        try:
            response = await self.client.audio.transcriptions.create(**params)
        except openai.OpenAIError as e:
            raise ProviderUnavailable("whisper", f"transcription failed: {e}") from e

        logger.info(f"Transcribed {len(audio_data)} bytes of audio")
        return response.text.strip()


_transcription_service: Optional[TranscriptionService] = None


def get_transcription_service() -> TranscriptionService:
    """Get the process-wide transcription service instance."""
    global _transcription_service
    if _transcription_service is None:
        _transcription_service = TranscriptionService()
    return _transcription_service
