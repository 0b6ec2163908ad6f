"""
ElevenLabs Audio Service
Text-to-speech voiceover and instrumental music for reels.
"""

import logging
from typing import AsyncIterator

import httpx
from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs
from elevenlabs.core.api_error import ApiError

from fabricshoot.core.config import settings
from fabricshoot.workers.base import UpstreamServiceError, classify_upstream_failure

logger = logging.getLogger(__name__)


class ElevenLabsAudioService:
    """Async wrapper over the ElevenLabs SDK."""

    def __init__(self, client=None):
        self.client = client or AsyncElevenLabs(
            api_key=settings.ELEVENLABS_API_KEY,
            timeout=settings.AUDIO_TIMEOUT,
        )

    async def _collect(self, stream: AsyncIterator[bytes], what: str) -> bytes:
        try:
            audio = b"".join([chunk async for chunk in stream])
        except ApiError as e:
            logger.error(f"[ElevenLabs] {what} error: HTTP {e.status_code} {str(e.body)[:300]}")
            category = classify_upstream_failure(e.status_code, str(e.body))
            if category is not None:
                raise category
            raise UpstreamServiceError(f"{what.capitalize()} generation failed: {e.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"[ElevenLabs] {what} request failed: {e}")
            raise UpstreamServiceError(f"{what.capitalize()} generation failed")

        if not audio:
            raise UpstreamServiceError(f"{what.capitalize()} generation returned no audio")
        logger.info(f"[ElevenLabs] [OK] {what} generated ({len(audio)} bytes)")
        return audio

    async def text_to_speech(self, text: str) -> bytes:
        stream = self.client.text_to_speech.convert(
            text=text,
            voice_id=settings.ELEVENLABS_VOICE_ID,
            model_id=settings.ELEVENLABS_TTS_MODEL,
            output_format=settings.ELEVENLABS_OUTPUT_FORMAT,
            voice_settings=VoiceSettings(
                stability=0.6,
                similarity_boost=0.75,
                style=0.4,
                use_speaker_boost=True,
            ),
        )
        return await self._collect(stream, "voiceover")

    async def compose_music(self, prompt: str, duration_seconds: int) -> bytes:
        stream = self.client.music.compose(
            prompt=prompt,
            music_length_ms=duration_seconds * 1000,
        )
        return await self._collect(stream, "music")
