"""
Reel Pipeline
Voiceover (secondary-language caption) and background music for one
generated content row. Each asset is saved as soon as it exists, so a music
failure still leaves the voiceover on the reel row.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from fabricshoot.core.config import settings
from fabricshoot.models.content import GeneratedContent
from fabricshoot.models.reel import Reel
from fabricshoot.schemas.job import ReelStatus
from fabricshoot.schemas.reel import ReelResponse
from fabricshoot.services.prompts import build_music_prompt
from fabricshoot.workers.base import InvalidRequestError, PipelineError, ResourceNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_VOICEOVER_TEXT = "यह एक सुंदर कुर्ती है।"


class ReelPipeline:
    """Creates or refreshes the reel for a content row."""

    def __init__(self, db: Session, audio_service, storage_service):
        self.db = db
        self.audio = audio_service
        self.storage = storage_service

    def _start_reel(self, user_id: str, content: GeneratedContent) -> Reel:
        reel = self.db.query(Reel).filter(
            Reel.content_id == content.id,
            Reel.user_id == user_id,
        ).first()
        if reel is None:
            reel = Reel(user_id=user_id, content_id=content.id)
            self.db.add(reel)
        reel.status = ReelStatus.GENERATING_AUDIO.value
        reel.error_message = None
        reel.caption_primary = content.caption_primary
        reel.caption_secondary = content.caption_secondary
        self.db.commit()
        return reel

    async def run(self, user_id: str, content_id: Optional[str]) -> ReelResponse:
        if not content_id:
            raise InvalidRequestError("sourceContentId is required")

        content = self.db.query(GeneratedContent).filter(
            GeneratedContent.id == content_id,
            GeneratedContent.user_id == user_id,
        ).first()
        if not content:
            raise ResourceNotFoundError("Content not found")

        reel = self._start_reel(user_id, content)
        logger.info(f"[Reel {reel.id}] Generating audio for content {content.id}")

        try:
            voice = await self.audio.text_to_speech(content.caption_secondary or DEFAULT_VOICEOVER_TEXT)
            reel.voiceover_url = await self.storage.upload_reel_asset(user_id, reel.id, "voiceover", voice)
            self.db.commit()

            music_prompt = build_music_prompt(content.caption_primary or "", settings.MUSIC_DURATION_SECONDS)
            music = await self.audio.compose_music(music_prompt, settings.MUSIC_DURATION_SECONDS)
            reel.music_url = await self.storage.upload_reel_asset(user_id, reel.id, "music", music)
            reel.status = ReelStatus.READY.value
            self.db.commit()
        except Exception as e:
            message = e.message if isinstance(e, PipelineError) else (str(e) or "Reel generation failed")
            logger.error(f"[Reel {reel.id}] failed: {message}")
            reel.status = ReelStatus.FAILED.value
            reel.error_message = message
            self.db.commit()
            raise

        logger.info(f"[Reel {reel.id}] [OK] Audio ready")
        return ReelResponse(
            reel_id=reel.id,
            voiceover_url=reel.voiceover_url,
            music_url=reel.music_url,
            caption_primary=content.caption_primary or "",
            caption_secondary=content.caption_secondary or "",
            image_url=content.model_image_url,
        )
