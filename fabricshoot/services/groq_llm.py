"""
Groq LLM Service
Uses a Groq vision model for bilingual marketing captions. Captions are
best-effort: no failure here may block image delivery.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from groq import AsyncGroq, APIError

from fabricshoot.core.config import settings
from fabricshoot.services.parsing import extract_json_object
from fabricshoot.services.prompts import build_caption_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Captions:
    primary: str = ""
    secondary: str = ""


EMPTY_CAPTIONS = Captions()


def parse_captions(raw: str, primary_key: str, secondary_key: str) -> Captions:
    """
    Read {primary_key: ..., secondary_key: ...} out of free-form model text.

    Without a decodable JSON object the whole response becomes the primary
    caption and the secondary one stays empty.
    """
    raw = raw or ""
    parsed = extract_json_object(raw)
    if parsed is None:
        return Captions(primary=raw.strip(), secondary="")
    return Captions(
        primary=str(parsed.get(primary_key) or ""),
        secondary=str(parsed.get(secondary_key) or ""),
    )


class GroqCaptionService:
    """Service for Groq caption generation."""

    def __init__(self, client=None):
        self.client = client or AsyncGroq(api_key=settings.GROQ_API_KEY)
        self.model = settings.GROQ_CAPTION_MODEL
        self.primary_language = settings.CAPTION_PRIMARY_LANGUAGE.lower()
        self.secondary_language = settings.CAPTION_SECONDARY_LANGUAGE.lower()

    def parse(self, raw: str) -> Captions:
        return parse_captions(raw, self.primary_language, self.secondary_language)

    async def generate_captions(
        self,
        source_image_url: str,
        context_pieces: Optional[Sequence[str]] = None,
        custom_prompt: Optional[str] = None,
    ) -> Captions:
        """
        One request for both languages.

        `source_image_url` may be an http(s) URL or a data: URL.
        """
        prompt = build_caption_prompt(
            self.primary_language,
            self.secondary_language,
            context_pieces=context_pieces,
            custom_prompt=custom_prompt,
        )
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": source_image_url}},
                        ],
                    }
                ],
                temperature=settings.GROQ_TEMPERATURE,
                max_tokens=1024,
            )
        except APIError as e:
            logger.error(f"[Groq] Caption request failed: {e}")
            return EMPTY_CAPTIONS

        raw = response.choices[0].message.content or ""
        captions = self.parse(raw)
        if not captions.secondary:
            logger.warning("[Groq] Secondary caption missing from model output")
        return captions
