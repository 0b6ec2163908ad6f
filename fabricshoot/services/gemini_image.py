"""
Gemini Image Generation Service
Uses native Gemini image generation models (gemini-3-pro-image-preview) for
garment photos and a Gemini flash vision model for cheap classification
(human presence, fabric label detection).
Documentation: https://ai.google.dev/gemini-api/docs/image-generation
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from fabricshoot.core.config import settings
from fabricshoot.schemas.multi_fabric import DetectedLabels
from fabricshoot.services.parsing import extract_json_object
from fabricshoot.services.prompts import HUMAN_DETECTION_PROMPT, LABEL_DETECTION_PROMPT
from fabricshoot.workers.base import (
    InvalidRequestError,
    UpstreamServiceError,
    classify_upstream_failure,
    retry_until,
)

logger = logging.getLogger(__name__)


def sniff_image_type(data: bytes) -> Optional[str]:
    """Recognized image MIME type from magic bytes, else None."""
    if not data:
        return None
    if data.startswith(b'\x89PNG\r\n\x1a\n'):
        return "image/png"
    if data.startswith(b'\xff\xd8'):
        return "image/jpeg"
    if data.startswith(b'RIFF') and data[8:12] == b'WEBP':
        return "image/webp"
    return None


@dataclass(frozen=True)
class ReferenceImage:
    url: str
    data: bytes
    mime_type: str

    def to_part(self) -> types.Part:
        return types.Part.from_bytes(data=self.data, mime_type=self.mime_type)

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


# Outcome of one image request, parsed once at the API boundary.

@dataclass(frozen=True)
class ImageSuccess:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class NoImage:
    reason: str


@dataclass(frozen=True)
class HttpError:
    code: int  # 0 for transport errors
    message: str


ImageGenerationOutcome = Union[ImageSuccess, NoImage, HttpError]


class LabelDetectionError(UpstreamServiceError):
    """Detector call failed."""

    def __init__(self, message: str = "Label detection failed"):
        super().__init__(message)


class LabelParseError(UpstreamServiceError):
    """Detector answered, but not with a usable label set."""

    def __init__(self, message: str = "Could not parse label detection"):
        super().__init__(message)


def parse_image_response(response) -> ImageGenerationOutcome:
    """Find the first inline image part of a recognized type."""
    candidates = getattr(response, "candidates", None) or []
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        for part in (getattr(content, "parts", None) or []):
            inline = getattr(part, "inline_data", None)
            if inline is None or not inline.data:
                continue
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            mime_type = sniff_image_type(data)
            if mime_type:
                return ImageSuccess(data=data, mime_type=mime_type)
            logger.warning(f"[Gemini] Ignoring inline part with unrecognized type {inline.mime_type}")

    finish_reason = getattr(candidates[0], "finish_reason", None) if candidates else "no candidates"
    return NoImage(reason=f"No image in response (finish reason: {finish_reason})")


def parse_has_model(text: str) -> bool:
    """Lenient read of {"has_model": ...}; anything unclear is False."""
    parsed = extract_json_object(text or "")
    if not parsed:
        return False
    value = parsed.get("has_model", False)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


class GeminiImageService:
    """Service for image generation and vision classification using Gemini models."""

    def __init__(self, storage_service=None, client=None):
        self.client = client or genai.Client(api_key=settings.GEMINI_API_KEY)
        self.storage_service = storage_service
        self.image_model = settings.GEMINI_IMAGE_MODEL
        self.vision_model = settings.GEMINI_VISION_MODEL
        self.max_attempts = settings.IMAGE_GENERATION_MAX_ATTEMPTS
        logger.info(f"[Gemini] Image model: {self.image_model}, vision model: {self.vision_model}")

    async def _load_image_bytes(self, image_url: str) -> bytes:
        """Load image bytes through the storage service, or plain HTTP."""
        if self.storage_service:
            return await self.storage_service.download_bytes(image_url)
        async with httpx.AsyncClient() as client:
            response = await client.get(image_url, timeout=settings.HTTP_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
            return response.content

    async def load_reference_images(self, urls: Sequence[str]) -> List[ReferenceImage]:
        """Fetch every reference once, concurrently. Unloadable images reject the request."""
        async def load(url: str) -> ReferenceImage:
            try:
                data = await self._load_image_bytes(url)
            except Exception as e:
                logger.error(f"[Gemini] Failed to load image from {url}: {e}")
                raise InvalidRequestError(f"Could not load image: {url}")
            mime_type = sniff_image_type(data)
            if mime_type is None:
                raise InvalidRequestError(f"Unsupported image format: {url}")
            return ReferenceImage(url=url, data=data, mime_type=mime_type)

        return list(await asyncio.gather(*(load(url) for url in urls)))

    async def request_image(self, prompt: str, references: Sequence[ReferenceImage]) -> ImageGenerationOutcome:
        """One generation call. Never raises for upstream failures."""
        contents = [prompt] + [ref.to_part() for ref in references]
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])
        try:
            response = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            logger.warning(f"[Gemini] Image request failed: HTTP {e.code} {e.message}")
            return HttpError(code=e.code or 0, message=str(e.message or e))
        except (httpx.HTTPError, asyncio.TimeoutError, ConnectionError) as e:
            logger.warning(f"[Gemini] Image request transport error: {e}")
            return HttpError(code=0, message=str(e))

        outcome = parse_image_response(response)
        if isinstance(outcome, NoImage):
            logger.warning(f"[Gemini] {outcome.reason}")
        return outcome

    async def generate_image(self, prompt: str, references: Sequence[ReferenceImage]) -> Optional[ImageSuccess]:
        """
        Generate an image with one retry on any failed attempt.

        Returns None when both attempts produced no image (soft failure).
        Raises UpstreamRateLimitedError / UpstreamQuotaExhaustedError when the
        final attempt was refused for those reasons.
        """
        logger.info(f"[Gemini] Generating image ({len(references)} reference(s)), prompt: {prompt[:80]}...")
        result = await retry_until(
            lambda: self.request_image(prompt, references),
            accept=lambda outcome: isinstance(outcome, ImageSuccess),
            max_attempts=self.max_attempts,
            label="image generation",
        )
        outcome = result.value
        if result.succeeded:
            logger.info(f"[Gemini] [OK] Image generated on attempt {result.attempts} ({len(outcome.data)} bytes)")
            return outcome
        if isinstance(outcome, HttpError):
            category = classify_upstream_failure(outcome.code, outcome.message)
            if category is not None:
                raise category
        return None

    async def _vision_text(self, prompt: str, image: ReferenceImage) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.vision_model,
            contents=[prompt, image.to_part()],
            config=types.GenerateContentConfig(temperature=0.1),
        )
        return response.text or ""

    async def detect_human_presence(self, image: ReferenceImage) -> bool:
        """
        True when the source already shows a person wearing the garment.

        Classification only picks a prompt variant, so every failure answers
        False (treat as plain fabric) instead of failing the job.
        """
        try:
            text = await self._vision_text(HUMAN_DETECTION_PROMPT, image)
        except Exception as e:
            logger.warning(f"[Gemini Vision] Human detection failed, assuming fabric only: {e}")
            return False
        has_model = parse_has_model(text)
        logger.info(f"[Gemini Vision] has_model={has_model}")
        return has_model

    async def detect_labels(self, image: ReferenceImage) -> DetectedLabels:
        """Detect T/D/B/C labelled pieces. Returns the normalized label set."""
        try:
            text = await self._vision_text(LABEL_DETECTION_PROMPT, image)
        except genai_errors.APIError as e:
            logger.error(f"[Gemini Vision] Label detection error: HTTP {e.code} {e.message}")
            category = classify_upstream_failure(e.code or 0, str(e.message or ""))
            raise category if category is not None else LabelDetectionError()
        except (httpx.HTTPError, asyncio.TimeoutError, ConnectionError) as e:
            logger.error(f"[Gemini Vision] Label detection transport error: {e}")
            raise LabelDetectionError()

        parsed = extract_json_object(text)
        if parsed is None:
            logger.error(f"[Gemini Vision] Unparseable label detection: {text[:200]}")
            raise LabelParseError()
        try:
            labels = DetectedLabels.model_validate(parsed)
        except ValidationError as e:
            logger.error(f"[Gemini Vision] Invalid label detection payload: {e}")
            raise LabelParseError()
        return labels.normalized()
