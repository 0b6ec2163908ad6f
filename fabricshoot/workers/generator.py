"""
Content Generation Pipeline
Single-job flow: fabric (or garment) photo in, model/mannequin photo plus
bilingual captions out.

Pipeline:
1. Validate request and ownership
2. Resolve background and reference images
3. Classify human presence (fabric uploads only)
4. Build prompt
5. Generate image and captions concurrently
6. Upload and reconcile with the database
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.orm import Session

from fabricshoot.models.assets import FabricImage
from fabricshoot.models.content import GeneratedContent
from fabricshoot.schemas.generate import GenerateContentRequest, GenerateContentResponse
from fabricshoot.schemas.job import UploadKind
from fabricshoot.services.assets import AssetResolver, BackgroundPicker
from fabricshoot.services.prompts import PromptContext, build_image_prompt
from fabricshoot.workers.base import (
    InvalidRequestError,
    PipelineError,
    ResourceNotFoundError,
    UpstreamServiceError,
)
from fabricshoot.workers.reconciler import ResultOutcome, ResultReconciler

logger = logging.getLogger(__name__)

IMAGE_FAILED_MESSAGE = "Image generation failed"


class ContentGenerationPipeline:
    """Runs one generate or regenerate request end to end."""

    def __init__(
        self,
        db: Session,
        gemini_service,
        caption_service,
        storage_service,
        picker: Optional[BackgroundPicker] = None,
        reconciler: Optional[ResultReconciler] = None,
    ):
        self.db = db
        self.gemini = gemini_service
        self.captioner = caption_service
        self.storage = storage_service
        self.resolver = AssetResolver(db, picker)
        self.reconciler = reconciler or ResultReconciler(storage_service=storage_service)

    def _validate(self, user_id: str, request: GenerateContentRequest) -> Optional[GeneratedContent]:
        if not request.source_id or not request.source_image_url:
            raise InvalidRequestError("sourceId and sourceImageUrl are required")
        if request.upload_kind == UploadKind.LABELED_MULTI_FABRIC:
            raise InvalidRequestError("Labelled multi-fabric uploads use the multi-fabric endpoint")

        fabric = self.db.query(FabricImage).filter(
            FabricImage.id == request.source_id,
            FabricImage.user_id == user_id,
        ).first()
        if not fabric:
            raise ResourceNotFoundError("Fabric image not found")

        if not request.result_id:
            return None
        content = self.db.query(GeneratedContent).filter(
            GeneratedContent.id == request.result_id,
            GeneratedContent.user_id == user_id,
        ).first()
        if not content:
            raise ResourceNotFoundError("Content not found")
        return content

    async def run(self, user_id: str, request: GenerateContentRequest) -> GenerateContentResponse:
        existing = self._validate(user_id, request)
        content_id = existing.id if existing else None
        if existing:
            logger.info(f"[Generate] Regenerating content {content_id}")
            self.reconciler.mark_content_generating(self.db, existing)

        try:
            outcome, background_url = await self._generate(user_id, request)
        except PipelineError as e:
            if content_id:
                self.reconciler.mark_content_failed(self.db, content_id, user_id, e.message)
            raise
        except Exception as e:
            logger.exception(f"[Generate] Unexpected failure for fabric {request.source_id}")
            if content_id:
                self.reconciler.mark_content_failed(self.db, content_id, user_id, str(e) or IMAGE_FAILED_MESSAGE)
            raise

        content = await self.reconciler.save_content(
            self.db,
            user_id=user_id,
            source_id=request.source_id,
            outcome=outcome,
            content_id=content_id,
            background_url=background_url,
        )

        if not outcome.ok:
            raise UpstreamServiceError(f"{IMAGE_FAILED_MESSAGE}. Please try again.", {"resultId": content.id})

        logger.info(f"[Generate] [OK] Content {content.id} completed")
        return GenerateContentResponse(
            result_id=content.id,
            generated_image_url=content.model_image_url,
            caption_primary=content.caption_primary or "",
            caption_secondary=content.caption_secondary or "",
        )

    async def _generate(self, user_id: str, request: GenerateContentRequest):
        assets = self.resolver.resolve(
            user_id,
            request.source_image_url,
            background_url=request.background_image_url,
            mannequin_url=request.mannequin_reference_url,
        )
        references = await self.gemini.load_reference_images(assets.reference_urls())
        source = references[0]

        has_human = False
        if request.upload_kind == UploadKind.FABRIC:
            has_human = await self.gemini.detect_human_presence(source)

        ctx = PromptContext(
            upload_kind=request.upload_kind,
            has_human_model=has_human,
            custom_prompt=request.custom_instructions,
            background_provided=assets.background_image_url is not None,
            mannequin_reference_provided=assets.mannequin_image_url is not None,
        )
        prompt = build_image_prompt(ctx)

        # Both calls settle before an image error propagates.
        image, captions = await asyncio.gather(
            self.gemini.generate_image(prompt, references),
            self.captioner.generate_captions(source.to_data_url(), custom_prompt=request.custom_instructions),
            return_exceptions=True,
        )
        for settled in (image, captions):
            if isinstance(settled, BaseException):
                raise settled

        if image is None:
            return ResultOutcome.failure(IMAGE_FAILED_MESSAGE, captions), assets.background_image_url

        suffix = "model" if ctx.upload_kind == UploadKind.FABRIC and not has_human else "mannequin"
        image_url = await self.storage.upload_generated_image(
            user_id, image.data, suffix=suffix, content_type=image.mime_type
        )
        return ResultOutcome.success(image_url, captions), assets.background_image_url
