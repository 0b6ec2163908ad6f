"""
Result Reconciler
Persists generation outcomes and detects inputs deleted mid-generation.

Rules:
- a result's image URL is set if and only if its status is "completed"
- no result is left in "generating" once its task has finished
- regeneration overwrites the same row and resets approval to "pending"
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fabricshoot.core.config import settings
from fabricshoot.core.database import SessionLocal
from fabricshoot.models.assets import FabricImage
from fabricshoot.models.content import GeneratedContent
from fabricshoot.models.multi_fabric import MultiFabricResult
from fabricshoot.schemas.job import ApprovalStatus, ResultStatus
from fabricshoot.services.groq_llm import Captions, EMPTY_CAPTIONS
from fabricshoot.workers.base import SourceRemovedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResultOutcome:
    """Either an uploaded image (plus captions) or an error message."""
    image_url: Optional[str] = None
    captions: Captions = EMPTY_CAPTIONS
    error: Optional[str] = None

    @classmethod
    def success(cls, image_url: str, captions: Captions) -> "ResultOutcome":
        return cls(image_url=image_url, captions=captions)

    @classmethod
    def failure(cls, error: str, captions: Captions = EMPTY_CAPTIONS) -> "ResultOutcome":
        return cls(error=error or "Unknown error", captions=captions)

    @property
    def ok(self) -> bool:
        return self.image_url is not None and self.error is None


class ResultReconciler:
    """Writes outcomes to result rows."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, storage_service=None):
        self.session_factory = session_factory
        self.storage_service = storage_service

    # --- multi-fabric results (one session per fan-out task) ---------------

    def finalize_result(self, result_id: str, outcome: ResultOutcome) -> None:
        """Write a sample's terminal state. DB failures are recorded, never raised."""
        db = self.session_factory()
        try:
            result = db.get(MultiFabricResult, result_id)
            if result is None:
                logger.warning(f"[Reconciler] Result {result_id} vanished before finalize")
                return
            if outcome.ok:
                result.generated_image_url = outcome.image_url
                result.caption_primary = outcome.captions.primary
                result.caption_secondary = outcome.captions.secondary
                result.status = ResultStatus.COMPLETED.value
                result.error_message = None
            else:
                result.generated_image_url = None
                result.status = ResultStatus.FAILED.value
                result.error_message = outcome.error
            db.commit()
            logger.info(f"[Reconciler] Result {result_id} -> {result.status}")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Reconciler] Could not save result {result_id}: {e}")
            self._record_write_failure(result_id, e)
        finally:
            db.close()

    def _record_write_failure(self, result_id: str, error: Exception) -> None:
        db = self.session_factory()
        try:
            db.query(MultiFabricResult).filter(MultiFabricResult.id == result_id).update({
                MultiFabricResult.status: ResultStatus.FAILED.value,
                MultiFabricResult.generated_image_url: None,
                MultiFabricResult.error_message: f"Could not save result: {error}"[:1000],
            })
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Reconciler] Result {result_id} left unsaved: {e}")
        finally:
            db.close()

    def mark_result_generating(self, db: Session, result: MultiFabricResult) -> None:
        """Reset a row in place before regenerating it."""
        result.status = ResultStatus.GENERATING.value
        result.generated_image_url = None
        result.error_message = None
        result.approval_status = ApprovalStatus.PENDING.value
        db.commit()

    # --- single-job content (request session) ------------------------------

    def mark_content_generating(self, db: Session, content: GeneratedContent) -> None:
        content.generation_status = ResultStatus.GENERATING.value
        content.model_image_url = None
        content.error_message = None
        content.status = ApprovalStatus.PENDING.value
        db.commit()

    def mark_content_failed(self, db: Session, content_id: str, user_id: str, error: str) -> None:
        """Best effort; a vanished row needs no update."""
        try:
            db.rollback()
            db.query(GeneratedContent).filter(
                GeneratedContent.id == content_id,
                GeneratedContent.user_id == user_id,
            ).update({
                GeneratedContent.generation_status: ResultStatus.FAILED.value,
                GeneratedContent.model_image_url: None,
                GeneratedContent.error_message: error,
            })
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Reconciler] Could not mark content {content_id} failed: {e}")

    async def _orphaned_output(self, image_url: Optional[str]) -> Optional[str]:
        """Apply the orphan policy; returns the URL the caller may still see."""
        if not image_url:
            return None
        if settings.DELETE_ORPHANED_OUTPUTS and self.storage_service is not None:
            logger.warning(f"[Reconciler] Deleting orphaned output {image_url}")
            await self.storage_service.delete_url(image_url)
            return None
        logger.warning(f"[Reconciler] Retaining orphaned output {image_url} (not linked to any row)")
        return image_url

    @staticmethod
    def _apply(content: GeneratedContent, outcome: ResultOutcome, background_url: Optional[str]) -> None:
        content.caption_primary = outcome.captions.primary
        content.caption_secondary = outcome.captions.secondary
        content.background_image_url = background_url
        content.status = ApprovalStatus.PENDING.value
        if outcome.ok:
            content.model_image_url = outcome.image_url
            content.generation_status = ResultStatus.COMPLETED.value
            content.error_message = None
        else:
            content.model_image_url = None
            content.generation_status = ResultStatus.FAILED.value
            content.error_message = outcome.error

    async def save_content(
        self,
        db: Session,
        user_id: str,
        source_id: str,
        outcome: ResultOutcome,
        content_id: Optional[str] = None,
        background_url: Optional[str] = None,
    ) -> GeneratedContent:
        """
        Update (regeneration) or insert the content row for a finished generation.

        Raises SourceRemovedError when the content row (update path) or the
        fabric row (insert path) disappeared while generation was running,
        including inserts rejected by the foreign key.
        """
        if content_id:
            content = db.query(GeneratedContent).filter(
                GeneratedContent.id == content_id,
                GeneratedContent.user_id == user_id,
            ).first()
            if content is None:
                raise SourceRemovedError(generated_image_url=await self._orphaned_output(outcome.image_url))
            self._apply(content, outcome, background_url)
            db.commit()
            return content

        fabric = db.query(FabricImage).filter(
            FabricImage.id == source_id,
            FabricImage.user_id == user_id,
        ).first()
        if fabric is None:
            logger.warning(f"[Reconciler] Fabric {source_id} removed during generation")
            raise SourceRemovedError(generated_image_url=await self._orphaned_output(outcome.image_url))

        content = GeneratedContent(user_id=user_id, fabric_id=source_id)
        self._apply(content, outcome, background_url)
        db.add(content)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"[Reconciler] Insert for fabric {source_id} hit a foreign key violation: {e.orig}")
            raise SourceRemovedError(generated_image_url=await self._orphaned_output(outcome.image_url))
        return content
