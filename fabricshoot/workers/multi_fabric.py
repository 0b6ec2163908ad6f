"""
Multi-Fabric Pipeline
Label detection on a T/D/B/C labelled photo, then one mannequin image per
sample generated concurrently ("separate") or one image of all samples side
by side ("combined").

Pipeline:
1. detect: pending -> analyzing -> detected (labels stored, normalized)
2. generate: detected -> generating -> completed, results fanned out
3. retry: regenerate one result of a completed job in place
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fabricshoot.core.config import settings
from fabricshoot.core.database import SessionLocal
from fabricshoot.models.multi_fabric import MultiFabricJob, MultiFabricResult
from fabricshoot.schemas.job import JobStatus, OutputMode, ResultStatus, UploadKind
from fabricshoot.schemas.multi_fabric import DetectedLabels
from fabricshoot.services.assets import AssetResolver, BackgroundPicker
from fabricshoot.services.groq_llm import Captions
from fabricshoot.services.prompts import PromptContext, build_image_prompt
from fabricshoot.workers.base import (
    InvalidRequestError,
    InvalidTransitionError,
    PipelineError,
    ResourceNotFoundError,
    advance_job_status,
)
from fabricshoot.workers.reconciler import ResultOutcome, ResultReconciler

logger = logging.getLogger(__name__)

COMBINED_LABEL = "combined"
MAIN_LABEL = "main"
VARIANT_LABEL = "color_variant"


@dataclass(frozen=True)
class Sample:
    """One image to generate for a multi-fabric job."""
    label: str
    color_variant: Optional[str]
    description: str


def plan_samples(labels: DetectedLabels) -> List[Sample]:
    """
    Main set first, then one sample per color variant, then numbered fillers
    until the detector's sample count is reached.

    Always returns max(sample_count, 1 + len(color_variants)) samples.
    """
    top = labels.first_piece("T")
    dupatta = labels.first_piece("D")
    bottom = labels.first_piece("B")
    bottom_text = bottom.description if bottom else "plain, solid color matching the top"

    samples = [Sample(
        label=MAIN_LABEL,
        color_variant=None,
        description=(
            f"Top: {top.description if top else 'as shown'}. "
            f"Dupatta: {dupatta.description if dupatta else 'as shown'}. "
            f"Bottom: {bottom_text}."
        ),
    )]

    color_pieces = labels.pieces_with_label("C")
    for i, variant in enumerate(labels.color_variants):
        detail = color_pieces[i].description if i < len(color_pieces) and color_pieces[i].description else variant
        samples.append(Sample(
            label=VARIANT_LABEL,
            color_variant=variant,
            description=(
                f"Same design as the main sample, in this color variant: {detail}. "
                f"Top and dupatta follow this color. Bottom: {bottom_text}."
            ),
        ))

    target = max(labels.sample_count or 1, 1 + len(labels.color_variants))
    for i in range(len(samples), target):
        samples.append(Sample(
            label=f"sample_{i + 1}",
            color_variant=None,
            description=f"Sample {i + 1} from the source image, in the same design language as the main sample.",
        ))
    return samples


def _caption_context(labels: DetectedLabels) -> List[str]:
    return [f"{p.label}: {p.description}" for p in labels.pieces if p.description]


class MultiFabricPipeline:
    """Detect, generate and retry actions on multi-fabric jobs."""

    def __init__(
        self,
        db: Session,
        gemini_service,
        caption_service,
        storage_service,
        picker: Optional[BackgroundPicker] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        reconciler: Optional[ResultReconciler] = None,
    ):
        self.db = db
        self.gemini = gemini_service
        self.captioner = caption_service
        self.storage = storage_service
        self.resolver = AssetResolver(db, picker)
        self.session_factory = session_factory
        self.reconciler = reconciler or ResultReconciler(session_factory, storage_service)

    # --- helpers ------------------------------------------------------------

    def _get_job(self, user_id: str, job_id: Optional[str]) -> MultiFabricJob:
        if not job_id:
            raise InvalidRequestError("jobId is required")
        job = self.db.query(MultiFabricJob).filter(
            MultiFabricJob.id == job_id,
            MultiFabricJob.user_id == user_id,
        ).first()
        if not job:
            raise ResourceNotFoundError("Job not found")
        return job

    def _fail_job(self, job: MultiFabricJob, message: str) -> None:
        self.db.rollback()
        job.status = JobStatus.FAILED.value
        job.error_message = message
        self.db.commit()
        logger.error(f"[Job {job.id}] failed: {message}")

    def _results(self, job_id: str) -> List[MultiFabricResult]:
        self.db.expire_all()
        return (
            self.db.query(MultiFabricResult)
            .filter(MultiFabricResult.job_id == job_id)
            .order_by(MultiFabricResult.created_at)
            .all()
        )

    def _create_result_row(self, job: MultiFabricJob, label: str, color_variant: Optional[str]) -> Optional[str]:
        """Insert one row in "generating"; a failed insert skips only that sample."""
        row = MultiFabricResult(
            job_id=job.id,
            user_id=job.user_id,
            label=label,
            color_variant=color_variant,
            status=ResultStatus.GENERATING.value,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[Job {job.id}] Could not create result row for {label}: {e}")
            return None
        return row.id

    @staticmethod
    def _prompt_context(job: MultiFabricJob, labels: DetectedLabels) -> PromptContext:
        return PromptContext(
            upload_kind=UploadKind.LABELED_MULTI_FABRIC,
            has_bottom_fabric=labels.has_bottom,
            background_provided=bool(job.background_image_url),
            mannequin_reference_provided=bool(job.mannequin_image_url),
        )

    def _sample_prompt(self, job: MultiFabricJob, labels: DetectedLabels, sample: Sample, total: int) -> str:
        ctx = replace(self._prompt_context(job, labels), sample_description=sample.description, variant_count=total)
        return build_image_prompt(ctx)

    def _combined_prompt(self, job: MultiFabricJob, labels: DetectedLabels) -> str:
        ctx = replace(
            self._prompt_context(job, labels),
            combined=True,
            variant_count=labels.sample_count,
            color_variants=tuple(labels.color_variants),
        )
        return build_image_prompt(ctx)

    def _reference_urls(self, job: MultiFabricJob) -> List[str]:
        urls = [job.source_image_url]
        if job.mannequin_image_url:
            urls.append(job.mannequin_image_url)
        if job.background_image_url:
            urls.append(job.background_image_url)
        return urls

    async def _generate_sample(self, result_id: str, user_id: str, prompt: str,
                               references: Sequence, captions: Captions) -> None:
        """One fan-out task. Never raises; the row always ends terminal."""
        try:
            image = await self.gemini.generate_image(prompt, references)
            if image is None:
                outcome = ResultOutcome.failure("Image generation failed")
            else:
                url = await self.storage.upload_generated_image(
                    user_id, image.data, suffix="mannequin", content_type=image.mime_type
                )
                outcome = ResultOutcome.success(url, captions)
        except PipelineError as e:
            outcome = ResultOutcome.failure(e.message)
        except Exception as e:
            logger.exception(f"[Multi-Fabric] Sample {result_id} failed unexpectedly")
            outcome = ResultOutcome.failure(str(e))
        self.reconciler.finalize_result(result_id, outcome)

    # --- actions ------------------------------------------------------------

    async def detect(self, user_id: str, source_image_url: Optional[str]) -> Tuple[MultiFabricJob, DetectedLabels]:
        if not source_image_url:
            raise InvalidRequestError("sourceImageUrl is required")

        job = MultiFabricJob(user_id=user_id, source_image_url=source_image_url,
                             status=JobStatus.PENDING.value)
        self.db.add(job)
        self.db.commit()
        advance_job_status(job, JobStatus.ANALYZING)
        self.db.commit()

        try:
            references = await self.gemini.load_reference_images([source_image_url])
            labels = await self.gemini.detect_labels(references[0])
        except PipelineError as e:
            self._fail_job(job, e.message)
            raise
        except Exception:
            self._fail_job(job, "Label detection failed")
            raise

        job.detected_labels = labels.model_dump()
        advance_job_status(job, JobStatus.DETECTED)
        self.db.commit()
        logger.info(f"[Job {job.id}] Detected {len(labels.pieces)} piece(s), {labels.sample_count} sample(s)")
        return job, labels

    async def generate(
        self,
        user_id: str,
        job_id: Optional[str],
        mannequin_url: Optional[str] = None,
        background_url: Optional[str] = None,
        output_mode: OutputMode = OutputMode.SEPARATE,
    ) -> List[MultiFabricResult]:
        job = self._get_job(user_id, job_id)
        if not JobStatus(job.status).can_transition_to(JobStatus.GENERATING):
            raise InvalidTransitionError(
                f"Job is '{job.status}'; labels must be detected before generating",
                {"jobId": job.id, "status": job.status},
            )

        labels = DetectedLabels.model_validate(job.detected_labels or {}).normalized()
        samples = plan_samples(labels)
        image_count = 1 if output_mode == OutputMode.COMBINED else len(samples)
        sample_count = labels.sample_count if output_mode == OutputMode.COMBINED else len(samples)
        if sample_count > settings.MAX_SAMPLES_PER_JOB:
            raise InvalidRequestError(
                f"Too many samples ({sample_count}); at most {settings.MAX_SAMPLES_PER_JOB} per job",
                {"jobId": job.id},
            )

        job.mannequin_image_url = mannequin_url or None
        job.background_image_url = self.resolver.resolve_background(user_id, background_url)
        job.color_output_mode = output_mode.value
        advance_job_status(job, JobStatus.GENERATING)
        self.db.commit()
        logger.info(f"[Job {job.id}] Generating {image_count} image(s) in {output_mode.value} mode")

        try:
            references = await self.gemini.load_reference_images(self._reference_urls(job))
            captions = await self.captioner.generate_captions(
                references[0].to_data_url(), context_pieces=_caption_context(labels)
            )

            tasks = []
            if output_mode == OutputMode.COMBINED:
                result_id = self._create_result_row(job, COMBINED_LABEL, ", ".join(labels.color_variants) or None)
                if result_id:
                    tasks.append(self._generate_sample(
                        result_id, user_id, self._combined_prompt(job, labels), references, captions
                    ))
            else:
                for sample in samples:
                    result_id = self._create_result_row(job, sample.label, sample.color_variant)
                    if result_id:
                        prompt = self._sample_prompt(job, labels, sample, len(samples))
                        tasks.append(self._generate_sample(result_id, user_id, prompt, references, captions))

            await asyncio.gather(*tasks)
        except PipelineError as e:
            self._fail_job(job, e.message)
            raise
        except Exception as e:
            logger.exception(f"[Job {job.id}] Generation aborted")
            self._fail_job(job, str(e) or "Generation failed")
            raise

        self.db.refresh(job)
        advance_job_status(job, JobStatus.COMPLETED)
        self.db.commit()
        results = self._results(job.id)
        done = sum(1 for r in results if r.status == ResultStatus.COMPLETED.value)
        logger.info(f"[Job {job.id}] [OK] {done}/{len(results)} sample(s) completed")
        return results

    async def retry(self, user_id: str, job_id: Optional[str], result_id: Optional[str]) -> List[MultiFabricResult]:
        """Regenerate one result of a completed job, keeping the row id."""
        job = self._get_job(user_id, job_id)
        if not result_id:
            raise InvalidRequestError("resultId is required")
        if job.status != JobStatus.COMPLETED.value:
            raise InvalidTransitionError(
                f"Job is '{job.status}'; only completed jobs can retry a sample",
                {"jobId": job.id, "status": job.status},
            )
        result = self.db.query(MultiFabricResult).filter(
            MultiFabricResult.id == result_id,
            MultiFabricResult.job_id == job.id,
            MultiFabricResult.user_id == user_id,
        ).first()
        if not result:
            raise ResourceNotFoundError("Result not found")

        labels = DetectedLabels.model_validate(job.detected_labels or {}).normalized()
        if result.label == COMBINED_LABEL:
            prompt = self._combined_prompt(job, labels)
        else:
            samples = plan_samples(labels)
            sample = next(
                (s for s in samples if s.label == result.label and s.color_variant == result.color_variant),
                Sample(label=result.label, color_variant=result.color_variant,
                       description=result.color_variant or "as shown in the source image"),
            )
            prompt = self._sample_prompt(job, labels, sample, len(samples))

        self.reconciler.mark_result_generating(self.db, result)
        logger.info(f"[Job {job.id}] Retrying result {result.id} ({result.label})")

        try:
            references = await self.gemini.load_reference_images(self._reference_urls(job))
            captions = await self.captioner.generate_captions(
                references[0].to_data_url(), context_pieces=_caption_context(labels)
            )
        except PipelineError as e:
            self.reconciler.finalize_result(result.id, ResultOutcome.failure(e.message))
            raise
        await self._generate_sample(result.id, user_id, prompt, references, captions)
        return self._results(job.id)
