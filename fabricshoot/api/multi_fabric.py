"""
Multi-Fabric API Routes
One endpoint dispatched on `action` (detect / generate / retry) plus job polling.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fabricshoot.api.deps import (
    get_background_picker,
    get_caption_service,
    get_current_user_id,
    get_db,
    get_gemini_service,
    get_session_factory,
    get_storage_service,
)
from fabricshoot.models.multi_fabric import MultiFabricJob
from fabricshoot.schemas.multi_fabric import (
    DetectResponse,
    GenerateMultiResponse,
    MultiFabricJobResponse,
    MultiFabricRequest,
    MultiFabricResultResponse,
)
from fabricshoot.workers.base import PipelineError
from fabricshoot.workers.multi_fabric import MultiFabricPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-multi-fabric", response_model_by_alias=True)
async def generate_multi_fabric(
    request: MultiFabricRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_service),
    gemini=Depends(get_gemini_service),
    captioner=Depends(get_caption_service),
    picker=Depends(get_background_picker),
    session_factory=Depends(get_session_factory),
):
    """
    detect: create a job and detect T/D/B/C labels.
    generate: fan out one image per sample (or one combined image).
    retry: regenerate a single result of a completed job.
    """
    logger.info(f"[API] generate-multi-fabric action={request.action} job={request.job_id}")
    pipeline = MultiFabricPipeline(
        db, gemini, captioner, storage, picker=picker, session_factory=session_factory
    )
    try:
        if request.action == "detect":
            job, labels = await pipeline.detect(user_id, request.source_image_url)
            return DetectResponse(job_id=job.id, detected_labels=labels).model_dump(mode="json", by_alias=True)

        if request.action == "generate":
            results = await pipeline.generate(
                user_id,
                request.job_id,
                mannequin_url=request.mannequin_reference_url,
                background_url=request.background_image_url,
                output_mode=request.output_mode,
            )
        else:
            results = await pipeline.retry(user_id, request.job_id, request.result_id)

        return GenerateMultiResponse(
            job_id=request.job_id,
            results=[MultiFabricResultResponse.model_validate(r) for r in results],
        ).model_dump(mode="json", by_alias=True)
    except PipelineError:
        raise
    except Exception:
        logger.exception(f"[API] generate-multi-fabric {request.action} failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Multi-fabric generation failed",
        )


@router.get("/multi-fabric/jobs/{job_id}", response_model=MultiFabricJobResponse, response_model_by_alias=True)
async def get_multi_fabric_job(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Poll a job's status and its results."""
    job = db.query(MultiFabricJob).filter(
        MultiFabricJob.id == job_id,
        MultiFabricJob.user_id == user_id,
    ).first()
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job
