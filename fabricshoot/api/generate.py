"""
Generation API Routes
Single-job content generation and regeneration.
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
    get_storage_service,
)
from fabricshoot.models.content import GeneratedContent
from fabricshoot.schemas.generate import ContentResponse, GenerateContentRequest, GenerateContentResponse
from fabricshoot.workers.base import PipelineError
from fabricshoot.workers.generator import ContentGenerationPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-content", response_model=GenerateContentResponse, response_model_by_alias=True)
async def generate_content(
    request: GenerateContentRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_service),
    gemini=Depends(get_gemini_service),
    captioner=Depends(get_caption_service),
    picker=Depends(get_background_picker),
):
    """
    Generate (or, with resultId, regenerate) a model/mannequin photo and
    bilingual captions for one uploaded fabric.
    """
    logger.info(f"[API] generate-content for fabric {request.source_id} (user {user_id})")
    pipeline = ContentGenerationPipeline(db, gemini, captioner, storage, picker=picker)
    try:
        return await pipeline.run(user_id, request)
    except PipelineError:
        raise
    except Exception:
        logger.exception("[API] generate-content failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Generation failed",
        )


@router.get("/content/{content_id}", response_model=ContentResponse, response_model_by_alias=True)
async def get_content(
    content_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get a stored generation result."""
    content = db.query(GeneratedContent).filter(
        GeneratedContent.id == content_id,
        GeneratedContent.user_id == user_id,
    ).first()
    if not content:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found")
    return content
