"""
Reel API Routes
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fabricshoot.api.deps import get_audio_service, get_current_user_id, get_db, get_storage_service
from fabricshoot.schemas.reel import ReelRequest, ReelResponse
from fabricshoot.workers.base import PipelineError
from fabricshoot.workers.reel import ReelPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-reel", response_model=ReelResponse, response_model_by_alias=True)
async def generate_reel(
    request: ReelRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_service),
    audio=Depends(get_audio_service),
):
    """Generate voiceover and music for a completed content row."""
    try:
        return await ReelPipeline(db, audio, storage).run(user_id, request.source_content_id)
    except PipelineError:
        raise
    except Exception:
        logger.exception("[API] generate-reel failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Reel generation failed",
        )
