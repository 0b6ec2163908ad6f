"""
API Dependencies
Common dependencies for FastAPI routes (database sessions, caller identity,
external service clients). Tests override these through
app.dependency_overrides.
"""

import logging
from typing import Callable, Generator, Optional

import httpx
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from fabricshoot.core.config import settings
from fabricshoot.core.database import SessionLocal
from fabricshoot.services.assets import BackgroundPicker
from fabricshoot.services.elevenlabs_audio import ElevenLabsAudioService
from fabricshoot.services.gemini_image import GeminiImageService
from fabricshoot.services.groq_llm import GroqCaptionService
from fabricshoot.services.storage import StorageService

logger = logging.getLogger(__name__)


def get_db() -> Generator:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    """Factory for the independent sessions used by fan-out tasks."""
    return SessionLocal


async def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the bearer token to a user id through the Supabase auth API."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/user",
                headers={"Authorization": authorization, "apikey": settings.SUPABASE_ANON_KEY},
                timeout=settings.HTTP_TIMEOUT,
            )
    except httpx.HTTPError as e:
        logger.warning(f"[Auth] Token check failed: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if response.status_code != 200:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user_id = (response.json() or {}).get("id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id


def get_storage_service() -> StorageService:
    return StorageService()


def get_gemini_service(storage: StorageService = Depends(get_storage_service)) -> GeminiImageService:
    return GeminiImageService(storage_service=storage)


def get_caption_service() -> GroqCaptionService:
    return GroqCaptionService()


def get_audio_service() -> ElevenLabsAudioService:
    return ElevenLabsAudioService()


def get_background_picker() -> BackgroundPicker:
    return BackgroundPicker()
