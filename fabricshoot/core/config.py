"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "FabricShoot API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_BASE_URL: str = "http://localhost:8000"  # Base URL for file serving

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./fabricshoot.db"

    # Auth provider (token -> user id lookup)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # Image generation and vision (Gemini)
    GEMINI_API_KEY: str = ""
    GEMINI_IMAGE_MODEL: str = "gemini-3-pro-image-preview"
    GEMINI_VISION_MODEL: str = "gemini-2.5-flash"
    IMAGE_GENERATION_MAX_ATTEMPTS: int = 2  # first call + one retry

    # Captions (Groq vision model, cheaper and faster than the image model)
    GROQ_API_KEY: str = ""
    GROQ_CAPTION_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    GROQ_TEMPERATURE: float = 0.7
    CAPTION_PRIMARY_LANGUAGE: str = "english"
    CAPTION_SECONDARY_LANGUAGE: str = "hindi"

    # Voiceover + music (ElevenLabs)
    ELEVENLABS_API_KEY: str = ""
    ELEVENLABS_VOICE_ID: str = "EXAVITQu4vr4xnSDxMaL"
    ELEVENLABS_TTS_MODEL: str = "eleven_multilingual_v2"
    ELEVENLABS_OUTPUT_FORMAT: str = "mp3_44100_128"
    MUSIC_DURATION_SECONDS: int = 20

    # Multi-fabric jobs
    MAX_SAMPLES_PER_JOB: int = 6

    # Generated image kept in storage when its source row vanished mid-generation
    DELETE_ORPHANED_OUTPUTS: bool = False

    # Storage - S3 settings (optional)
    S3_BUCKET: str = ""
    S3_ENDPOINT: str = ""
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_REGION: str = "us-east-1"

    # Local storage fallback
    LOCAL_STORAGE_PATH: str = "./uploads"
    USE_LOCAL_STORAGE: bool = True

    # Google Cloud Storage
    USE_GCS: bool = False
    GCP_PROJECT_ID: str = ""

    # Buckets (GCS bucket names / S3 key prefixes / local sub-directories)
    BUCKET_GENERATED_IMAGES: str = "generated-images"
    BUCKET_REEL_ASSETS: str = "reel-assets"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Timeouts (seconds)
    HTTP_TIMEOUT: float = 60.0
    AUDIO_TIMEOUT: float = 120.0

    @field_validator('GEMINI_API_KEY', 'GROQ_API_KEY', 'ELEVENLABS_API_KEY', 'SUPABASE_ANON_KEY', mode='before')
    @classmethod
    def strip_api_keys(cls, v):
        """Strip whitespace and newlines from API keys loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
