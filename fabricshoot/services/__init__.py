# Services package
from fabricshoot.services.storage import StorageService
from fabricshoot.services.gemini_image import GeminiImageService
from fabricshoot.services.groq_llm import GroqCaptionService, Captions
from fabricshoot.services.elevenlabs_audio import ElevenLabsAudioService
from fabricshoot.services.assets import AssetResolver, BackgroundPicker

__all__ = [
    "StorageService",
    "GeminiImageService",
    "GroqCaptionService",
    "Captions",
    "ElevenLabsAudioService",
    "AssetResolver",
    "BackgroundPicker",
]
