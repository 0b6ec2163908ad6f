"""
Generate Schemas
Pydantic models for single-job content generation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from fabricshoot.schemas.job import UploadKind


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class GenerateContentRequest(CamelModel):
    """Schema for a generate / regenerate request."""
    source_id: Optional[str] = None
    source_image_url: Optional[str] = None
    result_id: Optional[str] = None  # present for regeneration
    custom_instructions: Optional[str] = None
    background_image_url: Optional[str] = None
    upload_kind: UploadKind = UploadKind.FABRIC
    mannequin_reference_url: Optional[str] = None


class GenerateContentResponse(CamelModel):
    """Schema for a successful generation."""
    success: bool = True
    result_id: str
    generated_image_url: Optional[str]
    caption_primary: str = ""
    caption_secondary: str = ""


class ContentResponse(CamelModel):
    """Stored single-job result."""
    id: str
    fabric_id: str
    model_image_url: Optional[str]
    background_image_url: Optional[str]
    caption_primary: Optional[str]
    caption_secondary: Optional[str]
    generation_status: str
    error_message: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime
