"""
Reel Schemas
"""

from typing import Optional

from fabricshoot.schemas.generate import CamelModel


class ReelRequest(CamelModel):
    source_content_id: Optional[str] = None


class ReelResponse(CamelModel):
    success: bool = True
    reel_id: str
    voiceover_url: str
    music_url: str
    caption_primary: str = ""
    caption_secondary: str = ""
    image_url: Optional[str] = None
