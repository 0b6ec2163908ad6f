"""
Reel Model
Audio assets (voiceover + music) for a short promotional reel.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from fabricshoot.core.database import Base
from fabricshoot.models.assets import new_id


class Reel(Base):
    """Reel audio for one generated content row."""

    __tablename__ = "reels"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    content_id = Column(String, ForeignKey("generated_content.id", ondelete="CASCADE"), nullable=False, index=True)

    voiceover_url = Column(String, nullable=True)
    music_url = Column(String, nullable=True)
    caption_primary = Column(Text, nullable=True)
    caption_secondary = Column(Text, nullable=True)

    # Status: generating_audio, ready, failed
    status = Column(String, default="generating_audio", index=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    content = relationship("GeneratedContent", back_populates="reels")
