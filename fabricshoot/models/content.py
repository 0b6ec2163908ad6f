"""
Generated Content Model
Single-job generation result tied to one fabric upload.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from fabricshoot.core.database import Base
from fabricshoot.models.assets import new_id


class GeneratedContent(Base):
    """Model/mannequin photo plus bilingual captions for one fabric."""

    __tablename__ = "generated_content"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    fabric_id = Column(String, ForeignKey("fabric_images.id", ondelete="CASCADE"), nullable=False, index=True)

    model_image_url = Column(String, nullable=True)
    background_image_url = Column(String, nullable=True)
    caption_primary = Column(Text, nullable=True)
    caption_secondary = Column(Text, nullable=True)

    # Generation status: generating, completed, failed
    generation_status = Column(String, default="generating", index=True)
    error_message = Column(Text, nullable=True)

    # Approval status (user action): pending, approved, rejected
    status = Column(String, default="pending", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    fabric = relationship("FabricImage", back_populates="contents")
    reels = relationship("Reel", back_populates="content", cascade="all, delete-orphan")
