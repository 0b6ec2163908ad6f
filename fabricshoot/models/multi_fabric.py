"""
Multi-Fabric Models
A labelled multi-fabric photo (job) and the per-sample images generated from it.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from fabricshoot.core.database import Base
from fabricshoot.models.assets import new_id


class MultiFabricJob(Base):
    """Detection + fan-out generation job for one labelled source image."""

    __tablename__ = "multi_fabric_jobs"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    source_image_url = Column(String, nullable=False)

    # Detector output: {pieces, sample_count, has_bottom, color_variants, summary}
    detected_labels = Column(JSON, nullable=True)

    mannequin_image_url = Column(String, nullable=True)
    background_image_url = Column(String, nullable=True)
    color_output_mode = Column(String, nullable=False, default="separate")

    # Status: pending, analyzing, detected, generating, completed, failed
    status = Column(String, default="pending", index=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    results = relationship(
        "MultiFabricResult",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="MultiFabricResult.created_at",
    )


class MultiFabricResult(Base):
    """One generated sample (main set, color variant, filler, or combined shot)."""

    __tablename__ = "multi_fabric_results"

    id = Column(String, primary_key=True, default=new_id)
    job_id = Column(String, ForeignKey("multi_fabric_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)

    label = Column(String, nullable=False)
    color_variant = Column(String, nullable=True)
    generated_image_url = Column(String, nullable=True)
    caption_primary = Column(Text, nullable=True)
    caption_secondary = Column(Text, nullable=True)

    # Status: generating, completed, failed
    status = Column(String, default="generating", index=True)
    error_message = Column(Text, nullable=True)

    # Approval status (user action): pending, approved, rejected
    approval_status = Column(String, default="pending")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job = relationship("MultiFabricJob", back_populates="results")
