"""
Asset Models
Rows for images a seller uploads: fabrics, backgrounds and mannequin references.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from fabricshoot.core.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class FabricImage(Base):
    """Uploaded source photo (fabric swatch or a model wearing it)."""

    __tablename__ = "fabric_images"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    image_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False, default="")
    # fabric | mannequin-conversion | labeled-multi-fabric
    upload_type = Column(String, nullable=False, default="fabric")
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    contents = relationship("GeneratedContent", back_populates="fabric", cascade="all, delete-orphan", passive_deletes=True)


class BackgroundImage(Base):
    """Backdrop photo a seller wants generated content placed in."""

    __tablename__ = "background_images"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    image_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False, default="")
    uploaded_at = Column(DateTime, default=datetime.utcnow)

