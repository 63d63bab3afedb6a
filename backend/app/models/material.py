from sqlalchemy import Column, String, DateTime, Integer, Float, Text, Index
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class MaterialType(str, enum.Enum):
    PDF = "pdf"
    VIDEO = "video"
    NOTES = "notes"
    LINK = "link"


class AccessType(str, enum.Enum):
    """How a material is unlocked for students"""
    FREE = "free"
    DRIVE_PROTECTED = "drive_protected"
    PAID = "paid"


class StorageType(str, enum.Enum):
    R2 = "r2"
    LOCAL = "local"


class Material(Base):
    """Study material attached to a subject (notes, PDFs, videos, links)"""
    __tablename__ = "materials"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    type = Column(enum_column(MaterialType), nullable=False)
    url = Column(Text, default="")
    description = Column(Text, default="")

    # Subject link (denormalized for listing without joins)
    subject_id = Column(GUID, nullable=False, index=True)
    subject_name = Column(String(255), default="")
    subject_code = Column(String(50), nullable=False, index=True)
    branch = Column(String(255), default="", index=True)
    branches = Column(JSONType, default=list)
    semester = Column(String(10), nullable=False, index=True)
    resource_type = Column(String(50), default="notes", index=True)

    # Access control
    access_type = Column(enum_column(AccessType), default=AccessType.FREE, nullable=False, index=True)
    price = Column(Float, default=0)  # rupees
    google_drive_url = Column(Text, nullable=True)

    storage_type = Column(enum_column(StorageType), default=StorageType.LOCAL, nullable=False)
    tags = Column(JSONType, default=list)
    cover_photo = Column(Text, nullable=True)

    # Counters
    downloads = Column(Integer, default=0, nullable=False)
    rating = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    uploaded_by = Column(GUID, nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_materials_subject_branch_semester", "subject_code", "branch", "semester"),
        Index("ix_materials_resource_access", "resource_type", "access_type"),
    )

    def add_rating(self, value: float) -> None:
        """Fold one rating into the running mean"""
        count = self.rating_count or 0
        self.rating = ((self.rating or 0) * count + value) / (count + 1)
        self.rating_count = count + 1

    def __repr__(self):
        return f"<Material {self.title} ({self.access_type})>"
