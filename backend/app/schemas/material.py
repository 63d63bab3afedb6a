from pydantic import Field
from typing import Optional, List
from datetime import datetime

from app.models.material import MaterialType, AccessType, StorageType
from app.schemas.base import CamelModel, LooseStr


class MaterialCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    type: MaterialType
    url: str = ""
    description: str = ""
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    subject_code: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[LooseStr] = None
    resource_type: str = "notes"
    # Free text on purpose: unknown values fall back to "free" on create
    access_type: Optional[str] = None
    price: Optional[float] = None
    google_drive_url: Optional[str] = None
    storage_type: Optional[StorageType] = None
    tags: List[str] = []
    cover_photo: Optional[str] = None


class MaterialUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    type: Optional[MaterialType] = None
    url: Optional[str] = None
    description: Optional[str] = None
    subject_name: Optional[str] = None
    subject_code: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[LooseStr] = None
    resource_type: Optional[str] = None
    access_type: Optional[str] = None
    price: Optional[float] = None
    google_drive_url: Optional[str] = None
    storage_type: Optional[StorageType] = None
    tags: Optional[List[str]] = None
    cover_photo: Optional[str] = None


class RateRequest(CamelModel):
    rating: Optional[float] = None


class Base64UploadRequest(CamelModel):
    filename: Optional[str] = None
    content_type: Optional[str] = None
    data_base64: Optional[str] = None


class MaterialResponse(CamelModel):
    id: str
    title: str
    type: MaterialType
    url: Optional[str] = ""
    description: Optional[str] = ""
    subject_id: str
    subject_name: Optional[str] = ""
    subject_code: str
    branch: Optional[str] = ""
    branches: List[str] = []
    semester: str
    resource_type: Optional[str] = "notes"
    access_type: AccessType = AccessType.FREE
    price: float = 0
    google_drive_url: Optional[str] = None
    storage_type: StorageType = StorageType.LOCAL
    tags: List[str] = []
    cover_photo: Optional[str] = None
    downloads: int = 0
    rating: float = 0
    rating_count: int = 0
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
