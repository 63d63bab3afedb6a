from pydantic import Field
from typing import Optional, Any

from app.schemas.base import CamelModel


class SubjectCreate(CamelModel):
    name: Optional[str] = None
    code: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[int] = Field(None, ge=1, le=6)
    credits: int = 4
    hours: int = 60
    type: str = "Theory"
    description: str = ""
    is_common: bool = False


class SubjectUpdate(CamelModel):
    name: Optional[str] = None
    code: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[int] = Field(None, ge=1, le=6)
    credits: Optional[int] = None
    hours: Optional[int] = None
    type: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    is_common: Optional[bool] = None


class BulkImportRequest(CamelModel):
    # Validated item by item so one bad row does not reject the batch
    subjects: Any = None


class SubjectResponse(CamelModel):
    id: str
    name: str
    code: str
    branch: str
    semester: int
    credits: int = 4
    hours: int = 60
    type: str = "Theory"
    description: Optional[str] = ""
    is_active: bool = True
    is_common: bool = False


class CommonSubjectResponse(CamelModel):
    """Common subject in the shape material forms expect"""
    subject_id: str
    subject_name: str
    subject_code: str
    semester: int
    branch: str
