from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator

# ==================== ENUMS ====================

class CourseStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class StatusAction(str, Enum):
    SUSPEND = "suspend"
    ALLOW = "allow"

# ==================== CONTENT MODELS ====================

class LessonIn(BaseModel):
    lesson_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)
    is_free: bool = False


class ModuleIn(BaseModel):
    module_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    lessons: List[LessonIn] = []

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    price: float = Field(0, ge=0)
    discount: float = Field(0, ge=0, le=100)
    thumbnail: Optional[str] = None
    level: CourseLevel = CourseLevel.BEGINNER
    duration: Optional[float] = Field(None, ge=0)
    has_certification: bool = False
    modules: List[ModuleIn] = []

    @validator("title")
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class CourseUpdate(BaseModel):
    course_id: str
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    thumbnail: Optional[str] = None
    level: Optional[CourseLevel] = None
    duration: Optional[float] = Field(None, ge=0)
    has_certification: Optional[bool] = None
    modules: Optional[List[ModuleIn]] = None


class CourseRef(BaseModel):
    course_id: str


class CourseReview(BaseModel):
    course_id: str
    action: ReviewAction
    reason: Optional[str] = Field(None, max_length=1000)

    @validator("reason", always=True)
    def reason_required_on_reject(cls, v, values):
        if values.get("action") == ReviewAction.REJECT and not (v and v.strip()):
            raise ValueError("A reason is required when rejecting a course")
        return v


class CourseStatusChange(BaseModel):
    course_id: str
    action: StatusAction


class AssignCategory(BaseModel):
    course_id: str
    category_id: str
