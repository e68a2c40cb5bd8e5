from typing import Optional

from pydantic import BaseModel, Field, validator


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=60)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = None
    is_active: bool = True

    @validator("name")
    def validate_name(cls, v):
        v = " ".join(v.split())
        if len(v) < 2:
            raise ValueError("Category name must be at least 2 characters")
        return v


class CategoryUpdate(BaseModel):
    category_id: str
    name: Optional[str] = Field(None, min_length=2, max_length=60)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = None
    is_active: Optional[bool] = None

    @validator("name")
    def validate_name(cls, v):
        return " ".join(v.split()) if v else v
