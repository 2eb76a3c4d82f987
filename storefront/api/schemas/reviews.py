from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, conint, field_validator


class ReviewCreate(BaseModel):
    rating: conint(ge=1, le=5) = Field(..., description="Rating between 1 and 5")
    title: str = ""
    body: str = ""

    @field_validator("title", "body", mode="before")
    @classmethod
    def default_text(cls, v):
        # convert None to empty string; leave other values (including "") unchanged
        return "" if v is None else v


class ReviewUpdate(BaseModel):
    rating: Optional[conint(ge=1, le=5)] = None
    title: Optional[str] = None
    body: Optional[str] = None


class ReviewOut(BaseModel):
    id: str
    product_id: str
    user_id: str
    rating: int
    title: str = ""
    body: str = ""
    is_verified_purchase: bool = False
    helpful_count: int = 0
    created_at: str
    updated_at: Optional[str] = None
    user_name: Optional[str] = None

    model_config = ConfigDict(extra="allow")
