from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .appointment import DoctorUserSummary


class DoctorCreate(BaseModel):
    specialization: str = Field(..., min_length=1, max_length=100)
    fees: float = Field(..., ge=0)
    timings: List[str] = Field(default_factory=list)
    experience: Optional[int] = Field(None, ge=0)
    bio: Optional[str] = None


class DoctorUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    specialization: Optional[str] = Field(None, min_length=1, max_length=100)
    fees: Optional[float] = Field(None, ge=0)
    timings: Optional[List[str]] = None
    experience: Optional[int] = Field(None, ge=0)
    bio: Optional[str] = None


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class DoctorResponse(BaseModel):
    id: int
    specialization: str
    fees: float
    timings: List[str]
    experience: Optional[int] = None
    bio: Optional[str] = None
    user: Optional[DoctorUserSummary] = None
    rating: Optional[float] = None
    review_count: int = 0
