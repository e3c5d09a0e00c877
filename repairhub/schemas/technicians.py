from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from repairhub.models.enums import Specialization
from repairhub.schemas.primitives import PriceRange


class TechnicianProfileCreate(BaseModel):
    experienceYears: int = Field(..., ge=0, le=80)
    specializations: List[Specialization] = Field(default_factory=list)
    serviceRadiusKm: int = Field(default=10, ge=1, le=50)
    biography: Optional[str] = Field(default=None, max_length=500)
    priceRange: Optional[PriceRange] = None


class TechnicianProfileUpdate(BaseModel):
    # approval fields are not part of this schema
    model_config = ConfigDict(extra="forbid")

    experienceYears: Optional[int] = Field(default=None, ge=0, le=80)
    specializations: Optional[List[Specialization]] = None
    serviceRadiusKm: Optional[int] = Field(default=None, ge=1, le=50)
    biography: Optional[str] = Field(default=None, max_length=500)
    priceRange: Optional[PriceRange] = None


class ApprovalDecision(BaseModel):
    approved: bool
    reason: Optional[str] = Field(default=None, max_length=500)
