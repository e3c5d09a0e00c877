from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewAspects(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quality: Optional[int] = Field(default=None, ge=1, le=5)
    timeliness: Optional[int] = Field(default=None, ge=1, le=5)
    communication: Optional[int] = Field(default=None, ge=1, le=5)
    value: Optional[int] = Field(default=None, ge=1, le=5)


class ReviewCreate(BaseModel):
    repairRequestId: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)
    aspects: Optional[ReviewAspects] = None
    isRecommended: bool = True


class ReviewUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)
    aspects: Optional[ReviewAspects] = None
    isRecommended: Optional[bool] = None
