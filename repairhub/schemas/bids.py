from __future__ import annotations

import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from repairhub.schemas.primitives import NonNegMoney, PositiveMoney


class PartIncluded(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    cost: Optional[NonNegMoney] = Field(default=None)
    warranty: Optional[str] = Field(default=None, max_length=128)


class WarrantyTerms(BaseModel):
    duration: Optional[int] = Field(default=None, ge=0, description="Months")
    terms: Optional[str] = Field(default=None, max_length=500)


class BidFields(BaseModel):
    """
    Technician-supplied part of a bid. `estimatedTime` is free-form
    ("same day", "2 hours", "1-2 weeks", ...) and parsed server-side.
    """

    amount: PositiveMoney = Field(..., description="Bid amount (> 0)")
    estimatedTime: str = Field(..., min_length=1, max_length=64)
    description: str = Field(..., min_length=1, max_length=500)
    partsIncluded: List[PartIncluded] = Field(default_factory=list)
    warranty: Optional[WarrantyTerms] = Field(default=None)
    message: Optional[str] = Field(default=None, max_length=1000)


class BidCreate(BidFields):
    repairRequestId: uuid.UUID


class BidRejectBody(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BidSortField(str, Enum):
    amount = "amount"
    createdAt = "createdAt"
    validUntil = "validUntil"
    rating = "rating"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"
