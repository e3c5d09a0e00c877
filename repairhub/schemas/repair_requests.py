from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from repairhub.models.enums import IssueType, PaymentMethod, RequestStatus, Urgency
from repairhub.schemas.primitives import NonNegMoney, PriceRange


class DeviceInfo(BaseModel):
    brand: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=64)
    color: Optional[str] = Field(default=None, max_length=32)
    purchaseYear: Optional[int] = Field(default=None, ge=1990, le=2100)


class GeoLocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field(..., min_length=1, max_length=256)


class ImageRef(BaseModel):
    url: str = Field(..., min_length=1, max_length=512)
    description: Optional[str] = Field(default=None, max_length=256)


class RepairRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    deviceInfo: DeviceInfo
    issueType: IssueType
    images: List[ImageRef] = Field(default_factory=list, max_length=5)
    urgency: Urgency = Urgency.medium
    preferredBudget: Optional[PriceRange] = None
    location: GeoLocation


class RepairRequestUpdate(BaseModel):
    """
    Detail fields are editable only while the request is open for bids.
    `status` drives progress (in_progress, completed, cancelled).
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    deviceInfo: Optional[DeviceInfo] = None
    urgency: Optional[Urgency] = None
    preferredBudget: Optional[PriceRange] = None
    images: Optional[List[ImageRef]] = Field(default=None, max_length=5)

    status: Optional[RequestStatus] = None
    # only used when status == completed
    amount: Optional[NonNegMoney] = None
    paymentMethod: Optional[PaymentMethod] = None

    def detail_changes(self) -> dict:
        return self.model_dump(
            exclude_unset=True,
            exclude={"status", "amount", "paymentMethod"},
        )


class CompletionFields(BaseModel):
    amount: Optional[NonNegMoney] = Field(
        default=None, description="Defaults to the accepted bid amount"
    )
    paymentMethod: PaymentMethod = PaymentMethod.cash


class CancelBody(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
