from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from repairhub.models.enums import EstimateUnit
from repairhub.schemas.primitives import Pagination


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None


class Rating(BaseModel):
    average: float = 0.0
    count: int = 0
    aspects: Dict[str, Any] = Field(default_factory=dict)


class TechnicianSummary(UserSummary):
    rating: Optional[Rating] = None
    experienceYears: Optional[int] = None
    specializations: List[str] = Field(default_factory=list)
    isApproved: bool = False


class EstimatedTime(BaseModel):
    value: int
    unit: EstimateUnit


class RequestBrief(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    deviceInfo: Dict[str, Any] = Field(default_factory=dict)
    address: Optional[str] = None


class BidView(BaseModel):
    id: uuid.UUID
    repairRequestId: uuid.UUID
    repairRequest: Optional[RequestBrief] = None
    technicianId: uuid.UUID
    technician: Optional[TechnicianSummary] = None

    amount: Decimal
    estimatedTime: EstimatedTime
    estimatedTimeText: Optional[str] = None
    description: str
    partsIncluded: List[Dict[str, Any]] = Field(default_factory=list)
    warranty: Optional[Dict[str, Any]] = None
    message: Optional[str] = None

    status: str
    rejectionReason: Optional[str] = None
    validUntil: datetime
    isExpired: bool = False
    acceptedAt: Optional[datetime] = None
    rejectedAt: Optional[datetime] = None
    withdrawnAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class Location(BaseModel):
    latitude: float
    longitude: float
    address: str


class Budget(BaseModel):
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None


class RequestView(BaseModel):
    id: uuid.UUID
    customerId: uuid.UUID
    customer: Optional[UserSummary] = None

    title: str
    description: str
    deviceInfo: Dict[str, Any] = Field(default_factory=dict)
    issueType: str
    images: List[Dict[str, Any]] = Field(default_factory=list)
    urgency: str
    budget: Budget
    location: Location

    status: str
    acceptedBidId: Optional[uuid.UUID] = None
    acceptedBid: Optional[BidView] = None
    assignedTechnicianId: Optional[uuid.UUID] = None
    assignedTechnician: Optional[UserSummary] = None

    completedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    expiresAt: datetime
    isExpired: bool = False
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    # discovery only
    distanceMeters: Optional[float] = None


class TransactionView(BaseModel):
    id: uuid.UUID
    repairRequestId: uuid.UUID
    customerId: uuid.UUID
    technicianId: uuid.UUID
    amount: Decimal
    currency: str
    type: str
    status: str
    paymentMethod: Optional[str] = None
    completedAt: Optional[datetime] = None


class TechnicianProfileView(BaseModel):
    id: uuid.UUID
    userId: uuid.UUID
    user: Optional[UserSummary] = None
    experienceYears: int
    specializations: List[str] = Field(default_factory=list)
    serviceRadiusKm: int
    biography: Optional[str] = None
    rating: Rating
    totalJobs: int = 0
    completedJobs: int = 0
    priceRange: Budget
    isApproved: bool
    approvedAt: Optional[datetime] = None
    rejectedAt: Optional[datetime] = None
    rejectionReason: Optional[str] = None


class BidPage(BaseModel):
    bids: List[BidView]
    pagination: Pagination


class RequestPage(BaseModel):
    requests: List[RequestView]
    pagination: Pagination
    geoFiltered: bool = False


class ReviewView(BaseModel):
    id: uuid.UUID
    repairRequestId: uuid.UUID
    repairRequest: Optional[RequestBrief] = None
    customerId: uuid.UUID
    customer: Optional[UserSummary] = None
    technicianId: uuid.UUID
    rating: int
    comment: Optional[str] = None
    aspects: Dict[str, int] = Field(default_factory=dict)
    isRecommended: bool = True
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ReviewStats(BaseModel):
    averageRating: float = 0.0
    totalReviews: int = 0
    # "1".."5" -> number of reviews with that rating
    distribution: Dict[str, int] = Field(default_factory=dict)


class ReviewPage(BaseModel):
    reviews: List[ReviewView]
    pagination: Pagination
    stats: Optional[ReviewStats] = None


class NotificationView(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: str = "medium"
    isRead: bool = False
    readAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class NotificationPage(BaseModel):
    notifications: List[NotificationView]
    unreadCount: int
    pagination: Pagination
