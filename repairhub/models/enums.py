#repairhub/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    customer = "customer"
    technician = "technician"
    admin = "admin"


class RequestStatus(str, Enum):
    # forward lifecycle; cancelled is terminal
    open = "open"
    bidding = "bidding"
    assigned = "assigned"
    in_progress = "in_progress"
    completed = "completed"
    paid = "paid"
    cancelled = "cancelled"


class BidStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"


class EstimateUnit(str, Enum):
    hours = "hours"
    days = "days"


class IssueType(str, Enum):
    screen = "screen"
    battery = "battery"
    charging = "charging"
    camera = "camera"
    speaker = "speaker"
    software = "software"
    other = "other"


class Urgency(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Specialization(str, Enum):
    screen_repair = "screen_repair"
    battery_replacement = "battery_replacement"
    water_damage = "water_damage"
    software_issues = "software_issues"
    charging_port = "charging_port"
    speaker_repair = "speaker_repair"
    camera_repair = "camera_repair"
    motherboard_repair = "motherboard_repair"
    other = "other"


class TransactionStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class TransactionType(str, Enum):
    repair_payment = "repair_payment"
    subscription_fee = "subscription_fee"
    refund = "refund"


class PaymentMethod(str, Enum):
    cash = "cash"
    jazzcash = "jazzcash"
    easypaisa = "easypaisa"
    bank_transfer = "bank_transfer"
    card = "card"


class NotificationType(str, Enum):
    new_repair_request = "new_repair_request"
    new_bid = "new_bid"
    bid_accepted = "bid_accepted"
    bid_rejected = "bid_rejected"
    job_completed = "job_completed"
    payment_received = "payment_received"
    profile_approved = "profile_approved"
    profile_rejected = "profile_rejected"
    request_cancelled = "request_cancelled"
    review_received = "review_received"
