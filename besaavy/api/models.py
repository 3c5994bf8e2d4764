"""Pydantic request/response models for all API endpoints."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from besaavy.db.models import ContentType, ResponseAction, ScheduledNotification, Urgency


# Notification models

class ScheduleNotificationRequest(BaseModel):
    caregiver_id: str
    recall_id: str
    urgency: Urgency
    product_name: str
    hazard_description: str
    title: Optional[str] = None  # overrides the per-urgency title template
    content_type: ContentType = "recall"


class ScheduleNotificationResponse(BaseModel):
    accepted: bool
    delivered: bool
    suppressed: bool
    reason: Optional[str] = None
    notification: Optional[ScheduledNotification] = None


class CriticalAlertRequest(BaseModel):
    caregiver_id: str
    recall_id: str
    product_name: str
    hazard_description: str


class CriticalAlertResponse(BaseModel):
    delivered: bool


class PendingNotificationsResponse(BaseModel):
    notifications: List[ScheduledNotification]
    total_count: int


class CancelNotificationResponse(BaseModel):
    success: bool


class BatchResponse(BaseModel):
    batched: bool
    delivered: bool = False
    notification: Optional[ScheduledNotification] = None


class TimingInsightsResponse(BaseModel):
    next_optimal_time: datetime
    confidence: float
    reasoning: str
    alternative_times: List[datetime] = Field(default_factory=list)
    should_delay_reason: Optional[str] = None
    next_batch_time: datetime


class InteractionRequest(BaseModel):
    caregiver_id: str
    action: ResponseAction


# Caregiver profile models

class AppUsageRequest(BaseModel):
    timestamp: Optional[datetime] = None


class AppUsageResponse(BaseModel):
    active_hours: List[int]
    last_active_time: Optional[datetime] = None


class NotificationResponseRequest(BaseModel):
    notification_id: str
    delivered_at: datetime
    responded_at: datetime
    action: ResponseAction


class SuccessResponse(BaseModel):
    success: bool
    message: Optional[str] = None
