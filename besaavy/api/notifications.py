"""
Notifications API: recall notification scheduling and push subscription.

Routes (/notifications):
  POST   /schedule                 - Schedule a recall notification at the best time
  POST   /critical                 - Send a critical alert immediately
  GET    /pending                  - Held notifications, soonest first
  DELETE /{notification_id}        - Cancel a held notification
  POST   /batch                    - Collapse pending medium notifications into one
  GET    /insights                 - Next optimal delivery slot for a caregiver, urgency and content type
  POST   /{notification_id}/interaction - Record opened/dismissed/acted

Routes (/push):
  GET    /vapid-key    - VAPID public key for client subscription
  POST   /subscribe    - Save push subscription
  POST   /unsubscribe  - Remove push subscription
"""

import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, status, Query
from pydantic import BaseModel

from besaavy.api.models import (
    ScheduleNotificationRequest, ScheduleNotificationResponse, CriticalAlertRequest,
    CriticalAlertResponse, PendingNotificationsResponse, CancelNotificationResponse,
    BatchResponse, TimingInsightsResponse, InteractionRequest, SuccessResponse,
)
from besaavy.db.models import ContentType, Urgency
from besaavy.services.context import get_context_registry
from besaavy.services.notification_scheduler import get_notification_scheduler
from besaavy.services.push_service import get_push_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class PushSubscriptionRequest(BaseModel):
    endpoint: str
    keys: dict  # p256dh + auth


class VapidKeyResponse(BaseModel):
    public_key: Optional[str]
    configured: bool


# Used by: recall feed, new recall matched to a caregiver's products
@router.post("/schedule", response_model=ScheduleNotificationResponse)
async def schedule_notification(request: ScheduleNotificationRequest):
    ctx = await get_context_registry().get_context(request.caregiver_id)
    scheduler = get_notification_scheduler()

    if request.title:
        outcome = await scheduler.schedule_notification(
            ctx,
            recall_id=request.recall_id,
            urgency=request.urgency,
            title=request.title,
            body=request.hazard_description,
            content_type=request.content_type,
        )
    else:
        outcome = await scheduler.schedule_recall_notification(
            ctx,
            recall_id=request.recall_id,
            urgency=request.urgency,
            product_name=request.product_name,
            hazard_description=request.hazard_description,
            content_type=request.content_type,
        )

    return ScheduleNotificationResponse(
        accepted=outcome.accepted,
        delivered=outcome.delivered,
        suppressed=outcome.suppressed,
        reason=outcome.reason,
        notification=outcome.notification,
    )


# Used by: recall feed, safety-critical recall, bypasses preferences
@router.post("/critical", response_model=CriticalAlertResponse)
async def send_critical_alert(request: CriticalAlertRequest):
    ctx = await get_context_registry().get_context(request.caregiver_id)
    delivered = await get_notification_scheduler().send_critical_alert(
        ctx,
        recall_id=request.recall_id,
        product_name=request.product_name,
        hazard_description=request.hazard_description,
    )
    return CriticalAlertResponse(delivered=delivered)


# Used by: Safety page, upcoming notifications list
@router.get("/pending", response_model=PendingNotificationsResponse)
async def get_pending_notifications(
    caregiver_id: Optional[str] = Query(None, description="Only this caregiver's notifications")
):
    notifications = get_notification_scheduler().get_pending_notifications(caregiver_id)
    return PendingNotificationsResponse(notifications=notifications, total_count=len(notifications))


# Used by: Safety page, dismiss an upcoming notification
@router.delete("/{notification_id}", response_model=CancelNotificationResponse)
async def cancel_notification(notification_id: str):
    cancelled = await get_notification_scheduler().cancel_notification(notification_id)
    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found or already delivered"
        )
    return CancelNotificationResponse(success=True)


# Used by: Settings page, "send my digest now"
@router.post("/batch", response_model=BatchResponse)
async def batch_medium_priority(
    caregiver_id: str = Query(..., description="Caregiver ID")
):
    ctx = await get_context_registry().get_context(caregiver_id)
    outcome = await get_notification_scheduler().batch_medium_priority_notifications(ctx)
    if outcome is None:
        return BatchResponse(batched=False)
    return BatchResponse(batched=True, delivered=outcome.delivered, notification=outcome.notification)


# Used by: Daily insights card, "best time to reach you"
@router.get("/insights", response_model=TimingInsightsResponse)
async def get_timing_insights(
    caregiver_id: str = Query(..., description="Caregiver ID"),
    urgency: Urgency = Query("medium", description="Urgency to predict for"),
    content_type: ContentType = Query("general", description="Content type to predict for"),
):
    ctx = await get_context_registry().get_context(caregiver_id)
    scheduler = get_notification_scheduler()
    result = scheduler.predict_optimal_time(ctx, urgency, content_type)

    return TimingInsightsResponse(
        next_optimal_time=result.recommended_time,
        confidence=result.confidence,
        reasoning=result.reasoning,
        alternative_times=result.alternative_times,
        should_delay_reason=result.should_delay_reason,
        next_batch_time=scheduler.next_batch_time(ctx),
    )


# Used by: service worker, notification click / close handlers
@router.post("/{notification_id}/interaction", response_model=SuccessResponse)
async def record_interaction(notification_id: str, request: InteractionRequest):
    ctx = await get_context_registry().get_context(request.caregiver_id)
    recorded = await get_notification_scheduler().record_notification_interaction(
        ctx, notification_id, request.action
    )
    if not recorded:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return SuccessResponse(success=True)


push_router = APIRouter(prefix="/push", tags=["push-notifications"])


# Used by: Settings page, fetches VAPID key for push subscription
@push_router.get("/vapid-key", response_model=VapidKeyResponse)
async def get_vapid_public_key():
    push_service = get_push_service()
    return VapidKeyResponse(
        public_key=push_service.public_key,
        configured=push_service.is_configured
    )


# Used by: Settings page, enable push notifications toggle
@push_router.post("/subscribe", response_model=SuccessResponse)
async def subscribe_to_push(
    request: PushSubscriptionRequest,
    caregiver_id: str = Query(..., description="Caregiver ID")
):
    push_service = get_push_service()

    if not push_service.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications are not configured on this server"
        )

    p256dh_key = request.keys.get("p256dh")
    auth_key = request.keys.get("auth")

    if not p256dh_key or not auth_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid subscription: missing p256dh or auth keys"
        )

    success = await push_service.save_subscription(
        caregiver_id=caregiver_id,
        endpoint=request.endpoint,
        p256dh_key=p256dh_key,
        auth_key=auth_key
    )

    if not success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save push subscription"
        )

    return SuccessResponse(success=True, message="Successfully subscribed to push notifications")


# Used by: Settings page, disable push notifications toggle
@push_router.post("/unsubscribe", response_model=SuccessResponse)
async def unsubscribe_from_push(
    caregiver_id: str = Query(..., description="Caregiver ID")
):
    removed = await get_push_service().remove_subscription(caregiver_id)
    return SuccessResponse(
        success=True,
        message="Successfully unsubscribed from push notifications" if removed else "No subscription found"
    )
