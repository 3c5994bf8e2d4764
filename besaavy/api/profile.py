"""
Caregiver profile API: usage signals, preferences, baby schedule and context.

Routes (/caregivers):
  POST   /{caregiver_id}/app-usage      - Record an app open
  POST   /{caregiver_id}/responses      - Record a response to a delivered notification
  GET    /{caregiver_id}/preferences    - Notification preferences
  PATCH  /{caregiver_id}/preferences    - Partial preference update
  GET    /{caregiver_id}/baby-schedule  - Baby's routine
  PATCH  /{caregiver_id}/baby-schedule  - Partial routine update
  PATCH  /{caregiver_id}/context        - Day-level factors (and baby_name)
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, HTTPException, status, Body

from besaavy.api.models import AppUsageRequest, AppUsageResponse, NotificationResponseRequest, SuccessResponse
from besaavy.core.errors import ConfigurationError
from besaavy.db.models import BabySchedule, ContextualFactors, NotificationPreferences
from besaavy.services.context import get_context_registry
from besaavy.services.notification_scheduler import get_notification_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/caregivers", tags=["caregivers"])


def _bad_request(e: ConfigurationError) -> HTTPException:
    logger.warning(f"Rejected update: {e}")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# Used by: frontend app shell, fired on every app open
@router.post("/{caregiver_id}/app-usage", response_model=AppUsageResponse)
async def record_app_usage(caregiver_id: str, request: Optional[AppUsageRequest] = None):
    ctx = await get_context_registry().get_context(caregiver_id)
    await get_notification_scheduler().record_app_usage(ctx, request.timestamp if request else None)
    return AppUsageResponse(
        active_hours=ctx.behavior.active_hours,
        last_active_time=ctx.behavior.last_active_time,
    )


# Used by: service worker, explicit response with delivery/response timestamps
@router.post("/{caregiver_id}/responses", response_model=SuccessResponse)
async def record_notification_response(caregiver_id: str, request: NotificationResponseRequest):
    ctx = await get_context_registry().get_context(caregiver_id)
    await get_notification_scheduler().record_notification_response(
        ctx,
        request.notification_id,
        request.delivered_at,
        request.responded_at,
        request.action,
    )
    return SuccessResponse(success=True)


# Used by: Settings page, notification preferences form
@router.get("/{caregiver_id}/preferences", response_model=NotificationPreferences)
async def get_preferences(caregiver_id: str):
    ctx = await get_context_registry().get_context(caregiver_id)
    return ctx.preferences


# Used by: Settings page, save notification preferences
@router.patch("/{caregiver_id}/preferences", response_model=NotificationPreferences)
async def update_preferences(caregiver_id: str, partial: Dict[str, Any] = Body(...)):
    try:
        return await get_context_registry().update_preferences(caregiver_id, partial)
    except ConfigurationError as e:
        raise _bad_request(e)


# Used by: Baby profile page, routine editor
@router.get("/{caregiver_id}/baby-schedule", response_model=BabySchedule)
async def get_baby_schedule(caregiver_id: str):
    ctx = await get_context_registry().get_context(caregiver_id)
    return ctx.baby_schedule


# Used by: Baby profile page, save routine
@router.patch("/{caregiver_id}/baby-schedule", response_model=BabySchedule)
async def update_baby_schedule(caregiver_id: str, partial: Dict[str, Any] = Body(...)):
    try:
        return await get_context_registry().update_baby_schedule(caregiver_id, partial)
    except ConfigurationError as e:
        raise _bad_request(e)


# Used by: Home page, "today is a holiday" / "partner is away" toggles, baby name
@router.patch("/{caregiver_id}/context", response_model=ContextualFactors)
async def update_context(caregiver_id: str, partial: Dict[str, Any] = Body(...)):
    try:
        return await get_context_registry().update_context(caregiver_id, partial)
    except ConfigurationError as e:
        raise _bad_request(e)
