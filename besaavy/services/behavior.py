"""Caregiver behavior statistics: per-hour response lookups and learning updates."""

import logging
from datetime import datetime
from typing import List

from besaavy.core.constants import (
    DEFAULT_RESPONSE_RATE, DEFAULT_RESPONSE_MINUTES,
    LEARNING_SMOOTHING, RESPONSE_SIGNAL_BY_ACTION,
)
from besaavy.db.models import BehaviorProfile
from besaavy.utils.time_windows import day_name

logger = logging.getLogger(__name__)


# Used by: timing_predictor.py, delay_arbiter.py
def response_rate(profile: BehaviorProfile, hour: int) -> float:
    return profile.response_rate_by_hour.get(hour, DEFAULT_RESPONSE_RATE)


# Used by: timing_predictor.py
def response_minutes(profile: BehaviorProfile, hour: int) -> float:
    return profile.avg_response_time_by_hour.get(hour, DEFAULT_RESPONSE_MINUTES)


# Used by: timing_predictor.py, delay_arbiter.py
def hours_for_day(profile: BehaviorProfile, moment: datetime) -> List[int]:
    """Weekday-specific usage hours, falling back to the overall active hours."""
    pattern = profile.weekly_pattern.get(day_name(moment))
    if pattern:
        return sorted(pattern)
    return sorted(profile.active_hours)


def _smooth(old: float, signal: float, smoothing: float) -> float:
    return old * (1.0 - smoothing) + signal * smoothing


# Used by: notification_scheduler.py (record_app_usage)
def record_app_usage(profile: BehaviorProfile, timestamp: datetime) -> None:
    """Active hours and weekly pattern only ever grow."""
    hour = timestamp.hour

    if hour not in profile.active_hours:
        profile.active_hours = sorted(profile.active_hours + [hour])
        logger.debug(f"Hour {hour} added to active hours")

    day = day_name(timestamp)
    day_hours = profile.weekly_pattern.get(day, [])
    if hour not in day_hours:
        profile.weekly_pattern[day] = sorted(day_hours + [hour])

    profile.last_active_time = timestamp


# Used by: notification_scheduler.py (record_notification_response)
def record_notification_response(
    profile: BehaviorProfile,
    delivered_at: datetime,
    responded_at: datetime,
    action: str,
    smoothing: float = LEARNING_SMOOTHING,
) -> None:
    """Fold one notification outcome into the delivery hour's rate and latency."""
    if action not in RESPONSE_SIGNAL_BY_ACTION:
        raise ValueError(f"Unknown response action {action!r}")

    hour = delivered_at.hour
    latency = max(0.0, (responded_at - delivered_at).total_seconds() / 60.0)
    signal = RESPONSE_SIGNAL_BY_ACTION[action]

    rate = _smooth(response_rate(profile, hour), signal, smoothing)
    profile.response_rate_by_hour[hour] = min(1.0, max(0.0, rate))
    profile.avg_response_time_by_hour[hour] = _smooth(
        response_minutes(profile, hour), latency, smoothing
    )

    logger.info(
        f"Learned from '{action}' at hour {hour}: rate={profile.response_rate_by_hour[hour]:.2f}, "
        f"avg_response={profile.avg_response_time_by_hour[hour]:.1f}min"
    )
