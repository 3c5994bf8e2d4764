"""Pydantic models for the persisted caregiver, baby-schedule and notification documents."""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from besaavy.core.constants import (
    DEFAULT_ACTIVE_HOURS, DEFAULT_RESPONSE_RATES, DEFAULT_RESPONSE_TIMES,
    DEFAULT_QUIET_PERIODS, DEFAULT_WEEKLY_PATTERN,
    DEFAULT_NAP_TIMES, DEFAULT_BEDTIME, DEFAULT_WAKEUP_TIME,
    DEFAULT_FEEDING_HOURS, DEFAULT_FUSSY_PERIODS,
)
from besaavy.core.utils import WEEKDAY_NAMES
from besaavy.utils.time_windows import ensure_hhmm

Urgency = Literal["critical", "high", "medium"]
ContentType = Literal["recall", "development", "general"]
ResponseAction = Literal["opened", "dismissed", "acted"]
NotificationStatus = Literal["held", "sent", "failed", "cancelled", "batched"]


class TimeWindow(BaseModel):
    """Wall-clock window; start later than end wraps midnight."""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        return ensure_hhmm(value)


class NapWindow(TimeWindow):
    reliability: float = Field(ge=0.0, le=1.0)


class FussyPeriod(TimeWindow):
    intensity: float = Field(ge=0.0, le=1.0)


class AnchorTime(BaseModel):
    time: str
    consistency: float = Field(ge=0.0, le=1.0)

    @field_validator("time")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        return ensure_hhmm(value)


def _hours(values: List[int]) -> List[int]:
    for hour in values:
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour {hour} out of range 0-23")
    return sorted(set(values))


# Used by: context.py, behavior.py, timing_predictor.py, delay_arbiter.py, profile_store.py
class BehaviorProfile(BaseModel):
    active_hours: List[int] = Field(default_factory=lambda: list(DEFAULT_ACTIVE_HOURS))
    response_rate_by_hour: Dict[int, float] = Field(default_factory=lambda: dict(DEFAULT_RESPONSE_RATES))
    avg_response_time_by_hour: Dict[int, float] = Field(default_factory=lambda: dict(DEFAULT_RESPONSE_TIMES))
    weekly_pattern: Dict[str, List[int]] = Field(
        default_factory=lambda: {day: list(hours) for day, hours in DEFAULT_WEEKLY_PATTERN.items()}
    )
    quiet_periods: List[TimeWindow] = Field(
        default_factory=lambda: [TimeWindow(start=s, end=e) for s, e in DEFAULT_QUIET_PERIODS]
    )
    last_active_time: Optional[datetime] = None
    last_notification_sent_at: Optional[datetime] = None

    @field_validator("active_hours")
    @classmethod
    def _check_active_hours(cls, value: List[int]) -> List[int]:
        return _hours(value)

    @field_validator("response_rate_by_hour")
    @classmethod
    def _check_rates(cls, value: Dict[int, float]) -> Dict[int, float]:
        for hour, rate in value.items():
            if not 0 <= hour <= 23 or not 0.0 <= rate <= 1.0:
                raise ValueError(f"Response rate {rate} for hour {hour} out of range")
        return value

    @field_validator("avg_response_time_by_hour")
    @classmethod
    def _check_latencies(cls, value: Dict[int, float]) -> Dict[int, float]:
        for hour, minutes in value.items():
            if not 0 <= hour <= 23 or minutes < 0:
                raise ValueError(f"Response time {minutes} for hour {hour} out of range")
        return value

    @field_validator("weekly_pattern")
    @classmethod
    def _check_weekly(cls, value: Dict[str, List[int]]) -> Dict[str, List[int]]:
        unknown = [day for day in value if day not in WEEKDAY_NAMES]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return {day: _hours(hours) for day, hours in value.items()}


# Used by: context.py, baby_schedule.py, profile_store.py
class BabySchedule(BaseModel):
    nap_times: List[NapWindow] = Field(
        default_factory=lambda: [NapWindow(start=s, end=e, reliability=r) for s, e, r in DEFAULT_NAP_TIMES]
    )
    bedtime: AnchorTime = Field(
        default_factory=lambda: AnchorTime(time=DEFAULT_BEDTIME[0], consistency=DEFAULT_BEDTIME[1])
    )
    wakeup_time: AnchorTime = Field(
        default_factory=lambda: AnchorTime(time=DEFAULT_WAKEUP_TIME[0], consistency=DEFAULT_WAKEUP_TIME[1])
    )
    feeding_times: List[int] = Field(default_factory=lambda: list(DEFAULT_FEEDING_HOURS))
    fussy_periods: List[FussyPeriod] = Field(
        default_factory=lambda: [FussyPeriod(start=s, end=e, intensity=i) for s, e, i in DEFAULT_FUSSY_PERIODS]
    )

    @field_validator("feeding_times")
    @classmethod
    def _check_feeding(cls, value: List[int]) -> List[int]:
        return _hours(value)


class ContextualFactors(BaseModel):
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)  # 0=Sunday; None → evaluation day
    is_holiday: bool = False
    weather_impact: Literal["indoor", "outdoor", "neutral"] = "neutral"
    parent_stress_level: Literal["low", "medium", "high"] = "medium"
    partner_available: bool = True


class CriticalPreferences(BaseModel):
    enabled: bool = True

    @field_validator("enabled")
    @classmethod
    def _always_on(cls, value: bool) -> bool:
        if not value:
            raise ValueError("Critical notifications cannot be disabled")
        return value


class QuietHours(TimeWindow):
    enabled: bool = True
    start: str = "22:00"
    end: str = "07:00"


class HighPreferences(BaseModel):
    enabled: bool = True
    schedule: Literal["immediate", "next_optimal", "evening_digest"] = "immediate"
    quiet_hours: QuietHours = Field(default_factory=QuietHours)


class MediumPreferences(BaseModel):
    enabled: bool = True
    frequency: Literal["immediate", "daily_digest", "weekly", "disabled"] = "daily_digest"
    batch_with: Literal["development_tips", "weekly_summary", "standalone"] = "development_tips"


class GeneralPreferences(BaseModel):
    sound: bool = True
    vibration: bool = True
    show_on_lockscreen: bool = True
    group_similar: bool = True


# Used by: context.py, notification_scheduler.py, api/profile.py
class NotificationPreferences(BaseModel):
    critical: CriticalPreferences = Field(default_factory=CriticalPreferences)
    high: HighPreferences = Field(default_factory=HighPreferences)
    medium: MediumPreferences = Field(default_factory=MediumPreferences)
    general: GeneralPreferences = Field(default_factory=GeneralPreferences)


# Used by: notification_scheduler.py, profile_store.py, push_service.py, api/notifications.py
class ScheduledNotification(BaseModel):
    id: str
    caregiver_id: str
    recall_id: str
    type: Urgency
    title: str
    body: str
    scheduled_for: datetime
    priority: int
    timing_reasoning: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    action_url: Optional[str] = None
    status: NotificationStatus = "held"
    created_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
