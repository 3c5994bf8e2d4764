"""Optimal-time pipeline: predictor, delay arbitration and alternatives in one call."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from besaavy.core.constants import BATCH_MIN_INTERVAL_HOURS, BATCH_THROTTLE_ANCHORS, CONFIDENCE_FALLBACK
from besaavy.core.errors import ConfigurationError
from besaavy.core.settings import settings
from besaavy.services.context import SchedulingContext
from besaavy.services.delay_arbiter import DelayArbiter
from besaavy.services.timing_predictor import OptimalTimePredictor
from besaavy.utils.time_windows import at_hour, local_now

logger = logging.getLogger(__name__)

CRITICAL_REASONING = "Critical safety alerts are delivered immediately regardless of timing"
NO_DATA_REASONING = "No usage history available yet, delivering now"


@dataclass
class TimingResult:
    recommended_time: datetime
    confidence: float
    reasoning: str
    alternative_times: List[datetime] = field(default_factory=list)
    should_delay_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "recommended_time": self.recommended_time.isoformat(),
            "confidence": round(self.confidence, 3),
            "reasoning": self.reasoning,
            "alternative_times": [t.isoformat() for t in self.alternative_times],
            "should_delay_reason": self.should_delay_reason,
        }


class SmartTiming:
    def __init__(
            self,
            predictor: Optional[OptimalTimePredictor] = None,
            arbiter: Optional[DelayArbiter] = None
    ):
        self.predictor = predictor or OptimalTimePredictor()
        self.arbiter = arbiter or DelayArbiter(self.predictor)

    # Used by: notification_scheduler.py, api/notifications.py (insights)
    def predict_optimal_time(
            self,
            ctx: SchedulingContext,
            urgency: str,
            content_type: str = "recall",
            now: Optional[datetime] = None
    ) -> TimingResult:
        if now is None:
            now = local_now()

        if urgency == "critical":
            return TimingResult(recommended_time=now, confidence=1.0, reasoning=CRITICAL_REASONING)

        hour = self.predictor.calculate_optimal_hour(ctx, urgency, content_type, now)
        if hour is None:
            return TimingResult(recommended_time=now, confidence=CONFIDENCE_FALLBACK, reasoning=NO_DATA_REASONING)

        optimal_time = at_hour(hour, now)

        decision = self.arbiter.should_delay(ctx, optimal_time, urgency, now)
        if decision.should_delay:
            delayed = self.arbiter.find_next_optimal_time(ctx, optimal_time, urgency, now)
            logger.info(
                f"Delayed {urgency} slot {optimal_time:%Y-%m-%d %H:%M} → {delayed:%Y-%m-%d %H:%M} "
                f"for caregiver {ctx.caregiver_id}: {decision.reason}"
            )
            return TimingResult(
                recommended_time=delayed,
                confidence=decision.confidence,
                reasoning=decision.reason,
                alternative_times=self.predictor.generate_alternatives(ctx, delayed, now),
                should_delay_reason=decision.reason,
            )

        return TimingResult(
            recommended_time=optimal_time,
            confidence=self.predictor.calculate_confidence(ctx, hour, urgency),
            reasoning=self.predictor.generate_reasoning(ctx, hour, urgency),
            alternative_times=self.predictor.generate_alternatives(ctx, optimal_time, now),
        )

    # Used by: notification_scheduler.py (next_batch_time)
    def next_batch_time(
            self,
            ctx: SchedulingContext,
            now: Optional[datetime] = None,
            throttle_anchor: Optional[str] = None
    ) -> datetime:
        """Slot for a medium-priority digest, kept at least two hours after the throttle anchor."""
        if now is None:
            now = local_now()
        throttle_anchor = throttle_anchor or settings.BATCH_THROTTLE_ANCHOR
        if throttle_anchor not in BATCH_THROTTLE_ANCHORS:
            raise ConfigurationError(
                f"Unknown batch throttle anchor {throttle_anchor!r}, expected one of {BATCH_THROTTLE_ANCHORS}"
            )

        result = self.predict_optimal_time(ctx, "medium", "general", now)

        if throttle_anchor == "last_sent":
            anchor = ctx.behavior.last_notification_sent_at
        else:
            anchor = ctx.behavior.last_active_time
        if anchor is None:
            return result.recommended_time

        min_interval = timedelta(hours=BATCH_MIN_INTERVAL_HOURS)
        if result.recommended_time - anchor < min_interval:
            return self.arbiter.find_next_optimal_time(ctx, anchor + min_interval, "medium", now)

        return result.recommended_time
