"""Decides whether a proposed delivery time should be pushed later, and to when."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from besaavy.core.constants import (
    HIGH_URGENCY_NO_DELAY_HOURS, QUIET_PERIOD_DELAY_CONFIDENCE, BABY_CONFLICT_DELAY_THRESHOLD,
    UNRESPONSIVE_RATE_THRESHOLD, NO_DELAY_CONFIDENCE, ACCEPTABLE_RESPONSE_RATE,
    MAX_DELAY_HOURS, FALLBACK_MIN_LEAD_MINUTES, DELIVERY_GRACE_MINUTES, RECHECK_IMPROVEMENT_MARGIN,
)
from besaavy.services.behavior import hours_for_day, response_rate
from besaavy.services.context import SchedulingContext
from besaavy.services.timing_predictor import OptimalTimePredictor
from besaavy.utils.time_windows import is_in_window

logger = logging.getLogger(__name__)


@dataclass
class DelayDecision:
    should_delay: bool
    reason: str
    confidence: float


# Used by: self.should_delay, self.find_next_optimal_time, notification_scheduler.py
def in_quiet_period(ctx: SchedulingContext, moment: datetime) -> bool:
    return any(
        is_in_window(moment, quiet.start, quiet.end)
        for quiet in ctx.behavior.quiet_periods
    )


class DelayArbiter:
    def __init__(self, predictor: Optional[OptimalTimePredictor] = None):
        self.predictor = predictor or OptimalTimePredictor()

    # Used by: smart_timing.py
    def should_delay(
            self,
            ctx: SchedulingContext,
            proposed: datetime,
            urgency: str,
            now: datetime
    ) -> DelayDecision:
        hour = proposed.hour

        if urgency == "high" and proposed - now < timedelta(hours=HIGH_URGENCY_NO_DELAY_HOURS):
            return DelayDecision(False, "", NO_DELAY_CONFIDENCE)

        if in_quiet_period(ctx, proposed):
            return DelayDecision(
                True, "Proposed time conflicts with quiet hours", QUIET_PERIOD_DELAY_CONFIDENCE
            )

        conflict = self.predictor.conflict(ctx, hour)
        if conflict > BABY_CONFLICT_DELAY_THRESHOLD:
            return DelayDecision(True, "Baby is likely sleeping or in a fussy period", conflict)

        rate = response_rate(ctx.behavior, hour)
        if urgency == "medium" and rate < UNRESPONSIVE_RATE_THRESHOLD:
            return DelayDecision(True, "User historically unresponsive at this time", 1.0 - rate)

        return DelayDecision(False, "", NO_DELAY_CONFIDENCE)

    # Used by: smart_timing.py
    def find_next_optimal_time(
            self,
            ctx: SchedulingContext,
            original: datetime,
            urgency: str,
            now: datetime
    ) -> datetime:
        """First acceptable hour within the urgency's cap, else the next active hour.

        Never returns a time before `now`.
        """
        max_delay = MAX_DELAY_HOURS.get(urgency, MAX_DELAY_HOURS["medium"])
        base = max(original, now)

        for i in range(1, max_delay + 1):
            candidate = base + timedelta(hours=i)
            if in_quiet_period(ctx, candidate):
                continue
            if response_rate(ctx.behavior, candidate.hour) > ACCEPTABLE_RESPONSE_RATE:
                return candidate

        pattern = hours_for_day(ctx.behavior, original)
        if not pattern:
            logger.warning(
                f"No active hours for caregiver {ctx.caregiver_id}, delaying by the full {max_delay}h cap"
            )
            return base + timedelta(hours=max_delay)

        later = [h for h in pattern if h > original.hour]
        fallback = original.replace(minute=0, second=0, microsecond=0)
        if later:
            fallback = fallback.replace(hour=later[0])
        else:
            fallback = fallback.replace(hour=pattern[0]) + timedelta(days=1)

        earliest = now + timedelta(minutes=FALLBACK_MIN_LEAD_MINUTES)
        while fallback < earliest:
            fallback += timedelta(days=1)

        logger.debug(f"No slot within {max_delay}h of {original}, falling back to {fallback}")
        return fallback

    # Used by: notification_scheduler.py (held re-check at fire time)
    def should_deliver_now(
            self,
            ctx: SchedulingContext,
            scheduled_time: datetime,
            urgency: str,
            now: datetime
    ) -> bool:
        if urgency == "critical":
            return True

        if scheduled_time - now <= timedelta(minutes=DELIVERY_GRACE_MINUTES):
            return True

        if urgency == "high":
            # Hour-only comparison; the weekly pattern is not consulted here
            current_score = self.predictor.calculate_confidence(ctx, now.hour, "high")
            scheduled_score = self.predictor.calculate_confidence(ctx, scheduled_time.hour, "high")
            if current_score > scheduled_score + RECHECK_IMPROVEMENT_MARGIN:
                return True

        return False
