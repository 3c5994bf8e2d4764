"""Scores candidate delivery hours from caregiver behavior and the baby's schedule."""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from besaavy.core.constants import (
    SCORE_RESPONSE_RATE_WEIGHT, SCORE_FAST_RESPONSE_CEILING_MINUTES, SCORE_FAST_RESPONSE_WEIGHT,
    SCORE_BABY_CONFLICT_WEIGHT, SCORE_HIGH_URGENCY_BOOST,
    SCORE_DEVELOPMENT_OFF_HOURS_FACTOR, DEVELOPMENT_EARLIEST_HOUR, DEVELOPMENT_LATEST_HOUR,
    SCORE_WEEKEND_MORNING_FACTOR, WEEKEND_MORNING_END_HOUR, HIGH_URGENCY_LOOKAHEAD_HOURS,
    CONFIDENCE_BASE, CONFIDENCE_ACTIVE_HOUR_BONUS, CONFIDENCE_RESPONSE_RATE_WEIGHT,
    CONFIDENCE_LOW_CONFLICT_WEIGHT, CONFIDENCE_HIGH_URGENCY_BONUS,
    REASON_HIGH_RESPONSE_RATE, REASON_LOW_CONFLICT, REASON_QUICK_RESPONSE_MINUTES,
    ALTERNATIVE_OFFSETS_HOURS, ALTERNATIVE_MIN_RESPONSE_RATE, MAX_ALTERNATIVES,
)
from besaavy.core.utils import WEEKEND_DAY_INDEXES
from besaavy.services.baby_schedule import baby_schedule_conflict
from besaavy.services.behavior import hours_for_day, response_minutes, response_rate
from besaavy.services.context import SchedulingContext
from besaavy.utils.time_windows import sunday_first_weekday

logger = logging.getLogger(__name__)


class OptimalTimePredictor:
    """Hour-level heuristics. Every method is pure over the context it is given."""

    # Used by: self.calculate_confidence, self.generate_reasoning, self.score_hour, delay_arbiter.py
    def conflict(self, ctx: SchedulingContext, hour: int) -> float:
        return baby_schedule_conflict(ctx.baby_schedule, hour)

    # Used by: self.calculate_optimal_hour
    def is_weekend(self, ctx: SchedulingContext, now: datetime) -> bool:
        day_index = ctx.contextual_factors.day_of_week
        if day_index is None:
            day_index = sunday_first_weekday(now)
        return day_index in WEEKEND_DAY_INDEXES

    # Used by: self.calculate_optimal_hour
    def score_hour(
            self,
            ctx: SchedulingContext,
            hour: int,
            urgency: str,
            content_type: str,
            weekend: bool = False
    ) -> float:
        behavior = ctx.behavior

        score = response_rate(behavior, hour) * SCORE_RESPONSE_RATE_WEIGHT
        # Faster historical response → higher score
        score += max(0.0, SCORE_FAST_RESPONSE_CEILING_MINUTES - response_minutes(behavior, hour)) \
            * SCORE_FAST_RESPONSE_WEIGHT
        score -= self.conflict(ctx, hour) * SCORE_BABY_CONFLICT_WEIGHT

        if urgency == "high":
            score *= SCORE_HIGH_URGENCY_BOOST

        if content_type == "development" and (
                hour < DEVELOPMENT_EARLIEST_HOUR or hour > DEVELOPMENT_LATEST_HOUR):
            score *= SCORE_DEVELOPMENT_OFF_HOURS_FACTOR

        if weekend and hour < WEEKEND_MORNING_END_HOUR:
            score *= SCORE_WEEKEND_MORNING_FACTOR

        return score

    # Used by: smart_timing.py
    def calculate_optimal_hour(
            self,
            ctx: SchedulingContext,
            urgency: str,
            content_type: str,
            now: datetime
    ) -> Optional[int]:
        """Best hour among today's candidate hours, or None when there is no usage data at all."""
        candidates = hours_for_day(ctx.behavior, now)
        if not candidates:
            logger.warning(f"No active hours known for caregiver {ctx.caregiver_id}")
            return None

        weekend = self.is_weekend(ctx, now)
        scores: Dict[int, float] = {
            hour: self.score_hour(ctx, hour, urgency, content_type, weekend)
            for hour in candidates
        }

        # Urgent content goes out in the next few active hours rather than the best one
        current_hour = now.hour
        if urgency == "high" and current_hour in candidates:
            soon = [
                h for h in candidates
                if current_hour <= h <= current_hour + HIGH_URGENCY_LOOKAHEAD_HOURS
            ]
            if soon:
                return soon[0]

        # Ties go to the earliest hour
        return max(candidates, key=lambda h: (scores[h], -h))

    # Used by: smart_timing.py, delay_arbiter.py (should_deliver_now)
    def calculate_confidence(self, ctx: SchedulingContext, hour: int, urgency: str) -> float:
        behavior = ctx.behavior
        confidence = CONFIDENCE_BASE

        if hour in behavior.active_hours:
            confidence += CONFIDENCE_ACTIVE_HOUR_BONUS

        confidence += response_rate(behavior, hour) * CONFIDENCE_RESPONSE_RATE_WEIGHT
        confidence += (1.0 - self.conflict(ctx, hour)) * CONFIDENCE_LOW_CONFLICT_WEIGHT

        if urgency == "high":
            confidence += CONFIDENCE_HIGH_URGENCY_BONUS

        return min(confidence, 1.0)

    # Used by: smart_timing.py
    def generate_reasoning(self, ctx: SchedulingContext, hour: int, urgency: str) -> str:
        behavior = ctx.behavior
        reasons: List[str] = []

        if hour in behavior.active_hours:
            reasons.append("user typically active at this time")
        if response_rate(behavior, hour) > REASON_HIGH_RESPONSE_RATE:
            reasons.append("high historical response rate")
        if self.conflict(ctx, hour) < REASON_LOW_CONFLICT:
            reasons.append("low conflict with baby's schedule")
        if response_minutes(behavior, hour) < REASON_QUICK_RESPONSE_MINUTES:
            reasons.append("user typically responds quickly")
        if urgency == "high":
            reasons.append("prioritized for safety importance")
        return f"Optimal timing based on: {', '.join(reasons)}"

    # Used by: smart_timing.py
    def generate_alternatives(
            self,
            ctx: SchedulingContext,
            primary: datetime,
            now: datetime
    ) -> List[datetime]:
        """Up to three nearby slots the caregiver is usually reachable in."""
        behavior = ctx.behavior
        alternatives: List[datetime] = []

        for offset in ALTERNATIVE_OFFSETS_HOURS:
            candidate = primary + timedelta(hours=offset)
            if candidate < now:
                continue
            if candidate.hour in behavior.active_hours \
                    and response_rate(behavior, candidate.hour) > ALTERNATIVE_MIN_RESPONSE_RATE:
                alternatives.append(candidate)
            if len(alternatives) >= MAX_ALTERNATIVES:
                break

        return alternatives
