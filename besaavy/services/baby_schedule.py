"""Baby schedule conflict scoring."""

from besaavy.core.constants import (
    NAP_CONFLICT_WEIGHT, FUSSY_CONFLICT_WEIGHT, FEEDING_CONFLICT, MAX_BABY_CONFLICT,
)
from besaavy.db.models import BabySchedule
from besaavy.utils.time_windows import is_hour_in_window


# Used by: timing_predictor.py, delay_arbiter.py
def baby_schedule_conflict(schedule: BabySchedule, hour: int) -> float:
    """How likely an hour overlaps sleep, fussiness or feeding, in [0, 1]."""
    conflict = 0.0

    for nap in schedule.nap_times:
        if is_hour_in_window(hour, nap.start, nap.end):
            conflict += nap.reliability * NAP_CONFLICT_WEIGHT

    for fussy in schedule.fussy_periods:
        if is_hour_in_window(hour, fussy.start, fussy.end):
            conflict += fussy.intensity * FUSSY_CONFLICT_WEIGHT

    # Flat penalty for a feeding hour
    if hour in schedule.feeding_times:
        conflict += FEEDING_CONFLICT

    return min(conflict, MAX_BABY_CONFLICT)
