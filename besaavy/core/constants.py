"""Timing heuristics, default caregiver/baby profiles, and app-level tuning constants."""

# ── URGENCY TIERS ────────────────────────────────────────────────────────────
# Display/sort rank attached to every scheduled notification.
PRIORITY_BY_URGENCY = {
    "critical": 10,
    "high": 7,
    "medium": 4,
}


# ── BEHAVIOR DEFAULTS ────────────────────────────────────────────────────────
# No behavioral source, seed values used until a caregiver's own usage and
# response history accumulates. Absent hours read as the neutral defaults.
DEFAULT_RESPONSE_RATE = 0.5
DEFAULT_RESPONSE_MINUTES = 15.0

DEFAULT_ACTIVE_HOURS = [7, 8, 12, 15, 19, 21]
DEFAULT_RESPONSE_RATES = {7: 0.85, 8: 0.90, 12: 0.75, 15: 0.80, 19: 0.85, 21: 0.70}
DEFAULT_RESPONSE_TIMES = {7: 5.0, 8: 3.0, 12: 15.0, 15: 8.0, 19: 5.0, 21: 20.0}
DEFAULT_QUIET_PERIODS = [
    ("22:00", "07:00"),  # night
    ("13:00", "15:00"),  # afternoon nap
]
DEFAULT_WEEKLY_PATTERN = {
    "monday": [8, 12, 19],
    "tuesday": [7, 12, 15, 19],
    "wednesday": [8, 12, 19, 21],
    "thursday": [7, 12, 15, 19],
    "friday": [8, 12, 19, 21],
    "saturday": [9, 14, 20],
    "sunday": [10, 15, 19],
}


# ── BABY SCHEDULE DEFAULTS ───────────────────────────────────────────────────
# Typical 6-9 month routine, replaced as soon as the caregiver edits it.
DEFAULT_NAP_TIMES = [
    ("09:30", "11:00", 0.8),
    ("13:00", "15:00", 0.9),
    ("17:30", "18:00", 0.6),
]
DEFAULT_BEDTIME = ("19:30", 0.85)
DEFAULT_WAKEUP_TIME = ("07:00", 0.75)
DEFAULT_FEEDING_HOURS = [7, 10, 13, 16, 19, 22]
DEFAULT_FUSSY_PERIODS = [
    ("17:00", "19:00", 0.8),  # evening witching hour
    ("05:00", "06:00", 0.6),
]


# ── LEARNING ─────────────────────────────────────────────────────────────────
# Exponential filter weight given to the newest observation.
LEARNING_SMOOTHING = 0.2

# Response signal fed into the rate filter per caregiver action.
RESPONSE_SIGNAL_BY_ACTION = {
    "acted": 1.0,
    "opened": 0.7,
    "dismissed": 0.2,
}


# ── HOUR SCORING ─────────────────────────────────────────────────────────────
SCORE_RESPONSE_RATE_WEIGHT = 40.0
SCORE_FAST_RESPONSE_CEILING_MINUTES = 20.0
SCORE_FAST_RESPONSE_WEIGHT = 2.0
SCORE_BABY_CONFLICT_WEIGHT = 20.0
SCORE_HIGH_URGENCY_BOOST = 1.3
SCORE_DEVELOPMENT_OFF_HOURS_FACTOR = 0.7
DEVELOPMENT_EARLIEST_HOUR = 8
DEVELOPMENT_LATEST_HOUR = 20
SCORE_WEEKEND_MORNING_FACTOR = 0.8
WEEKEND_MORNING_END_HOUR = 9
HIGH_URGENCY_LOOKAHEAD_HOURS = 3

# Conflict contributions; the sum is capped at 1.0.
NAP_CONFLICT_WEIGHT = 0.8
FUSSY_CONFLICT_WEIGHT = 0.6
FEEDING_CONFLICT = 0.2
MAX_BABY_CONFLICT = 1.0


# ── CONFIDENCE ───────────────────────────────────────────────────────────────
CONFIDENCE_BASE = 0.7
CONFIDENCE_ACTIVE_HOUR_BONUS = 0.2
CONFIDENCE_RESPONSE_RATE_WEIGHT = 0.3
CONFIDENCE_LOW_CONFLICT_WEIGHT = 0.2
CONFIDENCE_HIGH_URGENCY_BONUS = 0.1
CONFIDENCE_FALLBACK = 0.5

REASON_HIGH_RESPONSE_RATE = 0.7
REASON_LOW_CONFLICT = 0.3
REASON_QUICK_RESPONSE_MINUTES = 10.0

ALTERNATIVE_OFFSETS_HOURS = [-2, -1, 1, 2]
ALTERNATIVE_MIN_RESPONSE_RATE = 0.4
MAX_ALTERNATIVES = 3


# ── DELAY ARBITRATION ────────────────────────────────────────────────────────
HIGH_URGENCY_NO_DELAY_HOURS = 4
QUIET_PERIOD_DELAY_CONFIDENCE = 0.9
BABY_CONFLICT_DELAY_THRESHOLD = 0.7
UNRESPONSIVE_RATE_THRESHOLD = 0.3
NO_DELAY_CONFIDENCE = 0.8
ACCEPTABLE_RESPONSE_RATE = 0.5
MAX_DELAY_HOURS = {
    "high": 6,
    "medium": 24,
}
FALLBACK_MIN_LEAD_MINUTES = 60

# Held notifications this close to their slot are released at re-check.
DELIVERY_GRACE_MINUTES = 5
RECHECK_IMPROVEMENT_MARGIN = 0.2


# ── USER PREFERENCE SLOTS ────────────────────────────────────────────────────
EVENING_DIGEST_HOUR = 19
IMMEDIATE_PREFERENCE_CONFIDENCE = 0.8
EVENING_DIGEST_CONFIDENCE = 0.9


# ── BATCHING ─────────────────────────────────────────────────────────────────
BATCH_MIN_INTERVAL_HOURS = 2
# "app_usage" anchors the batch throttle on last app use, "last_sent" on the
# last delivered notification.
BATCH_THROTTLE_ANCHOR = "app_usage"
BATCH_THROTTLE_ANCHORS = ("app_usage", "last_sent")

# Delivered/failed records kept in memory for interaction lookups.
DELIVERY_HISTORY_LIMIT = 200
