"""Shared lookup maps: weekday names and urgency labels."""

from typing import Dict, List

# Used by: time_windows.py, behavior.py (indexed by datetime.weekday())
WEEKDAY_NAMES: List[str] = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

# Used by: timing_predictor.py (0=Sunday, as in ContextualFactors.day_of_week)
WEEKEND_DAY_INDEXES = (0, 6)

# Used by: notification_scheduler.py (per-urgency recall titles)
TITLE_TEMPLATES: Dict[str, str] = {
    "critical": "🚨 URGENT: {product} recall affects {baby}'s safety",
    "high": "⚠️ Important recall: {product} may affect {baby}",
    "medium": "📋 Safety notice: {product} recall to be aware of",
}
