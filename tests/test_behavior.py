"""Tests for behavior learning from app usage and notification responses."""

from datetime import timedelta

import pytest

from besaavy.db.models import BehaviorProfile
from besaavy.services.behavior import (
    hours_for_day, record_app_usage, record_notification_response, response_minutes, response_rate,
)

from conftest import at


def test_defaults_for_unseen_hours():
    profile = BehaviorProfile()
    assert response_rate(profile, 3) == 0.5
    assert response_minutes(profile, 3) == 15.0


def test_hours_for_day_prefers_weekly_pattern():
    profile = BehaviorProfile()
    assert hours_for_day(profile, at(12)) == [8, 12, 19, 21]

    profile.weekly_pattern["wednesday"] = []
    assert hours_for_day(profile, at(12)) == profile.active_hours


def test_app_usage_grows_active_hours_and_weekly_pattern():
    profile = BehaviorProfile()
    record_app_usage(profile, at(3, 15))

    assert 3 in profile.active_hours
    assert profile.active_hours == sorted(profile.active_hours)
    assert profile.weekly_pattern["wednesday"] == [3, 8, 12, 19, 21]
    assert profile.last_active_time == at(3, 15)

    record_app_usage(profile, at(3, 45))
    assert profile.active_hours.count(3) == 1


def test_acted_response_raises_rate():
    profile = BehaviorProfile()
    delivered = at(19)
    record_notification_response(profile, delivered, delivered + timedelta(minutes=10), "acted")

    assert profile.response_rate_by_hour[19] == pytest.approx(0.85 * 0.8 + 1.0 * 0.2)
    assert profile.avg_response_time_by_hour[19] == pytest.approx(5.0 * 0.8 + 10.0 * 0.2)


def test_dismissed_response_lowers_rate():
    profile = BehaviorProfile()
    delivered = at(19)
    record_notification_response(profile, delivered, delivered + timedelta(minutes=1), "dismissed")
    assert profile.response_rate_by_hour[19] == pytest.approx(0.72)


def test_unseen_hour_learns_from_defaults():
    profile = BehaviorProfile()
    delivered = at(10)
    record_notification_response(profile, delivered, delivered + timedelta(minutes=5), "opened")
    assert profile.response_rate_by_hour[10] == pytest.approx(0.5 * 0.8 + 0.7 * 0.2)
    assert profile.avg_response_time_by_hour[10] == pytest.approx(15.0 * 0.8 + 5.0 * 0.2)


def test_negative_latency_is_clamped():
    profile = BehaviorProfile()
    delivered = at(19)
    record_notification_response(profile, delivered, delivered - timedelta(minutes=30), "opened")
    assert profile.avg_response_time_by_hour[19] == pytest.approx(4.0)


def test_smoothing_is_configurable():
    profile = BehaviorProfile()
    delivered = at(19)
    record_notification_response(profile, delivered, delivered, "acted", smoothing=1.0)
    assert profile.response_rate_by_hour[19] == 1.0


def test_unknown_action_is_rejected():
    profile = BehaviorProfile()
    with pytest.raises(ValueError):
        record_notification_response(profile, at(19), at(19), "ignored")
    assert profile.response_rate_by_hour[19] == 0.85
