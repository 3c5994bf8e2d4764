"""Tests for the end-to-end optimal time pipeline."""

import pytest

from besaavy.core.errors import ConfigurationError
from besaavy.core.settings import settings
from besaavy.db.models import BabySchedule, NapWindow
from besaavy.services.smart_timing import CRITICAL_REASONING, SmartTiming

from conftest import at


@pytest.fixture
def timing():
    return SmartTiming()


def test_critical_is_immediate_with_full_confidence(timing, ctx):
    now = at(23, 30)
    result = timing.predict_optimal_time(ctx, "critical", now=now)
    assert result.recommended_time == now
    assert result.confidence == 1.0
    assert result.reasoning == CRITICAL_REASONING
    assert result.alternative_times == []


def test_no_usage_history_delivers_now(timing, ctx):
    ctx.behavior.active_hours = []
    ctx.behavior.weekly_pattern = {}
    now = at(12)
    result = timing.predict_optimal_time(ctx, "medium", now=now)
    assert result.recommended_time == now
    assert result.confidence == 0.5


def test_medium_goes_to_best_hour_tomorrow_once_it_has_passed(timing, ctx):
    result = timing.predict_optimal_time(ctx, "medium", now=at(12, 30))
    assert result.recommended_time == at(8, day=1)
    assert result.should_delay_reason is None
    assert result.confidence == 1.0
    assert result.alternative_times == [at(7, day=1)]


def test_high_in_an_active_hour_goes_now(timing, ctx):
    now = at(12, 10)
    result = timing.predict_optimal_time(ctx, "high", now=now)
    assert result.recommended_time == now
    assert "prioritized for safety importance" in result.reasoning


def test_delayed_slot_reports_the_reason(timing, ctx):
    # Only the 14:00 slot is active, and the baby always naps then
    ctx.behavior.quiet_periods = []
    ctx.behavior.active_hours = [14]
    ctx.behavior.weekly_pattern = {}
    ctx.baby_schedule = BabySchedule(
        nap_times=[NapWindow(start="13:00", end="15:00", reliability=0.9)],
        fussy_periods=[],
        feeding_times=[],
    )
    result = timing.predict_optimal_time(ctx, "medium", now=at(9))
    assert result.should_delay_reason == "Baby is likely sleeping or in a fussy period"
    assert result.reasoning == result.should_delay_reason
    assert result.recommended_time > at(14)


def test_to_dict_is_json_friendly(timing, ctx):
    payload = timing.predict_optimal_time(ctx, "medium", now=at(12, 30)).to_dict()
    assert payload["recommended_time"] == "2025-06-12T08:00:00"
    assert isinstance(payload["alternative_times"], list)


def test_next_batch_time_keeps_two_hours_after_app_use(timing, ctx):
    ctx.behavior.last_active_time = at(7, 30)
    # 08:00 would be 30 minutes after the last app use; next responsive slot after 09:30 is 12:30
    assert timing.next_batch_time(ctx, at(7, 30), throttle_anchor="app_usage") == at(12, 30)


def test_next_batch_time_without_anchor(timing, ctx):
    assert timing.next_batch_time(ctx, at(7, 30), throttle_anchor="last_sent") == at(8)


def test_next_batch_time_far_from_anchor_is_unchanged(timing, ctx):
    ctx.behavior.last_notification_sent_at = at(1)
    assert timing.next_batch_time(ctx, at(7, 30), throttle_anchor="last_sent") == at(8)


def test_next_batch_time_rejects_unknown_anchor(timing, ctx, monkeypatch):
    with pytest.raises(ConfigurationError):
        timing.next_batch_time(ctx, at(7, 30), throttle_anchor="last_open")

    monkeypatch.setattr(settings, "BATCH_THROTTLE_ANCHOR", "lastsent")
    with pytest.raises(ConfigurationError):
        timing.next_batch_time(ctx, at(7, 30))
