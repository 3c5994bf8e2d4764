"""Tests for the HTTP routers, with the scheduler wired to fakes."""

import pytest
from fastapi.testclient import TestClient

from besaavy.main import app
from besaavy.services import context as context_module
from besaavy.services import notification_scheduler as scheduler_module
from besaavy.services.context import ContextRegistry
from besaavy.services.notification_scheduler import NotificationScheduler

from conftest import Clock, FakeRunner, FakeStore, FakeTransport, at


@pytest.fixture
def wired(monkeypatch):
    store = FakeStore()
    transport = FakeTransport()
    runner = FakeRunner()
    scheduler = NotificationScheduler(transport, runner, store=store, clock=Clock(at(15)))

    monkeypatch.setattr(scheduler_module, "_notification_scheduler", scheduler)
    monkeypatch.setattr(context_module, "_context_registry", ContextRegistry(store=store))
    return scheduler, transport, runner


@pytest.fixture
def client(wired):
    # No context manager: the lifespan (database, APScheduler) is not started
    return TestClient(app)


def _schedule_body(urgency, recall_id="r1"):
    return {
        "caregiver_id": "caregiver-1",
        "recall_id": recall_id,
        "urgency": urgency,
        "product_name": "Sleeper Pod",
        "hazard_description": "Suffocation hazard",
    }


def test_schedule_high_delivers_immediately(client, wired):
    _, transport, _ = wired
    response = client.post("/notifications/schedule", json=_schedule_body("high"))

    assert response.status_code == 200
    data = response.json()
    assert data["accepted"] is True
    assert data["delivered"] is True
    assert data["notification"]["title"] == "⚠️ Important recall: Sleeper Pod may affect your baby"
    assert data["notification"]["confidence"] == 0.8
    assert len(transport.sent) == 1


def test_schedule_with_explicit_title(client):
    body = dict(_schedule_body("high"), title="Check your sleeper")
    data = client.post("/notifications/schedule", json=body).json()
    assert data["notification"]["title"] == "Check your sleeper"


def test_schedule_rejects_unknown_urgency(client):
    response = client.post("/notifications/schedule", json=_schedule_body("low"))
    assert response.status_code == 422


def test_schedule_passes_content_type_to_predictor(client, wired, monkeypatch):
    scheduler, _, _ = wired
    seen = []
    predict = scheduler.timing.predict_optimal_time

    def spy(ctx, urgency, content_type="recall", now=None):
        seen.append(content_type)
        return predict(ctx, urgency, content_type, now)

    monkeypatch.setattr(scheduler.timing, "predict_optimal_time", spy)
    body = dict(_schedule_body("medium"), content_type="development")

    assert client.post("/notifications/schedule", json=body).status_code == 200
    assert seen == ["development"]


def test_pending_and_cancel(client, wired):
    _, _, runner = wired
    data = client.post("/notifications/schedule", json=_schedule_body("medium")).json()
    notification_id = data["notification"]["id"]
    assert data["delivered"] is False
    assert notification_id in runner.jobs

    pending = client.get("/notifications/pending", params={"caregiver_id": "caregiver-1"}).json()
    assert pending["total_count"] == 1
    assert pending["notifications"][0]["id"] == notification_id

    assert client.delete(f"/notifications/{notification_id}").status_code == 200
    assert client.delete(f"/notifications/{notification_id}").status_code == 404
    assert client.get("/notifications/pending").json()["total_count"] == 0


def test_batch_endpoint(client, wired):
    _, transport, _ = wired
    for i in range(2):
        client.post("/notifications/schedule", json=_schedule_body("medium", recall_id=f"r{i}"))

    data = client.post("/notifications/batch", params={"caregiver_id": "caregiver-1"}).json()
    assert data["batched"] is True
    assert data["notification"]["title"] == "2 Product Safety Updates"

    empty = client.post("/notifications/batch", params={"caregiver_id": "caregiver-1"}).json()
    assert empty == {"batched": False, "delivered": False, "notification": None}
    assert len(transport.sent) == 1


def test_critical_endpoint(client, wired):
    _, transport, _ = wired
    response = client.post("/notifications/critical", json={
        "caregiver_id": "caregiver-1",
        "recall_id": "r7",
        "product_name": "Car Seat",
        "hazard_description": "Buckle may release.",
    })
    assert response.json() == {"delivered": True}
    assert transport.sent[0].title == "🚨 URGENT: Car Seat Safety Alert"


def test_insights(client):
    data = client.get("/notifications/insights", params={"caregiver_id": "caregiver-1"}).json()
    assert data["confidence"] <= 1.0
    assert data["reasoning"]
    assert "next_optimal_time" in data
    assert "next_batch_time" in data


def test_insights_for_urgency_and_content_type(client, wired, monkeypatch):
    scheduler, _, _ = wired
    seen = []
    predict = scheduler.timing.predict_optimal_time

    def spy(ctx, urgency, content_type="recall", now=None):
        seen.append((urgency, content_type))
        return predict(ctx, urgency, content_type, now)

    monkeypatch.setattr(scheduler.timing, "predict_optimal_time", spy)
    params = {"caregiver_id": "caregiver-1", "urgency": "high", "content_type": "development"}

    assert client.get("/notifications/insights", params=params).status_code == 200
    assert seen[0] == ("high", "development")

    bad = client.get("/notifications/insights", params=dict(params, urgency="urgent"))
    assert bad.status_code == 422


def test_interaction(client):
    sent = client.post("/notifications/schedule", json=_schedule_body("high")).json()["notification"]

    response = client.post(
        f"/notifications/{sent['id']}/interaction",
        json={"caregiver_id": "caregiver-1", "action": "acted"},
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    missing = client.post(
        "/notifications/nope/interaction",
        json={"caregiver_id": "caregiver-1", "action": "acted"},
    )
    assert missing.status_code == 404


def test_preferences(client):
    prefs = client.get("/caregivers/caregiver-1/preferences").json()
    assert prefs["high"]["schedule"] == "immediate"
    assert prefs["critical"]["enabled"] is True

    updated = client.patch(
        "/caregivers/caregiver-1/preferences", json={"high": {"schedule": "evening_digest"}}
    ).json()
    assert updated["high"]["schedule"] == "evening_digest"
    assert updated["medium"]["frequency"] == "daily_digest"

    rejected = client.patch("/caregivers/caregiver-1/preferences", json={"critical": {"enabled": False}})
    assert rejected.status_code == 400
    assert client.get("/caregivers/caregiver-1/preferences").json()["high"]["schedule"] == "evening_digest"


def test_baby_schedule(client):
    schedule = client.get("/caregivers/caregiver-1/baby-schedule").json()
    assert schedule["bedtime"]["time"] == "19:30"

    updated = client.patch("/caregivers/caregiver-1/baby-schedule", json={"bedtime": {"time": "20:15"}})
    assert updated.json()["bedtime"]["time"] == "20:15"

    rejected = client.patch("/caregivers/caregiver-1/baby-schedule", json={"bedtime": {"time": "8pm"}})
    assert rejected.status_code == 400


def test_context_sets_baby_name(client):
    response = client.patch("/caregivers/caregiver-1/context", json={"baby_name": "Maya", "is_holiday": True})
    assert response.status_code == 200
    assert response.json()["is_holiday"] is True

    data = client.post("/notifications/schedule", json=_schedule_body("high")).json()
    assert data["notification"]["title"].endswith("may affect Maya")

    assert client.patch("/caregivers/caregiver-1/context", json={"day_of_week": 9}).status_code == 400


def test_rejected_context_patch_keeps_baby_name(client):
    response = client.patch("/caregivers/caregiver-1/context", json={"baby_name": "Maya", "day_of_week": 9})
    assert response.status_code == 400

    data = client.post("/notifications/schedule", json=_schedule_body("high")).json()
    assert data["notification"]["title"].endswith("may affect your baby")


def test_app_usage_and_responses(client):
    usage = client.post("/caregivers/caregiver-1/app-usage", json={"timestamp": "2025-06-11T03:20:00"})
    assert usage.status_code == 200
    assert 3 in usage.json()["active_hours"]

    usage_now = client.post("/caregivers/caregiver-1/app-usage")
    assert usage_now.json()["last_active_time"] == "2025-06-11T15:00:00"

    response = client.post("/caregivers/caregiver-1/responses", json={
        "notification_id": "n1",
        "delivered_at": "2025-06-11T19:00:00",
        "responded_at": "2025-06-11T19:04:00",
        "action": "opened",
    })
    assert response.status_code == 200

    bad_action = client.post("/caregivers/caregiver-1/responses", json={
        "notification_id": "n1",
        "delivered_at": "2025-06-11T19:00:00",
        "responded_at": "2025-06-11T19:04:00",
        "action": "ignored",
    })
    assert bad_action.status_code == 422
