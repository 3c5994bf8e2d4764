"""Tests for the Web Push transport and subscription storage."""

import json

import pytest
import pytest_asyncio
from pywebpush import WebPushException

from besaavy.core.database import DatabaseManager
from besaavy.core.errors import DeliveryFailure
from besaavy.db.models import GeneralPreferences, ScheduledNotification
from besaavy.services import push_service as push_module
from besaavy.services.push_service import PushService

from conftest import at


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code
        self.text = "gone"


@pytest_asyncio.fixture
async def database(tmp_path):
    db = DatabaseManager()
    await db.connect(f"sqlite+aiosqlite:///{tmp_path / 'push-test.db'}")
    yield db
    await db.disconnect()


@pytest.fixture
def service(database):
    service = PushService(database)
    service.public_key = "public-key"
    service._private_key = "private-key"
    return service


def _notification(urgency="high"):
    return ScheduledNotification(
        id="recall-r1-abc",
        caregiver_id="caregiver-1",
        recall_id="r1",
        type=urgency,
        title="⚠️ Important recall: Sleeper Pod may affect Maya",
        body="Suffocation hazard",
        scheduled_for=at(15),
        priority=7,
        action_url="/recalls/r1",
    )


async def _subscribe(service):
    return await service.save_subscription("caregiver-1", "https://push.example/abc", "p256", "auth")


@pytest.mark.asyncio
async def test_subscription_upsert_and_removal(service):
    assert await _subscribe(service)
    assert await service.save_subscription("caregiver-1", "https://push.example/new", "p256", "auth")

    subscription = await service.get_subscription("caregiver-1")
    assert subscription == {
        "endpoint": "https://push.example/new",
        "keys": {"p256dh": "p256", "auth": "auth"},
    }

    assert await service.remove_subscription("caregiver-1") is True
    assert await service.remove_subscription("caregiver-1") is False
    assert await service.get_subscription("caregiver-1") is None


def test_payload_follows_preferences():
    critical = json.loads(PushService.build_payload(_notification("critical"), GeneralPreferences()))
    assert critical["requireInteraction"] is True
    assert critical["vibrate"] == [200, 100, 200, 100, 200]
    assert critical["tag"] == "recall-r1"
    assert critical["data"]["action_url"] == "/recalls/r1"

    quiet = json.loads(PushService.build_payload(_notification(), GeneralPreferences(sound=False, vibration=False)))
    assert quiet["silent"] is True
    assert quiet["requireInteraction"] is False
    assert "vibrate" not in quiet


@pytest.mark.asyncio
async def test_deliver_without_keys_fails(database):
    unconfigured = PushService(database)
    unconfigured.public_key = None
    with pytest.raises(DeliveryFailure):
        await unconfigured.deliver(_notification(), GeneralPreferences())


@pytest.mark.asyncio
async def test_deliver_without_subscription_fails(service):
    with pytest.raises(DeliveryFailure) as excinfo:
        await service.deliver(_notification(), GeneralPreferences())
    assert excinfo.value.notification_id == "recall-r1-abc"


@pytest.mark.asyncio
async def test_deliver_sends_web_push(service, monkeypatch):
    calls = []
    monkeypatch.setattr(push_module, "webpush", lambda **kwargs: calls.append(kwargs))
    await _subscribe(service)

    assert await service.deliver(_notification(), GeneralPreferences()) is True

    assert calls[0]["subscription_info"]["endpoint"] == "https://push.example/abc"
    assert calls[0]["vapid_private_key"] == "private-key"
    assert calls[0]["vapid_claims"]["sub"].startswith("mailto:")
    assert json.loads(calls[0]["data"])["title"].endswith("may affect Maya")


@pytest.mark.asyncio
async def test_expired_subscription_is_removed(service, monkeypatch):
    def gone(**kwargs):
        raise WebPushException("Push failed: 410 Gone", response=_Response(410))

    monkeypatch.setattr(push_module, "webpush", gone)
    await _subscribe(service)

    with pytest.raises(DeliveryFailure):
        await service.deliver(_notification(), GeneralPreferences())
    assert await service.get_subscription("caregiver-1") is None
