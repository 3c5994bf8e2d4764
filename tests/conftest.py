"""
Pytest configuration and shared fixtures for the notification timing tests.

Fakes stand in for the three outer edges of the scheduler: the deferred
runner (APScheduler), the delivery transport (Web Push) and the profile store
(database). A fixed clock keeps every timing decision deterministic.
"""

from datetime import datetime
from typing import Dict, List

import pytest

from besaavy.core.errors import DeliveryFailure
from besaavy.services.context import SchedulingContext
from besaavy.services.notification_scheduler import NotificationScheduler

# 2025-06-11 is a Wednesday; the default weekly pattern for it is [8, 12, 19, 21]
WEDNESDAY = datetime(2025, 6, 11)


def at(hour: int, minute: int = 0, day: int = 0) -> datetime:
    return WEDNESDAY.replace(day=WEDNESDAY.day + day, hour=hour, minute=minute)


class FakeRunner:
    """Records deferred jobs; tests fire them by hand."""

    def __init__(self):
        self.jobs: Dict[str, tuple] = {}

    def schedule(self, job_id, run_at, callback, args=()):
        self.jobs[job_id] = (run_at, callback, tuple(args))

    def cancel(self, job_id) -> bool:
        return self.jobs.pop(job_id, None) is not None

    def run_at(self, job_id) -> datetime:
        return self.jobs[job_id][0]

    async def fire(self, job_id):
        _, callback, args = self.jobs.pop(job_id)
        await callback(*args)


class FakeTransport:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List = []

    async def deliver(self, notification, preferences) -> bool:
        if self.fail:
            raise DeliveryFailure(notification.id, "device offline")
        self.sent.append(notification)
        return True


class FakeStore:
    def __init__(self):
        self.contexts: Dict[str, SchedulingContext] = {}
        self.notifications: Dict[str, object] = {}

    async def load_context(self, caregiver_id):
        return self.contexts.get(caregiver_id) or SchedulingContext(caregiver_id=caregiver_id)

    async def save_context(self, ctx) -> bool:
        self.contexts[ctx.caregiver_id] = ctx
        return True

    async def save_notification(self, notification) -> bool:
        self.notifications[notification.id] = notification.model_copy()
        return True

    async def load_held_notifications(self):
        return [n for n in self.notifications.values() if n.status == "held"]


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def clock():
    return Clock(at(15))


@pytest.fixture
def ctx():
    return SchedulingContext(caregiver_id="caregiver-1")


@pytest.fixture
def scheduler(runner, transport, store, clock):
    return NotificationScheduler(transport=transport, runner=runner, store=store, clock=clock)
