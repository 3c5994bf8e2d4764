"""
Recall notification scheduler.

Turns a recall alert into a ScheduledNotification, decides when it goes out
(user preferences first, then the timing pipeline), and either dispatches it
straight away or holds it with the deferred runner until its slot. Held records
are persisted so they survive a restart.

States: requested -> evaluated -> immediate | held -> sent | failed | cancelled | batched
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from besaavy.core.constants import (
    PRIORITY_BY_URGENCY, EVENING_DIGEST_HOUR, IMMEDIATE_PREFERENCE_CONFIDENCE,
    EVENING_DIGEST_CONFIDENCE, CONFIDENCE_FALLBACK, DELIVERY_HISTORY_LIMIT,
)
from besaavy.core.errors import DeliveryFailure
from besaavy.core.settings import settings
from besaavy.core.utils import TITLE_TEMPLATES
from besaavy.db.models import ScheduledNotification
from besaavy.services import behavior
from besaavy.services.context import SchedulingContext
from besaavy.services.push_service import DeliveryTransport
from besaavy.services.scheduler import DeferredRunner
from besaavy.services.smart_timing import SmartTiming, TimingResult, CRITICAL_REASONING
from besaavy.utils.time_windows import is_in_window, local_now, next_occurrence, to_local

logger = logging.getLogger(__name__)

IMMEDIATE_REASONING = "User preference: immediate delivery outside quiet hours"
EVENING_DIGEST_REASONING = "User preference: evening digest delivery"
PREDICTION_FAILED_REASONING = "Timing prediction unavailable, delivering now"

DIGEST_FREQUENCIES = ("daily_digest", "weekly")
DEFAULT_BABY_NAME = "your baby"


@dataclass
class ScheduleOutcome:
    accepted: bool
    notification: Optional[ScheduledNotification] = None
    delivered: bool = False
    suppressed: bool = False
    reason: Optional[str] = None


class NotificationScheduler:
    def __init__(
            self,
            transport: DeliveryTransport,
            runner: DeferredRunner,
            store=None,
            timing: Optional[SmartTiming] = None,
            clock: Optional[Callable[[], datetime]] = None,
            smoothing: Optional[float] = None
    ):
        self.transport = transport
        self.runner = runner
        self.store = store
        self.timing = timing or SmartTiming()
        self.clock = clock or local_now
        self.smoothing = settings.LEARNING_SMOOTHING if smoothing is None else smoothing

        self._pending: Dict[str, Tuple[ScheduledNotification, SchedulingContext]] = {}
        self._history: "OrderedDict[str, ScheduledNotification]" = OrderedDict()
        self._lock = asyncio.Lock()

    # ── policy ───────────────────────────────────────────────────────────────

    @staticmethod
    def is_enabled(ctx: SchedulingContext, urgency: str) -> bool:
        preferences = ctx.preferences
        if urgency == "high":
            return preferences.high.enabled
        if urgency == "medium":
            return preferences.medium.enabled and preferences.medium.frequency != "disabled"
        return True

    @staticmethod
    def is_in_quiet_hours(ctx: SchedulingContext, moment: datetime) -> bool:
        quiet = ctx.preferences.high.quiet_hours
        if not quiet.enabled:
            return False
        return is_in_window(moment, quiet.start, quiet.end)

    def calculate_delivery_time(
            self,
            ctx: SchedulingContext,
            urgency: str,
            content_type: str,
            now: datetime
    ) -> TimingResult:
        """Preference overrides first, then the timing pipeline. Never raises."""
        if urgency == "critical":
            return TimingResult(recommended_time=now, confidence=1.0, reasoning=CRITICAL_REASONING)

        preferences = ctx.preferences
        if urgency == "high":
            if preferences.high.schedule == "immediate" and not self.is_in_quiet_hours(ctx, now):
                return TimingResult(now, IMMEDIATE_PREFERENCE_CONFIDENCE, IMMEDIATE_REASONING)
            if preferences.high.schedule == "evening_digest":
                return TimingResult(
                    next_occurrence(EVENING_DIGEST_HOUR, now),
                    EVENING_DIGEST_CONFIDENCE,
                    EVENING_DIGEST_REASONING,
                )
        elif urgency == "medium":
            if preferences.medium.frequency == "immediate" and not self.is_in_quiet_hours(ctx, now):
                return TimingResult(now, IMMEDIATE_PREFERENCE_CONFIDENCE, IMMEDIATE_REASONING)

        try:
            return self.timing.predict_optimal_time(ctx, urgency, content_type, now)
        except Exception as e:
            logger.error(
                f"Timing prediction failed for caregiver {ctx.caregiver_id} ({urgency}), delivering now: {e}"
            )
            return TimingResult(now, CONFIDENCE_FALLBACK, PREDICTION_FAILED_REASONING)

    # ── scheduling ───────────────────────────────────────────────────────────

    # Used by: api/notifications.py (POST /notifications/schedule), schedule_recall_notification
    async def schedule_notification(
            self,
            ctx: SchedulingContext,
            recall_id: str,
            urgency: str,
            title: str,
            body: str,
            content_type: str = "recall",
            now: Optional[datetime] = None
    ) -> ScheduleOutcome:
        if now is None:
            now = self.clock()

        if not self.is_enabled(ctx, urgency):
            reason = f"{urgency} notifications are disabled for this caregiver"
            logger.info(f"Suppressed {urgency} notification for recall {recall_id}: {reason}")
            return ScheduleOutcome(accepted=False, suppressed=True, reason=reason)

        timing = self.calculate_delivery_time(ctx, urgency, content_type, now)
        notification = ScheduledNotification(
            id=f"recall-{recall_id}-{uuid.uuid4().hex[:12]}",
            caregiver_id=ctx.caregiver_id,
            recall_id=recall_id,
            type=urgency,
            title=title,
            body=body,
            scheduled_for=timing.recommended_time,
            priority=PRIORITY_BY_URGENCY[urgency],
            timing_reasoning=timing.reasoning,
            confidence=timing.confidence,
            action_url=f"/recalls/{recall_id}",
            created_at=now,
        )

        if notification.scheduled_for <= now:
            delivered = await self._dispatch(notification, ctx, now)
            return ScheduleOutcome(
                accepted=True, notification=notification, delivered=delivered, reason=timing.reasoning
            )

        await self._hold(notification, ctx)
        logger.info(
            f"Holding {urgency} notification {notification.id} until "
            f"{notification.scheduled_for:%Y-%m-%d %H:%M}: {timing.reasoning}"
        )
        return ScheduleOutcome(accepted=True, notification=notification, reason=timing.reasoning)

    # Used by: api/notifications.py (POST /notifications/schedule with a product name)
    async def schedule_recall_notification(
            self,
            ctx: SchedulingContext,
            recall_id: str,
            urgency: str,
            product_name: str,
            hazard_description: str,
            content_type: str = "recall",
            now: Optional[datetime] = None
    ) -> ScheduleOutcome:
        title = TITLE_TEMPLATES[urgency].format(
            product=product_name,
            baby=ctx.baby_name or DEFAULT_BABY_NAME,
        )
        return await self.schedule_notification(
            ctx, recall_id, urgency, title, hazard_description, content_type=content_type, now=now
        )

    # Used by: api/notifications.py (POST /notifications/critical)
    async def send_critical_alert(
            self,
            ctx: SchedulingContext,
            recall_id: str,
            product_name: str,
            hazard_description: str,
            now: Optional[datetime] = None
    ) -> bool:
        """Bypasses every preference and timing rule."""
        if now is None:
            now = self.clock()

        notification = ScheduledNotification(
            id=f"critical-{recall_id}-{uuid.uuid4().hex[:12]}",
            caregiver_id=ctx.caregiver_id,
            recall_id=recall_id,
            type="critical",
            title=f"🚨 URGENT: {product_name} Safety Alert",
            body=f"Stop using immediately. {hazard_description}",
            scheduled_for=now,
            priority=PRIORITY_BY_URGENCY["critical"],
            timing_reasoning=CRITICAL_REASONING,
            confidence=1.0,
            action_url=f"/recalls/{recall_id}",
            created_at=now,
        )
        return await self._dispatch(notification, ctx, now)

    async def _hold(self, notification: ScheduledNotification, ctx: SchedulingContext):
        async with self._lock:
            self._pending[notification.id] = (notification, ctx)
            self.runner.schedule(notification.id, notification.scheduled_for, self._fire, (notification.id,))
        await self._persist(notification)

    # Used by: deferred runner (held notification re-check)
    async def _fire(self, notification_id: str):
        batch = False
        async with self._lock:
            entry = self._pending.get(notification_id)
            if entry is None:
                logger.debug(f"Re-check for {notification_id} skipped, no longer pending")
                return

            notification, ctx = entry
            now = self.clock()

            if not self.timing.arbiter.should_deliver_now(ctx, notification.scheduled_for, notification.type, now):
                self.runner.schedule(notification_id, notification.scheduled_for, self._fire, (notification_id,))
                logger.debug(f"Re-armed {notification_id} for {notification.scheduled_for}")
                return

            if notification.type == "medium" and ctx.preferences.medium.frequency in DIGEST_FREQUENCIES:
                batch = len(self._pending_medium(notification.caregiver_id)) >= 2

            if not batch:
                del self._pending[notification_id]

        if batch:
            await self.batch_medium_priority_notifications(ctx, now)
        else:
            await self._dispatch(notification, ctx, now)

    async def _dispatch(self, notification: ScheduledNotification, ctx: SchedulingContext, now: datetime) -> bool:
        try:
            delivered = await self.transport.deliver(notification, ctx.preferences.general)
        except DeliveryFailure as e:
            logger.error(f"Delivery failed for {notification.id}: {e.reason}")
            delivered = False
        except Exception as e:
            logger.error(f"Unexpected error delivering {notification.id}: {e}")
            delivered = False

        if delivered:
            notification.status = "sent"
            notification.delivered_at = now
            async with ctx.lock:
                ctx.behavior.last_notification_sent_at = now
            await self._save_context(ctx)
        else:
            notification.status = "failed"

        self._remember(notification)
        await self._persist(notification)
        return delivered

    # ── pending set ──────────────────────────────────────────────────────────

    # Used by: api/notifications.py (DELETE /notifications/{id})
    async def cancel_notification(self, notification_id: str) -> bool:
        async with self._lock:
            entry = self._pending.pop(notification_id, None)
            if entry is None:
                return False
            self.runner.cancel(notification_id)

        notification = entry[0]
        notification.status = "cancelled"
        await self._persist(notification)
        logger.info(f"Cancelled notification {notification_id}")
        return True

    # Used by: api/notifications.py (GET /notifications/pending)
    def get_pending_notifications(self, caregiver_id: Optional[str] = None) -> List[ScheduledNotification]:
        notifications = [
            notification for notification, _ in self._pending.values()
            if caregiver_id is None or notification.caregiver_id == caregiver_id
        ]
        return sorted(notifications, key=lambda n: n.scheduled_for)

    def _pending_medium(self, caregiver_id: str) -> List[ScheduledNotification]:
        return [
            notification for notification, _ in self._pending.values()
            if notification.type == "medium" and notification.caregiver_id == caregiver_id
        ]

    # Used by: api/notifications.py (POST /notifications/batch), self._fire
    async def batch_medium_priority_notifications(
            self,
            ctx: SchedulingContext,
            now: Optional[datetime] = None
    ) -> Optional[ScheduleOutcome]:
        """Collapse the caregiver's pending medium notifications into one summary and send it."""
        if now is None:
            now = self.clock()

        async with self._lock:
            batched = self._pending_medium(ctx.caregiver_id)
            for notification in batched:
                del self._pending[notification.id]
                self.runner.cancel(notification.id)

        if not batched:
            return None

        count = len(batched)
        summary = ScheduledNotification(
            id=f"batch-{uuid.uuid4().hex[:12]}",
            caregiver_id=ctx.caregiver_id,
            recall_id="batch",
            type="medium",
            title=f"{count} Product Safety Updates",
            body=f"{count} recalls to review for {ctx.baby_name or DEFAULT_BABY_NAME}'s safety",
            scheduled_for=now,
            priority=PRIORITY_BY_URGENCY["medium"],
            action_url="/recalls/batch",
            created_at=now,
        )

        for notification in batched:
            notification.status = "batched"
            await self._persist(notification)

        logger.info(f"Batched {count} medium notifications for caregiver {ctx.caregiver_id}")
        delivered = await self._dispatch(summary, ctx, now)
        return ScheduleOutcome(accepted=True, notification=summary, delivered=delivered)

    # Used by: main.py lifespan (re-register held records after restart)
    async def restore_pending(
            self,
            records: Iterable[ScheduledNotification],
            context_for: Callable[[str], Awaitable[SchedulingContext]],
            now: Optional[datetime] = None
    ) -> int:
        if now is None:
            now = self.clock()

        restored = 0
        for notification in records:
            if notification.status != "held":
                continue
            ctx = await context_for(notification.caregiver_id)
            run_at = max(notification.scheduled_for, now)
            async with self._lock:
                self._pending[notification.id] = (notification, ctx)
                self.runner.schedule(notification.id, run_at, self._fire, (notification.id,))
            restored += 1

        if restored:
            logger.info(f"Restored {restored} held notifications")
        return restored

    # ── timing insights ──────────────────────────────────────────────────────

    # Used by: api/notifications.py (GET /notifications/insights)
    def predict_optimal_time(
            self,
            ctx: SchedulingContext,
            urgency: str = "medium",
            content_type: str = "general",
            now: Optional[datetime] = None
    ) -> TimingResult:
        return self.timing.predict_optimal_time(ctx, urgency, content_type, now or self.clock())

    # Used by: api/notifications.py (GET /notifications/insights)
    def next_batch_time(self, ctx: SchedulingContext, now: Optional[datetime] = None) -> datetime:
        return self.timing.next_batch_time(ctx, now or self.clock())

    # ── learning ─────────────────────────────────────────────────────────────

    # Used by: api/profile.py (POST /caregivers/{id}/app-usage)
    async def record_app_usage(self, ctx: SchedulingContext, timestamp: Optional[datetime] = None):
        async with ctx.lock:
            behavior.record_app_usage(ctx.behavior, to_local(timestamp) if timestamp else self.clock())
        await self._save_context(ctx)

    # Used by: api/profile.py (POST /caregivers/{id}/responses), record_notification_interaction
    async def record_notification_response(
            self,
            ctx: SchedulingContext,
            notification_id: str,
            delivered_at: datetime,
            responded_at: datetime,
            action: str
    ):
        async with ctx.lock:
            behavior.record_notification_response(
                ctx.behavior, to_local(delivered_at), to_local(responded_at), action, self.smoothing
            )
        logger.debug(f"Recorded '{action}' for notification {notification_id}")
        await self._save_context(ctx)

    # Used by: api/notifications.py (POST /notifications/{id}/interaction)
    async def record_notification_interaction(
            self,
            ctx: SchedulingContext,
            notification_id: str,
            action: str,
            now: Optional[datetime] = None
    ) -> bool:
        """Learn from an interaction with a notification this scheduler knows about."""
        notification = self._history.get(notification_id)
        if notification is None:
            entry = self._pending.get(notification_id)
            notification = entry[0] if entry else None
        if notification is None:
            logger.warning(f"Interaction '{action}' for unknown notification {notification_id}")
            return False

        delivered_at = notification.delivered_at or notification.scheduled_for
        await self.record_notification_response(ctx, notification_id, delivered_at, now or self.clock(), action)
        return True

    def get_delivery_history(self, caregiver_id: Optional[str] = None) -> List[ScheduledNotification]:
        return [
            notification for notification in self._history.values()
            if caregiver_id is None or notification.caregiver_id == caregiver_id
        ]

    # ── bookkeeping ──────────────────────────────────────────────────────────

    def _remember(self, notification: ScheduledNotification):
        self._history[notification.id] = notification
        self._history.move_to_end(notification.id)
        while len(self._history) > DELIVERY_HISTORY_LIMIT:
            self._history.popitem(last=False)

    async def _persist(self, notification: ScheduledNotification):
        if self.store is not None:
            await self.store.save_notification(notification)

    async def _save_context(self, ctx: SchedulingContext):
        if self.store is not None:
            await self.store.save_context(ctx)


_notification_scheduler: Optional[NotificationScheduler] = None


# Used by: api routers, main.py lifespan
def get_notification_scheduler() -> NotificationScheduler:
    """Scheduler singleton wired to Web Push, APScheduler and the database."""
    global _notification_scheduler
    if _notification_scheduler is None:
        from besaavy.services.profile_store import ProfileStore
        from besaavy.services.push_service import get_push_service
        from besaavy.services.scheduler import get_runner

        _notification_scheduler = NotificationScheduler(
            transport=get_push_service(),
            runner=get_runner(),
            store=ProfileStore(),
        )
    return _notification_scheduler
