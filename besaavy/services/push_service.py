"""Web Push delivery transport for scheduled notifications."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol

from pywebpush import webpush, WebPushException
from sqlalchemy import DateTime, bindparam, text

from besaavy.core.database import DatabaseManager, get_database
from besaavy.core.errors import DeliveryFailure
from besaavy.core.settings import settings
from besaavy.db.models import GeneralPreferences, ScheduledNotification
from besaavy.utils.time_windows import local_now

logger = logging.getLogger(__name__)

CRITICAL_VIBRATION = [200, 100, 200, 100, 200]
DEFAULT_VIBRATION = [100, 50, 100]


# Used by: notification_scheduler.py (type hint protocol; tests provide an in-memory transport)
class DeliveryTransport(Protocol):
    async def deliver(
        self,
        notification: ScheduledNotification,
        preferences: GeneralPreferences
    ) -> bool:
        """True when handed to the device. Raises DeliveryFailure otherwise."""
        ...


# Used by: api/notifications.py (/push routes), notification_scheduler.get_notification_scheduler
class PushService:
    """Web Push transport. One subscription per caregiver, VAPID keys from settings."""

    def __init__(self, database: Optional[DatabaseManager] = None):
        self.database = database or get_database()
        self.public_key: Optional[str] = settings.VAPID_PUBLIC_KEY or None
        self._private_key: Optional[str] = settings.VAPID_PRIVATE_KEY or None

        if not self.is_configured:
            logger.warning(
                "VAPID keys missing, caregivers will not receive push notifications "
                "(generate with: npx web-push generate-vapid-keys)"
            )

    @property
    def is_configured(self) -> bool:
        return self.public_key is not None and self._private_key is not None

    # Used by: api/notifications.py (POST /push/subscribe)
    async def save_subscription(
        self,
        caregiver_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str
    ) -> bool:
        """Save or update push subscription."""
        try:
            async with self.database.session() as session:
                now = local_now()
                await session.execute(
                    text('''
                        INSERT INTO push_subscriptions
                        (caregiver_id, endpoint, p256dh_key, auth_key, created_at, updated_at)
                        VALUES (:caregiver_id, :endpoint, :p256dh_key, :auth_key, :now, :now)
                        ON CONFLICT (caregiver_id)
                        DO UPDATE SET
                            endpoint = EXCLUDED.endpoint,
                            p256dh_key = EXCLUDED.p256dh_key,
                            auth_key = EXCLUDED.auth_key,
                            updated_at = EXCLUDED.updated_at
                    ''').bindparams(bindparam("now", type_=DateTime())),
                    {
                        "caregiver_id": caregiver_id,
                        "endpoint": endpoint,
                        "p256dh_key": p256dh_key,
                        "auth_key": auth_key,
                        "now": now,
                    }
                )
                await session.commit()
                logger.info(f"Saved push subscription for caregiver {caregiver_id}")
                return True
        except Exception as e:
            logger.error(f"Failed to save push subscription for caregiver {caregiver_id}: {e}")
            return False

    # Used by: api/notifications.py (POST /push/unsubscribe), self.deliver (removes expired)
    async def remove_subscription(self, caregiver_id: str) -> bool:
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    text('DELETE FROM push_subscriptions WHERE caregiver_id = :caregiver_id'),
                    {"caregiver_id": caregiver_id}
                )
                await session.commit()
                deleted = result.rowcount > 0
                if deleted:
                    logger.info(f"Removed push subscription for caregiver {caregiver_id}")
                return deleted
        except Exception as e:
            logger.error(f"Failed to remove push subscription for caregiver {caregiver_id}: {e}")
            return False

    # Used by: self.deliver
    async def get_subscription(self, caregiver_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    text('''
                        SELECT endpoint, p256dh_key, auth_key
                        FROM push_subscriptions
                        WHERE caregiver_id = :caregiver_id
                    '''),
                    {"caregiver_id": caregiver_id}
                )
                row = result.mappings().first()
                if row:
                    return {
                        "endpoint": row["endpoint"],
                        "keys": {
                            "p256dh": row["p256dh_key"],
                            "auth": row["auth_key"]
                        }
                    }
                return None
        except Exception as e:
            logger.error(f"Failed to get push subscription for caregiver {caregiver_id}: {e}")
            return None

    # Used by: self.deliver
    @staticmethod
    def build_payload(notification: ScheduledNotification, preferences: GeneralPreferences) -> str:
        critical = notification.type == "critical"
        payload = {
            "title": notification.title,
            "body": notification.body,
            "icon": "/favicon.ico",
            "badge": "/badge-icon.png",
            "tag": f"recall-{notification.recall_id}",
            "requireInteraction": critical,
            "silent": not preferences.sound,
            "data": {
                "notification_id": notification.id,
                "recall_id": notification.recall_id,
                "action_url": notification.action_url,
                "type": notification.type,
                "show_on_lockscreen": preferences.show_on_lockscreen,
            },
        }
        if preferences.vibration:
            payload["vibrate"] = CRITICAL_VIBRATION if critical else DEFAULT_VIBRATION
        return json.dumps(payload)

    # Used by: notification_scheduler.py (dispatch)
    async def deliver(
        self,
        notification: ScheduledNotification,
        preferences: GeneralPreferences
    ) -> bool:
        caregiver_id = notification.caregiver_id
        if not self.is_configured:
            raise DeliveryFailure(notification.id, "push notifications not configured")

        subscription = await self.get_subscription(caregiver_id)
        if not subscription:
            raise DeliveryFailure(notification.id, f"no push subscription for caregiver {caregiver_id}")

        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription,
                data=self.build_payload(notification, preferences),
                vapid_private_key=self._private_key,
                vapid_claims={"sub": f"mailto:{settings.VAPID_EMAIL}"},
            )
        except WebPushException as e:
            if e.response is not None and e.response.status_code in (404, 410):
                # Subscription no longer valid, remove it
                logger.info(f"Push subscription for caregiver {caregiver_id} is no longer valid, removing")
                await self.remove_subscription(caregiver_id)
            raise DeliveryFailure(notification.id, str(e)) from e

        logger.info(f"Sent push notification {notification.id} to caregiver {caregiver_id}: {notification.title}")
        return True


_push_service: Optional[PushService] = None


# Used by: api/notifications.py, notification_scheduler.get_notification_scheduler
def get_push_service() -> PushService:
    """Push service singleton."""
    global _push_service
    if _push_service is None:
        _push_service = PushService()
    return _push_service
