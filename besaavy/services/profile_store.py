"""Caregiver profile and held-notification persistence."""

import json
import logging
from typing import List, Optional

from sqlalchemy import DateTime, bindparam, text

from besaavy.core.database import DatabaseManager, get_database
from besaavy.db.models import (
    BehaviorProfile, BabySchedule, ContextualFactors, NotificationPreferences, ScheduledNotification,
)
from besaavy.services.context import SchedulingContext
from besaavy.utils.time_windows import local_now

logger = logging.getLogger(__name__)


class ProfileStore:
    def __init__(self, database: Optional[DatabaseManager] = None):
        self.database = database or get_database()

    # Used by: context.ContextRegistry.get_context
    async def load_context(self, caregiver_id: str) -> SchedulingContext:
        """Stored context for a caregiver, or a fresh one seeded with defaults."""
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    text('''
                        SELECT behavior, baby_schedule, preferences, contextual_factors, baby_name
                        FROM caregiver_profiles
                        WHERE caregiver_id = :caregiver_id
                    '''),
                    {"caregiver_id": caregiver_id}
                )
                row = result.mappings().first()
        except Exception as e:
            logger.error(f"Failed to load profile for caregiver {caregiver_id}: {e}")
            row = None

        if not row:
            logger.info(f"No stored profile for caregiver {caregiver_id}, using defaults")
            return SchedulingContext(caregiver_id=caregiver_id)

        try:
            return SchedulingContext(
                caregiver_id=caregiver_id,
                behavior=BehaviorProfile.model_validate_json(row["behavior"]),
                baby_schedule=BabySchedule.model_validate_json(row["baby_schedule"]),
                preferences=NotificationPreferences.model_validate_json(row["preferences"]),
                contextual_factors=ContextualFactors.model_validate_json(row["contextual_factors"]),
                baby_name=row["baby_name"],
            )
        except ValueError as e:
            logger.error(f"Corrupt stored profile for caregiver {caregiver_id}, using defaults: {e}")
            return SchedulingContext(caregiver_id=caregiver_id)

    # Used by: context.ContextRegistry.save, notification_scheduler.py (learning)
    async def save_context(self, ctx: SchedulingContext) -> bool:
        try:
            async with self.database.session() as session:
                await session.execute(
                    text('''
                        INSERT INTO caregiver_profiles
                        (caregiver_id, behavior, baby_schedule, preferences, contextual_factors, baby_name, updated_at)
                        VALUES (:caregiver_id, :behavior, :baby_schedule, :preferences,
                                :contextual_factors, :baby_name, :updated_at)
                        ON CONFLICT (caregiver_id)
                        DO UPDATE SET
                            behavior = EXCLUDED.behavior,
                            baby_schedule = EXCLUDED.baby_schedule,
                            preferences = EXCLUDED.preferences,
                            contextual_factors = EXCLUDED.contextual_factors,
                            baby_name = EXCLUDED.baby_name,
                            updated_at = EXCLUDED.updated_at
                    ''').bindparams(bindparam("updated_at", type_=DateTime())),
                    {
                        "caregiver_id": ctx.caregiver_id,
                        "behavior": ctx.behavior.model_dump_json(),
                        "baby_schedule": ctx.baby_schedule.model_dump_json(),
                        "preferences": ctx.preferences.model_dump_json(),
                        "contextual_factors": ctx.contextual_factors.model_dump_json(),
                        "baby_name": ctx.baby_name,
                        "updated_at": local_now(),
                    }
                )
                await session.commit()
                return True
        except Exception as e:
            logger.error(f"Failed to save profile for caregiver {ctx.caregiver_id}: {e}")
            return False

    # Used by: notification_scheduler.py (hold, dispatch, cancel, batch)
    async def save_notification(self, notification: ScheduledNotification) -> bool:
        try:
            async with self.database.session() as session:
                await session.execute(
                    text('''
                        INSERT INTO scheduled_notifications
                        (id, caregiver_id, payload, status, scheduled_for, updated_at)
                        VALUES (:id, :caregiver_id, :payload, :status, :scheduled_for, :updated_at)
                        ON CONFLICT (id)
                        DO UPDATE SET
                            payload = EXCLUDED.payload,
                            status = EXCLUDED.status,
                            scheduled_for = EXCLUDED.scheduled_for,
                            updated_at = EXCLUDED.updated_at
                    ''').bindparams(
                        bindparam("scheduled_for", type_=DateTime()),
                        bindparam("updated_at", type_=DateTime()),
                    ),
                    {
                        "id": notification.id,
                        "caregiver_id": notification.caregiver_id,
                        "payload": notification.model_dump_json(),
                        "status": notification.status,
                        "scheduled_for": notification.scheduled_for,
                        "updated_at": local_now(),
                    }
                )
                await session.commit()
                return True
        except Exception as e:
            logger.error(f"Failed to save notification {notification.id}: {e}")
            return False

    # Used by: main.py lifespan (restore held notifications after restart)
    async def load_held_notifications(self) -> List[ScheduledNotification]:
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    text('''
                        SELECT payload FROM scheduled_notifications
                        WHERE status = 'held'
                        ORDER BY scheduled_for
                    ''')
                )
                rows = result.mappings().all()
        except Exception as e:
            logger.error(f"Failed to load held notifications: {e}")
            return []

        held = []
        for row in rows:
            try:
                held.append(ScheduledNotification.model_validate(json.loads(row["payload"])))
            except ValueError as e:
                logger.warning(f"Skipping unreadable held notification: {e}")
        return held
