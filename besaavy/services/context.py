"""Per-caregiver scheduling context and the registry that loads, caches and saves it."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from besaavy.core.errors import ConfigurationError
from besaavy.db.models import (
    BehaviorProfile, BabySchedule, ContextualFactors, NotificationPreferences, TimeWindow,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        key = str(key)
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# Used by: SchedulingContext update methods
def merge_partial(model: M, partial: Dict[str, Any], model_cls: Optional[Type[M]] = None) -> M:
    """Validated copy of `model` with `partial` merged in. Raises ConfigurationError."""
    model_cls = model_cls or type(model)
    merged = _deep_merge(model.model_dump(mode="json"), partial)
    try:
        return model_cls.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {model_cls.__name__} update: {e}") from e


def _clean_baby_name(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ConfigurationError("baby_name must be a string")
    if not value or not value.strip():
        return None
    return value.strip()


@dataclass
class SchedulingContext:
    """Everything the engine needs to know about one caregiver. One per caregiver session."""
    caregiver_id: str
    behavior: BehaviorProfile = field(default_factory=BehaviorProfile)
    baby_schedule: BabySchedule = field(default_factory=BabySchedule)
    preferences: NotificationPreferences = field(default_factory=NotificationPreferences)
    contextual_factors: ContextualFactors = field(default_factory=ContextualFactors)
    baby_name: Optional[str] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    # Used by: ContextRegistry.update_preferences, api/profile.py
    def update_preferences(self, partial: Dict[str, Any]) -> NotificationPreferences:
        preferences = merge_partial(self.preferences, partial)

        # Quiet hours set in preferences replace the learned quiet periods
        behavior = self.behavior
        high = partial.get("high") if isinstance(partial.get("high"), dict) else {}
        if "quiet_hours" in high:
            quiet = preferences.high.quiet_hours
            periods = [TimeWindow(start=quiet.start, end=quiet.end)] if quiet.enabled else []
            behavior = self.behavior.model_copy(update={"quiet_periods": periods})

        self.preferences = preferences
        self.behavior = behavior
        logger.info(f"Updated notification preferences for caregiver {self.caregiver_id}")
        return self.preferences

    def update_baby_schedule(self, partial: Dict[str, Any]) -> BabySchedule:
        self.baby_schedule = merge_partial(self.baby_schedule, partial)
        logger.info(f"Updated baby schedule for caregiver {self.caregiver_id}")
        return self.baby_schedule

    def update_contextual_factors(self, partial: Dict[str, Any]) -> ContextualFactors:
        self.contextual_factors = merge_partial(self.contextual_factors, partial)
        return self.contextual_factors

    def update_context(self, partial: Dict[str, Any]) -> ContextualFactors:
        """Contextual factors plus an optional baby_name, applied together or not at all."""
        partial = dict(partial)
        name_given = "baby_name" in partial
        baby_name = _clean_baby_name(partial.pop("baby_name", None))
        factors = merge_partial(self.contextual_factors, partial)

        self.contextual_factors = factors
        if name_given:
            self.baby_name = baby_name
        return factors

    def update_behavior(self, partial: Dict[str, Any]) -> BehaviorProfile:
        self.behavior = merge_partial(self.behavior, partial)
        return self.behavior


class ContextRegistry:
    """Caches one SchedulingContext per caregiver; every mutation is persisted."""

    def __init__(self, store=None):
        if store is None:
            from besaavy.services.profile_store import ProfileStore
            store = ProfileStore()
        self.store = store
        self._contexts: Dict[str, SchedulingContext] = {}
        self._lock = asyncio.Lock()

    # Used by: api routers, main.py (restoring held notifications)
    async def get_context(self, caregiver_id: str) -> SchedulingContext:
        async with self._lock:
            ctx = self._contexts.get(caregiver_id)
            if ctx is None:
                ctx = await self.store.load_context(caregiver_id)
                self._contexts[caregiver_id] = ctx
            return ctx

    # Used by: api/profile.py, notification_scheduler.py (after learning)
    async def save(self, ctx: SchedulingContext) -> bool:
        return await self.store.save_context(ctx)

    # Used by: api/profile.py (PATCH preferences)
    async def update_preferences(self, caregiver_id: str, partial: Dict[str, Any]) -> NotificationPreferences:
        ctx = await self.get_context(caregiver_id)
        async with ctx.lock:
            preferences = ctx.update_preferences(partial)
        await self.save(ctx)
        return preferences

    # Used by: api/profile.py (PATCH baby-schedule)
    async def update_baby_schedule(self, caregiver_id: str, partial: Dict[str, Any]) -> BabySchedule:
        ctx = await self.get_context(caregiver_id)
        async with ctx.lock:
            schedule = ctx.update_baby_schedule(partial)
        await self.save(ctx)
        return schedule

    # Used by: callers updating day-level factors without touching baby_name
    async def update_contextual_factors(self, caregiver_id: str, partial: Dict[str, Any]) -> ContextualFactors:
        ctx = await self.get_context(caregiver_id)
        async with ctx.lock:
            factors = ctx.update_contextual_factors(partial)
        await self.save(ctx)
        return factors

    # Used by: api/profile.py (PATCH context)
    async def update_context(self, caregiver_id: str, partial: Dict[str, Any]) -> ContextualFactors:
        ctx = await self.get_context(caregiver_id)
        async with ctx.lock:
            factors = ctx.update_context(partial)
        await self.save(ctx)
        return factors


_context_registry: Optional[ContextRegistry] = None


# Used by: api routers, main.py
def get_context_registry() -> ContextRegistry:
    global _context_registry
    if _context_registry is None:
        _context_registry = ContextRegistry()
    return _context_registry
