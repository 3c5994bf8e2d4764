"""FastAPI app: lifespan, CORS, router registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from .api.notifications import router as notifications_router, push_router
from .api.profile import router as profile_router
from .services.context import get_context_registry
from .services.notification_scheduler import get_notification_scheduler
from .services.profile_store import ProfileStore
from .services.scheduler import start_scheduler, stop_scheduler, get_scheduler_status
from .core.database import get_database
from .core.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


# Used by: FastAPI lifespan, DB + scheduler on startup, held notifications re-armed
@asynccontextmanager
async def lifespan(app: FastAPI):
    db = get_database()
    await db.connect(settings.DATABASE_URL)
    await start_scheduler()

    held = await ProfileStore(db).load_held_notifications()
    await get_notification_scheduler().restore_pending(held, get_context_registry().get_context)

    yield

    await stop_scheduler()
    await db.disconnect()


app = FastAPI(
    title="Be-Saavy Notification API",
    version="1.0.0",
    description="Be-Saavy - recall notification timing",
    lifespan=lifespan
)

cors_origins = settings.CORS_ORIGINS.copy()
if settings.CORS_EXTRA_ORIGINS:
    cors_origins.extend([o.strip() for o in settings.CORS_EXTRA_ORIGINS.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications_router)
app.include_router(push_router)
app.include_router(profile_router)


# Used by: deployment health checks
@app.get("/health")
async def health():
    return {
        "status": "ok",
        "database": get_database().is_connected,
        "scheduler": get_scheduler_status(),
    }
