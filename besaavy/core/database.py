"""Database singleton: async connection pool via SQLAlchemy."""

import logging
from typing import Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine

logger = logging.getLogger(__name__)


# JSON documents are stored as text so the same schema runs on Postgres and SQLite.
SCHEMA_STATEMENTS = [
    '''
    CREATE TABLE IF NOT EXISTS caregiver_profiles (
        caregiver_id VARCHAR(64) PRIMARY KEY,
        behavior TEXT NOT NULL,
        baby_schedule TEXT NOT NULL,
        preferences TEXT NOT NULL,
        contextual_factors TEXT NOT NULL,
        baby_name VARCHAR(128),
        updated_at TIMESTAMP NOT NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS scheduled_notifications (
        id VARCHAR(128) PRIMARY KEY,
        caregiver_id VARCHAR(64) NOT NULL,
        payload TEXT NOT NULL,
        status VARCHAR(16) NOT NULL,
        scheduled_for TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS push_subscriptions (
        caregiver_id VARCHAR(64) PRIMARY KEY,
        endpoint TEXT NOT NULL,
        p256dh_key TEXT NOT NULL,
        auth_key TEXT NOT NULL,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    ''',
]


class DatabaseManager:
    """Manages the async connection pool. Call connect() once at startup."""

    def __init__(self):
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    # Used by: main.py lifespan (startup), tests
    async def connect(self, database_url: str) -> None:
        if self._engine is not None:
            logger.warning("Database already connected")
            return

        logger.info("Connecting to database...")

        self._engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        await self.ensure_schema()

        logger.info("Database connected")

    # Used by: self.connect()
    async def ensure_schema(self) -> None:
        async with self._engine.begin() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(text(statement))

    # Used by: main.py lifespan (shutdown), tests
    async def disconnect(self) -> None:
        if self._engine is None:
            return

        logger.info("Disconnecting from database...")
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None

    # Used by: profile_store.py, push_service.py
    def session(self) -> AsyncSession:
        """Use as: async with db.session() as session: ..."""
        if self._session_factory is None:
            raise RuntimeError("Database not connected")
        return self._session_factory()


_db: Optional[DatabaseManager] = None


def get_database() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager()
    return _db
