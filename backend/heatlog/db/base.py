import logging
import ssl
from typing import Any, AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from heatlog.core.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _connect_args(config: Settings) -> dict[str, Any]:
    if config.is_sqlite or not config.database_ssl:
        return {}
    ctx = ssl.create_default_context()
    if not config.database_ssl_verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return {"ssl": ctx}


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    # pysqlite/aiosqlite handle BEGIN themselves, which breaks SAVEPOINT;
    # hand transaction control back to SQLAlchemy and turn on FK enforcement.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """
    Store client: owns the async engine and the session factory.

    Constructed once per application and handed to request handlers through
    ``app.state``; ``connect()`` runs on startup and ``dispose()`` on shutdown.
    """

    def __init__(self, config: Settings):
        self.config = config
        self.engine: AsyncEngine = create_async_engine(
            config.DATABASE_URL,
            echo=config.db_echo,
            pool_pre_ping=not config.is_sqlite,
            connect_args=_connect_args(config),
        )
        if config.is_sqlite:
            _install_sqlite_hooks(self.engine)
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def connect(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database ready (%s)", self.dialect)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")

    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async for session in database.session():
        yield session
