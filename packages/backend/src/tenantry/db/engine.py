"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

The session factory lives on ``app.state`` so the request pipeline (which
runs in middleware, outside FastAPI's dependency system) and the route
handlers always draw sessions from the same place. Tests swap it there.
"""

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenantry.config import settings


def configure_sqlite(engine: AsyncEngine) -> AsyncEngine:
    """Make SQLite transactions take the write lock up front.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINTs and lets two writers deadlock on lock upgrade. Emitting
    BEGIN IMMEDIATE ourselves serializes writers instead.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        return configure_sqlite(create_async_engine(url, echo=echo))
    # Connection pool: min 5, max 20 connections.
    return create_async_engine(url, echo=echo, pool_size=5, max_overflow=15)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory. Each request gets its own session.
async_session_factory = build_session_factory(engine)


async def get_db(request: Request) -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    factory = getattr(request.app.state, "session_factory", async_session_factory)
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()
