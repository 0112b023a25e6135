# procurement/db/session.py
from __future__ import annotations

from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from procurement.core.config import Settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url

    if _is_sqlite(url):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, future=True, **kwargs)

        @event.listens_for(engine, "connect")
        def _sqlite_fk_on(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return engine

    engine = create_engine(url, pool_pre_ping=True, future=True)

    if url.startswith("postgresql") and settings.db_statement_timeout_ms > 0:
        timeout = int(settings.db_statement_timeout_ms)

        @event.listens_for(engine, "connect")
        def _pg_statement_timeout(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute(f"SET statement_timeout = {timeout}")
            cur.close()

    return engine


class Database:
    """
    Explicit store handle: one engine + session factory per process.

    Built by the application factory and kept on ``app.state.database``.
    """

    def __init__(self, settings: Settings):
        self.engine = build_engine(settings)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    def session(self) -> Session:
        return self.session_factory()

    def create_schema(self) -> None:
        # FORCE model registration
        import procurement.models  # noqa: F401
        from procurement.db.base import Base

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
