from __future__ import annotations

import logging
import threading
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockdesk.app.core.config import settings
from stockdesk.app.db.base import Base
from stockdesk.app.db.models import models_v1  # noqa: F401  (registers tables)
from stockdesk.app.db.seed import seed_admin_users

logger = logging.getLogger(__name__)


def _build_engine(url: str, echo: bool) -> Engine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True)

    database = parsed.database
    if database and database != ":memory:":
        engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    else:
        # one shared connection, otherwise every session sees an empty database
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


class Database:
    """
    Store handle injected into every handler.

    Schema creation and admin seeding run once, lazily, on the first
    session() call. A bootstrap failure propagates to the caller.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        seed_admins: list[tuple[str, str]] | None = None,
        echo: bool | None = None,
    ):
        self.url = url or settings.DATABASE_URL
        self.seed_admins = settings.SEED_ADMINS if seed_admins is None else seed_admins
        self.engine = _build_engine(self.url, settings.SQL_ECHO if echo is None else echo)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._ready = False
        self._lock = threading.Lock()

    def init(self) -> None:
        with self._lock:
            if self._ready:
                return
            _ensure_sqlite_dir(self.url)
            Base.metadata.create_all(bind=self.engine)
            with self.SessionLocal() as db:
                seed_admin_users(db, self.seed_admins)
            self._ready = True
            logger.info("Store ready at %s", make_url(self.url).render_as_string(hide_password=True))

    def session(self) -> Session:
        if not self._ready:
            self.init()
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()
