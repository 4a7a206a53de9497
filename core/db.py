from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.models import Base

SLOW_QUERY_MS = 250
_MAX_SAMPLES = 1000


@dataclass
class QueryStats:
    total: int = 0
    slow: int = 0
    p50_ms: float = 0.0
    p95_ms: float = 0.0


class Database:
    """Owns one engine and its session factory.

    Built once per application (see ``api.main.create_app``) and passed to
    whatever needs a session.
    """

    def __init__(self, url: str, engine: Optional[Engine] = None):
        self.url = url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.engine = engine or create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False)
        self._query_samples: list[float] = []
        self._instrument()

    def _instrument(self) -> None:
        samples = self._query_samples

        @event.listens_for(self.engine, "before_cursor_execute")
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            context._query_start_time = time.perf_counter()

        @event.listens_for(self.engine, "after_cursor_execute")
        def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            samples.append((time.perf_counter() - context._query_start_time) * 1000)
            if len(samples) > _MAX_SAMPLES:
                samples.pop(0)

    def session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def query_stats(self) -> QueryStats:
        if not self._query_samples:
            return QueryStats()
        ordered = sorted(self._query_samples)
        return QueryStats(
            total=len(ordered),
            slow=sum(1 for s in ordered if s > SLOW_QUERY_MS),
            p50_ms=round(ordered[int(len(ordered) * 0.5)], 2),
            p95_ms=round(ordered[int(len(ordered) * 0.95)], 2),
        )
