from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


class Database:
    """Storage client owned by whoever starts the process.

    Nothing is connected until ``open()``; ``close()`` disposes the pool.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "Database":
        if self.engine is not None:
            return self
        connect_args: dict[str, object] = {}
        if self.url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        eng = create_engine(self.url, connect_args=connect_args)
        if self.url.startswith("sqlite"):
            event.listen(eng, "connect", _enable_sqlite_pragmas)
        self.engine = eng
        self._session_factory = sessionmaker(
            bind=eng, autoflush=False, expire_on_commit=False
        )
        return self

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None

    def create_all(self) -> None:
        # Import registers the mapped tables on Base.metadata.
        import models  # noqa: F401

        Base.metadata.create_all(self._require_engine())

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
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

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("Database is not open")
        return self.engine
