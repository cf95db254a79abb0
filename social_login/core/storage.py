from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

from .database_models import Base, enable_sqlite_foreign_keys
from .logging import log_event


class DatabaseManager:
    def __init__(self, database_url: str = "sqlite:///./social_login.db"):
        """Create the engine and session factory for the member/identity store."""
        self.database_url = database_url

        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args=connect_args,
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if database_url.startswith("sqlite"):
            enable_sqlite_foreign_keys(self.engine)

        # Only create tables if not managed by Alembic migrations
        inspector = inspect(self.engine)
        if "alembic_version" not in inspector.get_table_names():
            Base.metadata.create_all(bind=self.engine)
            log_event("db.tables_created", component="db", operation="init", url=self._safe_url())

    @contextmanager
    def session_scope(self) -> Iterator[DBSession]:
        """Provide a transactional scope around a series of operations."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()

    def _safe_url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)
