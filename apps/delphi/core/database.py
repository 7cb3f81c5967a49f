"""Engine, session factory and schema bootstrap (SQLModel over SQLAlchemy)."""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel

from delphi.core.exceptions import ConfigurationError
from delphi.core.settings import settings


def normalize_db_url(url: str) -> str:
    """Pin Postgres URLs to the psycopg (v3) driver; other URLs pass through."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


def build_engine(url: str) -> Engine:
    """Create an engine for `url`, translating a missing driver into a config error."""
    connect_args = {}
    if url.startswith("sqlite"):
        # Realtime handlers persist from threadpool workers.
        connect_args["check_same_thread"] = False
    try:
        return create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)
    except ModuleNotFoundError as exc:  # pragma: no cover - runtime dependency hint
        if url.startswith("postgresql+psycopg"):
            raise ConfigurationError(
                'PostgreSQL driver missing. Install the extra: pip install "delphi[postgres]" '
                "or point DATABASE_URL at SQLite.",
            ) from exc
        raise


DB_URL = normalize_db_url(settings.database_url)
engine = build_engine(DB_URL)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=Session,
)


def get_session() -> Generator[Session, None, None]:
    """Yield one session per request; always closed afterwards."""
    with SessionLocal() as session:
        yield session


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables. Alembic owns the schema when DB_AUTO_CREATE is off."""
    import delphi.models  # noqa: F401 - register tables on SQLModel.metadata

    SQLModel.metadata.create_all(bind or engine)


__all__ = ["DB_URL", "SessionLocal", "build_engine", "engine", "get_session", "init_db", "normalize_db_url"]
