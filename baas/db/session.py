from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session

from baas.core.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    # One shared connection so every session sees the same in-memory database
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    **_engine_options(settings.DATABASE_URL)
)


def create_db_and_tables():
    """Create database tables."""
    # Register every table on the shared metadata
    from baas.models import api_key, project, usage_log, user  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Get database session dependency."""
    with Session(engine) as session:
        yield session
