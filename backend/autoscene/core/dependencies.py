from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from autoscene.core.config import get_settings

settings = get_settings()

engine = None
if settings.database_url:
    connect_args: dict[str, object] = {}

    if settings.database_url.startswith("sqlite"):
        # FastAPI runs sync DB work in a threadpool, so the connection must be usable across threads.
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None


def init_db() -> None:
    """Create the scene store table when it does not exist yet (SQLite/dev setups)."""
    from autoscene.models.scene import Base

    if engine is not None:
        Base.metadata.create_all(engine)


def get_db() -> Generator[Session, None, None]:
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL is not configured")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
