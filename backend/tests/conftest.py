import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from autoscene.api.v1.cloud import reset_cloud_backends
from autoscene.core.config import get_settings
from autoscene.models.scene import Base
from autoscene.services.ai.common import router as ai_router
from autoscene.utils.alerting import alert_tracker

_CONFIG_ENV = (
    "OPERATING_MODE",
    "AUTOSCENE_MODE",
    "GOOGLE_CLOUD_API_KEY",
    "OPENAI_API_KEY",
    "CLOUD_API_URL",
    "CLOUD_FUNCTIONS_URL",
    "IMAGE_ROOT",
    "ENVIRONMENT",
)


@pytest.fixture(autouse=True)
def _reset_process_state(monkeypatch):
    # Settings, backends and degrade counters are process-wide; don't leak them across tests.
    for name in _CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    ai_router.reset_backends()
    reset_cloud_backends()
    alert_tracker.reset()
    yield
    get_settings.cache_clear()
    ai_router.reset_backends()
    reset_cloud_backends()
    alert_tracker.reset()


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest_asyncio.fixture
async def client(db_engine):
    """In-process ASGI client with the scene store on in-memory SQLite."""
    from autoscene.core.dependencies import get_db
    from autoscene.main import app

    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)

    def _test_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _test_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_db, None)
