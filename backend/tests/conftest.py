import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from heatlog.core.config import Settings
from heatlog.db.base import Database
from heatlog.main import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'heatlog-test.db'}",
        annotation_policy="strict",
        log_format="text",
        log_level="WARNING",
    )


@pytest.fixture
def lenient_settings(settings: Settings) -> Settings:
    return settings.model_copy(update={"annotation_policy": "lenient"})


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.connect()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.sessionmaker() as s:
        yield s


async def _client_for(config: Settings):
    app = create_app(config)
    # httpx does not drive the ASGI lifespan, so open the store by hand
    await app.state.database.connect()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.database.dispose()


@pytest_asyncio.fixture
async def client(settings):
    async for ac in _client_for(settings):
        yield ac


@pytest_asyncio.fixture
async def lenient_client(lenient_settings):
    async for ac in _client_for(lenient_settings):
        yield ac
