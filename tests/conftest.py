from collections.abc import AsyncGenerator, Iterator
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dutyroster.api.deps import get_notifier, get_now
from dutyroster.database import Base, get_db
from dutyroster.duties.notifier import Notifier
from dutyroster.main import app
from dutyroster.models.duty import Duty

test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
test_session = async_sessionmaker(test_engine, expire_on_commit=False)

# Wednesday 2024-01-03, 10:00 local time
FIXED_NOW = datetime(2024, 1, 3, 10, 0)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.calls: list[tuple[list[int], list[int]]] = []

    async def notify(self, duties: list[Duty], recipients: list[int]) -> None:
        self.calls.append(([d.id for d in duties], list(recipients)))


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_now] = lambda: FIXED_NOW


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def notifier() -> Iterator[RecordingNotifier]:
    recording = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: recording
    yield recording
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def as_user(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}
