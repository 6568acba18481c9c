import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.main import app
from app.services import lifecycle
from app.services.rooms import RoomService
from app.storage.memory import MemoryGateway
from schemas.space import CreateSpaceOptions
from schemas.user import UserProfile

NOW = 1_700_000_000_000


class RecordingPublisher:
    def __init__(self):
        self.events = []

    async def publish(self, space_id, message):
        self.events.append((space_id, message))


def _user(user_id: str, name: str) -> UserProfile:
    return UserProfile(id=user_id, display_name=name, taken=True)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def host():
    return _user("host0001", "Hana Host")


@pytest.fixture
def alice():
    return _user("alice001", "Alice")


@pytest.fixture
def bob():
    return _user("bob00001", "Bob")


@pytest.fixture
def carol():
    return _user("carol001", "Carol")


@pytest.fixture
def make_space(host):
    def _make(**options):
        return lifecycle.create_space(
            "Morning show",
            "Daily chat about the news",
            host,
            CreateSpaceOptions(**options),
            now=NOW,
        )

    return _make


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest.fixture
def rooms(gateway, publisher):
    return RoomService(gateway, publisher=publisher)


@pytest_asyncio.fixture
async def api_client(rooms):
    app.state.rooms = rooms
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
