import fakeredis
import pytest
from fastapi.testclient import TestClient

from anonchat.config import Settings
from anonchat.main import create_app
from anonchat.services.directory import ConversationDirectory
from anonchat.services.message_log import MessageLog
from anonchat.services.registry import ConnectionRegistry
from anonchat.services.router import FanoutRouter
from anonchat.storage.memory import MemoryStorage
from anonchat.storage.sql import SqlStorage

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "s3cret-pass"


class FakeChannel:
    """Stands in for a WebSocket: records what the writer sends."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="development",
        STORAGE_BACKEND="memory",
        ADMIN_USERNAME=ADMIN_USERNAME,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        LOG_LEVEL="WARNING",
        MAX_MESSAGE_LENGTH=200,
    )


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(params=["memory", "sql"])
def storage(request):
    if request.param == "memory":
        yield MemoryStorage()
        return
    store = SqlStorage("sqlite://")
    store.init_schema()
    yield store
    store.close()


@pytest.fixture
def directory(storage):
    return ConversationDirectory(storage)


@pytest.fixture
def message_log(storage):
    return MessageLog(storage, max_length=200)


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router(registry):
    return FanoutRouter(registry)


@pytest.fixture
def app(settings, redis_client):
    return create_app(settings, storage=MemoryStorage(), redis_client=redis_client)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(app, client):
    """Second client with its own cookie jar, logged in as admin."""
    with TestClient(app) as c:
        resp = c.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        yield c
