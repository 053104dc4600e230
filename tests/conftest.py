"""Pytest configuration for Givio Cards tests."""

import os
import tempfile
import uuid

import pytest

# The app reads DATABASE_URL at import time, so point it at a throwaway
# SQLite file before anything imports givio.server.
_DB_PATH = os.path.join(
    tempfile.gettempdir(), f"givio-test-{os.getpid()}-{uuid.uuid4().hex[:8]}.db"
)
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ.pop("REDIS_URL", None)

from fastapi.testclient import TestClient  # noqa: E402

from givio.config import Settings  # noqa: E402
from givio.server import app  # noqa: E402

TEST_SECRET = "test-admin-session-secret"
TEST_PASSWORD = "correct horse battery staple"
TEST_SYNC_TOKEN = "sync-token-for-scripts"


# ---------------------------------------------------------------------------
# Redis stand-in for the login throttle: only the calls LoginThrottle makes.
# ---------------------------------------------------------------------------

class FakePipeline:
    def __init__(self, r):
        self.r = r
        self.ops = []

    def set(self, key, value, nx=False, ex=None):
        self.ops.append(("set", key, value, nx))
        return self

    def incr(self, key):
        self.ops.append(("incr", key))
        return self

    async def execute(self):
        out = []
        for op in self.ops:
            if op[0] == "set":
                _, key, value, nx = op
                if nx and key in self.r.data:
                    out.append(None)
                else:
                    self.r.data[key] = int(value)
                    out.append(True)
            else:
                key = op[1]
                self.r.data[key] = self.r.data.get(key, 0) + 1
                out.append(self.r.data[key])
        self.ops = []
        return out


class FakeRedis:
    def __init__(self):
        self.data = {}

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def delete(self, key):
        self.data.pop(key, None)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return Settings(
        admin_password=TEST_PASSWORD,
        admin_session_secret=TEST_SECRET,
        admin_sync_token=TEST_SYNC_TOKEN,
        shipping_cents=399,
    )


@pytest.fixture
def client(settings):
    """TestClient with startup/shutdown hooks run and test settings applied."""
    original = app.state.settings
    app.state.settings = settings
    with TestClient(app) as c:
        app.state.login_throttle = None
        yield c
    app.state.settings = original
    app.state.login_throttle = None


@pytest.fixture
def admin_headers():
    return {"xadmintoken": TEST_SYNC_TOKEN}


@pytest.fixture
def new_code():
    """Unique discount code strings; the test database is shared."""
    def _make(prefix: str = "TEST") -> str:
        return f"{prefix}{uuid.uuid4().hex[:8].upper()}"
    return _make


@pytest.fixture
def fake_redis():
    return FakeRedis()


def pytest_sessionfinish(session, exitstatus):
    for suffix in ("", "-wal", "-shm"):
        try:
            os.remove(_DB_PATH + suffix)
        except OSError:
            pass
