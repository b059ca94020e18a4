import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from models.db_storage import DBStorage  # noqa: E402
from services import TokenSettings, build_auth_service  # noqa: E402


class FrozenClock:
    """Callable clock the token services read instead of the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings():
    """Token settings with cheap argon2 parameters."""
    return TokenSettings(
        access_secret="test-access-secret-0123456789abcdef",
        refresh_secret="test-refresh-secret-0123456789abcdef",
        argon2_time_cost=1,
        argon2_memory_cost=1024,
    )


@pytest.fixture
def storage(tmp_path):
    """File-backed SQLite so several threads get their own connections."""
    db = DBStorage(f"sqlite:///{tmp_path / 'tokens.db'}")
    db.reload()
    yield db
    db.close()
    db.engine.dispose()


@pytest.fixture
def clock():
    return FrozenClock(datetime.now(timezone.utc))


@pytest.fixture
def service(settings, storage, clock):
    return build_auth_service(settings, storage, clock=clock)


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def app(tmp_path):
    from api import create_app
    from models import storage as app_storage

    app = create_app(
        "testing",
        overrides={"DATABASE_URL": f"sqlite:///{tmp_path / 'api.db'}"},
    )
    yield app
    app_storage.close()
    app_storage.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()
