"""Point the app at a throwaway SQLite file before any wellbank module reads settings."""
import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="wellbank-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["APP_ENV"] = "development"
for _key in ("MAILGUN_API_KEY", "MAILGUN_DOMAIN", "SENDGRID_API_KEY", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"):
    os.environ[_key] = ""

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from wellbank.config import get_settings  # noqa: E402
from wellbank.database import Base, SessionLocal, engine  # noqa: E402
from wellbank.main import app  # noqa: E402
from wellbank.services.registration import RegistrationCoordinator  # noqa: E402
from wellbank.services.registration_store import RegistrationStore  # noqa: E402


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    get_settings.cache_clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def coordinator(db, clock):
    return RegistrationCoordinator(RegistrationStore(db), ttl_days=7, clock=clock)


@pytest.fixture
def client():
    return TestClient(app)
