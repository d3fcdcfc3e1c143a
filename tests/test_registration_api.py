from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from wellbank.database import SessionLocal, engine
from wellbank.dependencies import get_registration_coordinator
from wellbank.main import app
from wellbank.models.audit_log import AuditLog
from wellbank.models.user import User
from wellbank.services.registration import RegistrationCoordinator
from wellbank.services.registration_store import RegistrationStore


def _stored_token(email):
    db = SessionLocal()
    try:
        return db.query(User).filter(User.email == email).one().registration_token
    finally:
        db.close()


def test_save_step_returns_checkpoint_without_token(client):
    r = client.post("/auth/register/save-step", json={"email": "jane@example.com", "step": 1, "data": {"role": "patient"}})
    assert r.status_code == 200
    body = r.json()
    assert body == {"status": "success", "data": {"step": 1, "data": {"role": "patient"}}}
    assert "token" not in body["data"]


def test_resume_and_clear_round(client):
    client.post("/auth/register/save-step", json={"email": "jane@example.com", "step": 2, "data": {"role": "doctor"}})

    r = client.post("/auth/register/resume", json={"email": "jane@example.com"})
    assert r.json() == {"status": "success", "data": {"step": 2, "data": {"role": "doctor"}}}

    r = client.post("/auth/register/clear", json={"email": "jane@example.com"})
    assert r.json() == {"status": "success", "message": "Registration state cleared"}
    r = client.post("/auth/register/clear", json={"email": "jane@example.com"})
    assert r.status_code == 200
    assert r.json()["status"] == "success"

    r = client.post("/auth/register/resume", json={"email": "jane@example.com"})
    assert r.status_code == 200
    assert r.json() == {"status": "error", "message": "No registration to resume"}


def test_state_requires_current_token(client):
    client.post("/auth/register/save-step", json={"email": "a@x.com", "step": 1, "data": {"role": "patient"}})
    old_token = _stored_token("a@x.com")
    client.post("/auth/register/save-step", json={"email": "a@x.com", "step": 2, "data": {"role": "patient"}})
    new_token = _stored_token("a@x.com")

    r = client.post("/auth/register/state", json={"email": "a@x.com", "token": old_token})
    assert r.status_code == 200
    assert r.json() == {"status": "error", "message": "No registration state found or token expired"}

    r = client.post("/auth/register/state", json={"email": "a@x.com", "token": new_token})
    assert r.json() == {"status": "success", "data": {"step": 2, "data": {"role": "patient"}}}

    r = client.post("/auth/register/state", json={"email": "b@x.com", "token": new_token})
    assert r.json()["status"] == "error"


def test_save_step_writes_audit_entry(client):
    client.post("/auth/register/save-step", json={"email": "a@x.com", "step": 3, "data": {}})
    db = SessionLocal()
    try:
        entry = db.query(AuditLog).filter(AuditLog.category == "registration").one()
        assert entry.actor_email == "a@x.com"
        assert entry.meta == {"step": 3}
    finally:
        db.close()


def test_save_step_validation(client):
    r = client.post("/auth/register/save-step", json={"step": 1, "data": {}})
    assert r.status_code == 422
    assert r.json()["status"] == "error"
    assert r.json()["message"] == "Validation failed"

    r = client.post("/auth/register/save-step", json={"email": "a@x.com", "step": -1, "data": {}})
    assert r.status_code == 422

    r = client.post("/auth/register/save-step", json={"email": "   ", "step": 1, "data": {}})
    assert r.status_code == 422

    r = client.post("/auth/register/state", json={"email": "a@x.com"})
    assert r.status_code == 422


def test_storage_failure_surfaces_as_503(client):
    class BrokenSession:
        def query(self, *args, **kwargs):
            raise OperationalError("SELECT users", {}, Exception("connection refused"))

        def rollback(self):
            pass

    app.dependency_overrides[get_registration_coordinator] = lambda: RegistrationCoordinator(RegistrationStore(BrokenSession()), ttl_days=7)
    try:
        r = client.post("/auth/register/resume", json={"email": "a@x.com"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 503
    assert r.json() == {"status": "error", "message": "Registration storage unavailable", "data": None}


def test_save_step_commit_failure_rolls_back_and_surfaces_as_503(client):
    rollbacks = []

    class FailingCommitSession(Session):
        def commit(self):
            raise OperationalError("INSERT INTO users", {}, Exception("disk I/O error"))

        def rollback(self):
            rollbacks.append(True)
            super().rollback()

    broken = sessionmaker(bind=engine, class_=FailingCommitSession)()
    app.dependency_overrides[get_registration_coordinator] = lambda: RegistrationCoordinator(RegistrationStore(broken), ttl_days=7)
    try:
        r = client.post("/auth/register/save-step", json={"email": "a@x.com", "step": 1, "data": {"role": "patient"}})
    finally:
        app.dependency_overrides.clear()
        broken.close()
    assert r.status_code == 503
    assert r.json() == {"status": "error", "message": "Registration storage unavailable", "data": None}
    assert rollbacks

    db = SessionLocal()
    try:
        assert db.query(User).filter(User.email == "a@x.com").first() is None
    finally:
        db.close()
