"""
Signup API smoke run – in-process via TestClient (no separate server).
Uses the database from DATABASE_URL; leave Mailgun/Twilio unset and APP_ENV=development so codes are read from the DB.
Run: python scripts/test_api_inprocess.py
"""
import sys
import os
import uuid
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fastapi.testclient import TestClient
from wellbank.database import SessionLocal, engine, Base
# Import models so create_all creates tables
from wellbank.models import User, OtpChallenge, AuditLog  # noqa: F401
from wellbank.main import app

Base.metadata.create_all(bind=engine)

client = TestClient(app)
passed = failed = 0
email = f"smoke-{uuid.uuid4().hex[:8]}@test.wellbank.ng"
state = {}


def req(method, path, body=None, token=None):
    kwargs = {"headers": {"Accept": "application/json"}}
    if token:
        kwargs["headers"]["Authorization"] = f"Bearer {token}"
    if body is not None:
        kwargs["json"] = body
    r = client.request(method, path, **kwargs)
    if r.status_code >= 400:
        raise RuntimeError(f"HTTP {r.status_code}: {r.text}")
    return r.json() if r.content else {}


def expect_status(body, status):
    if body.get("status") != status:
        raise RuntimeError(f"expected status={status}, got {body}")
    return body


def test(name, fn):
    global passed, failed
    try:
        fn()
        print(f"  OK  {name}")
        passed += 1
    except Exception as e:
        print(f"  FAIL {name}: {e}")
        failed += 1


def _otp_code(otp_id):
    db = SessionLocal()
    try:
        return db.get(OtpChallenge, otp_id).code
    finally:
        db.close()


def send_and_verify():
    otp_id = req("POST", "/auth/otp/send", {"type": "email", "destination": email})["data"]["otpId"]
    r = req("POST", "/auth/otp/verify", {"otpId": otp_id, "code": _otp_code(otp_id)})
    state["verification_token"] = r["data"]["verificationToken"]


def complete():
    r = req("POST", "/auth/register/complete", {
        "email": email, "verificationToken": state["verification_token"], "password": "SecureP@ss123",
        "firstName": "Smoke", "lastName": "Test", "phoneNumber": "+2348012345678", "role": "patient"})
    state["access_token"] = r["data"]["accessToken"]


def main():
    print("WellBank Signup API Tests (in-process)\n" + "=" * 50)
    print(f"identity: {email}")

    test("GET /", lambda: req("GET", "/"))
    test("GET /health", lambda: req("GET", "/health"))

    print("\n--- Registration checkpoint ---")
    test("POST /auth/register/save-step (1)", lambda: expect_status(
        req("POST", "/auth/register/save-step", {"email": email, "step": 1, "data": {"role": "patient"}}), "success"))
    test("POST /auth/register/resume", lambda: expect_status(
        req("POST", "/auth/register/resume", {"email": email}), "success"))
    test("POST /auth/register/state (bad token)", lambda: expect_status(
        req("POST", "/auth/register/state", {"email": email, "token": "stale"}), "error"))

    print("\n--- OTP & completion ---")
    test("POST /auth/otp/send + verify", send_and_verify)
    test("POST /auth/register/save-step (2)", lambda: expect_status(
        req("POST", "/auth/register/save-step", {"email": email, "step": 2, "data": {
            "role": "patient", "verificationToken": state.get("verification_token")}}), "success"))
    test("POST /auth/register/complete", complete)
    test("POST /auth/register/resume (finalized)", lambda: expect_status(
        req("POST", "/auth/register/resume", {"email": email}), "error"))
    test("POST /auth/register/clear", lambda: expect_status(
        req("POST", "/auth/register/clear", {"email": email}), "success"))

    print("\n--- Login ---")
    test("POST /auth/login", lambda: req("POST", "/auth/login", {"email": email, "password": "SecureP@ss123"}))
    test("GET /auth/me", lambda: req("GET", "/auth/me", token=state.get("access_token")))

    print("\n" + "=" * 50)
    print(f"Passed: {passed}  Failed: {failed}  Total: {passed + failed}")
    sys.exit(0 if failed == 0 else 1)


if __name__ == "__main__":
    main()
