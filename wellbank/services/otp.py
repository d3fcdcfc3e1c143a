"""OTP gate for signup: issue a 6-digit code, verify it, hand out a single-use verification token.

The registration checkpoint never inspects the token; /auth/register/complete consumes it.
"""
import hmac
import logging
import re
import secrets
import string
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from wellbank.config import get_settings
from wellbank.models.otp_challenge import OtpChallenge
from wellbank.services.clock import as_utc, utcnow
from wellbank.services.notifications import send_otp_email, send_otp_sms

log = logging.getLogger("uvicorn.error")

CODE_LENGTH = 6
VERIFICATION_TOKEN_BYTES = 32

# Rejection reasons
NOT_FOUND = "not_found"
EXPIRED = "expired"
ALREADY_VERIFIED = "already_verified"
TOO_MANY_ATTEMPTS = "too_many_attempts"
INVALID_CODE = "invalid_code"
TOKEN_INVALID = "token_invalid"
DESTINATION_MISMATCH = "destination_mismatch"


class OtpRejected(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class OtpDeliveryError(Exception):
    """No channel could deliver the code."""


def _generate_code() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(CODE_LENGTH))


def _digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def send_code(db: Session, channel: str, destination: str, now: datetime | None = None) -> OtpChallenge:
    """Create a challenge and deliver its code. Returns the challenge (id is the client's otpId)."""
    settings = get_settings()
    now = now or utcnow()
    code = _generate_code()
    challenge = OtpChallenge(
        channel=channel,
        destination=destination,
        code=code,
        expires_at=now + timedelta(minutes=settings.otp_expire_minutes),
        attempts=0,
    )
    db.add(challenge)
    db.commit()
    db.refresh(challenge)

    if channel == "email":
        sent = send_otp_email(destination, code, settings.otp_expire_minutes)
    else:
        sent = send_otp_sms(destination, code, settings.otp_expire_minutes)
    if not sent:
        if settings.app_env == "development":
            print(f"[OTP] Delivery unavailable; development code for {channel} {destination} is {code} (otp_id={challenge.id})", flush=True)
            return challenge
        db.delete(challenge)
        db.commit()
        log.warning("OTP delivery failed for %s %s", channel, destination)
        raise OtpDeliveryError(f"Could not deliver verification code by {channel}")
    print(f"[OTP] Code sent by {channel} to {destination} (otp_id={challenge.id})", flush=True)
    return challenge


def verify_code(db: Session, challenge_id: str, code: str, now: datetime | None = None) -> OtpChallenge:
    """Check a code against its challenge. On success the challenge carries a fresh verification_token.
    Raises OtpRejected; failed attempts are counted and committed."""
    settings = get_settings()
    now = now or utcnow()
    challenge = db.get(OtpChallenge, challenge_id) if challenge_id else None
    if challenge is None:
        raise OtpRejected(NOT_FOUND)
    if challenge.verified_at is not None:
        raise OtpRejected(ALREADY_VERIFIED)
    if now >= as_utc(challenge.expires_at):
        raise OtpRejected(EXPIRED)
    if challenge.attempts >= settings.otp_max_attempts:
        raise OtpRejected(TOO_MANY_ATTEMPTS)

    challenge.attempts += 1
    if settings.otp_dev_accept_any_code:
        matched = len(code) == CODE_LENGTH and code.isdigit()
    else:
        matched = hmac.compare_digest(code.encode("utf-8"), (challenge.code or "").encode("utf-8"))
    if not matched:
        db.commit()
        raise OtpRejected(INVALID_CODE)

    challenge.verified_at = now
    challenge.verification_token = secrets.token_urlsafe(VERIFICATION_TOKEN_BYTES)
    challenge.verification_token_expires_at = now + timedelta(minutes=settings.otp_verification_token_expire_minutes)
    db.commit()
    db.refresh(challenge)
    return challenge


def consume_verification_token(
    db: Session,
    token: str,
    *,
    email: str,
    phone_number: str,
    now: datetime | None = None,
) -> OtpChallenge:
    """Mark a verification token used. The verified destination must be the email or phone being registered.
    Flushes only; the caller commits together with the account write."""
    now = now or utcnow()
    challenge = db.query(OtpChallenge).filter(OtpChallenge.verification_token == token).first() if token else None
    if challenge is None or challenge.consumed_at is not None:
        raise OtpRejected(TOKEN_INVALID)
    expires_at = as_utc(challenge.verification_token_expires_at)
    if expires_at is None or now >= expires_at:
        raise OtpRejected(TOKEN_INVALID)
    if challenge.channel == "email":
        matches = challenge.destination == email
    else:
        matches = bool(_digits(challenge.destination)) and _digits(challenge.destination) == _digits(phone_number)
    if not matches:
        raise OtpRejected(DESTINATION_MISMATCH)
    challenge.consumed_at = now
    db.flush()
    return challenge
