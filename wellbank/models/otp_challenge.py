"""One-time code challenges issued during signup."""
import uuid

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from wellbank.database import Base


def _new_challenge_id() -> str:
    return str(uuid.uuid4())


class OtpChallenge(Base):
    __tablename__ = "otp_challenges"

    id = Column(String(36), primary_key=True, default=_new_challenge_id)
    channel = Column(String(10), nullable=False)  # phone | email
    destination = Column(String(255), nullable=False, index=True)

    code = Column(String(10), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    # Issued on successful verification; consumed once by /auth/register/complete
    verification_token = Column(String(128), nullable=True, unique=True, index=True)
    verification_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
