"""User accounts and the signup checkpoint they carry."""
from sqlalchemy import Column, Integer, String, Enum as SQLEnum, DateTime, Boolean
from sqlalchemy.sql import func
from wellbank.database import Base, JSONColumn
import enum


class UserRole(str, enum.Enum):
    patient = "patient"
    doctor = "doctor"
    provider_admin = "provider_admin"
    wellbank_admin = "wellbank_admin"  # seeded only, never self-registered


SELF_REGISTER_ROLES = (UserRole.patient, UserRole.doctor, UserRole.provider_admin)


class User(Base):
    """A row exists from the first saved signup step; it becomes a real account once hashed_password is set."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone_number = Column(String(50), nullable=True)

    roles = Column(JSONColumn, nullable=True)  # list of UserRole values
    active_role = Column(SQLEnum(UserRole), nullable=True)

    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Signup wizard checkpoint (see services/registration.py)
    registration_step = Column(Integer, default=0, nullable=False)
    registration_data = Column(JSONColumn, nullable=True)
    registration_token = Column(String(128), nullable=True)
    registration_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_finalized(self) -> bool:
        return bool(self.hashed_password)
