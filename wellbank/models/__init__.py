"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from wellbank.models.user import User, UserRole
from wellbank.models.otp_challenge import OtpChallenge
from wellbank.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "OtpChallenge",
    "AuditLog",
]
