"""Append-only audit log of signup and login events.
No updates or deletes - every record is permanent."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from wellbank.database import Base, JSONColumn


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # category: registration | otp | failed_attempt
    category = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Optional structured data (e.g. step, channel, reason)
    meta = Column(JSONColumn, nullable=True)

    # Who did it; the user row may be a signup placeholder
    actor_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_email = Column(String(255), nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
