"""Signup checkpointing: save and resume the multi-step registration wizard.

Lifecycle of a checkpoint for one email:

    NONE --save_step--> IN_PROGRESS --(time passes)--> EXPIRED --save_step--> IN_PROGRESS
    any state --clear_state--> NONE
    IN_PROGRESS --account completed (password set)--> FINALIZED (terminal)

Expiry is checked lazily on read, nothing sweeps old rows. Business-rule misses
(absent, expired, finalized) all come back as None so callers cannot tell them
apart; only storage failures raise (PersistenceError).
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from wellbank.config import get_settings
from wellbank.models.user import User
from wellbank.services.clock import as_utc, utcnow
from wellbank.services.registration_store import PersistenceError, RegistrationStore

__all__ = [
    "PersistenceError",
    "RegistrationCheckpoint",
    "RegistrationCoordinator",
    "RegistrationFinalizedError",
]

RESUME_TOKEN_BYTES = 32


class RegistrationFinalizedError(Exception):
    """The email already belongs to a completed account; its signup cannot be reopened."""

    def __init__(self, identity: str):
        super().__init__(f"Registration already completed for {identity}")
        self.identity = identity


@dataclass
class RegistrationCheckpoint:
    step: int
    data: dict[str, Any] | None
    # Set only on the value returned by save_step; never exposed over HTTP
    token: str | None = None
    expires_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"step": self.step, "data": self.data}


class RegistrationCoordinator:
    def __init__(
        self,
        store: RegistrationStore,
        ttl_days: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        if ttl_days is None:
            ttl_days = get_settings().registration_token_ttl_days
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock

    def save_step(self, identity: str, step: int, data: dict[str, Any] | None) -> RegistrationCheckpoint:
        """Checkpoint the wizard. Replaces step and data wholesale and re-mints the resume token,
        so any token handed out by an earlier save stops working for get_state."""
        if not identity:
            raise ValueError("identity is required")
        if step < 0:
            raise ValueError("step must be >= 0")
        existing = self.store.find_by_identity(identity)
        if existing is not None and existing.is_finalized:
            raise RegistrationFinalizedError(identity)

        token = secrets.token_urlsafe(RESUME_TOKEN_BYTES)
        expires_at = self.clock() + self.ttl
        user = self.store.upsert(
            identity,
            {
                "registration_step": step,
                "registration_data": dict(data or {}),
                "registration_token": token,
                "registration_token_expires_at": expires_at,
            },
        )
        return RegistrationCheckpoint(
            step=user.registration_step,
            data=user.registration_data,
            token=token,
            expires_at=expires_at,
        )

    def get_state(self, identity: str, token: str) -> RegistrationCheckpoint | None:
        if not identity or not token:
            return None
        user = self.store.find_by_identity_and_token(identity, token)
        return self._live_checkpoint(user)

    def resume_by_email(self, identity: str) -> RegistrationCheckpoint | None:
        """Email-only lookup backing "continue where you left off"."""
        if not identity:
            return None
        user = self.store.find_by_identity(identity)
        return self._live_checkpoint(user)

    def clear_state(self, identity: str) -> None:
        """Idempotent; clearing an unknown email is a no-op."""
        if not identity:
            return
        self.store.reset_fields(identity)

    def is_live(self, user: User | None) -> bool:
        if user is None or user.is_finalized:
            return False
        if not user.registration_token:
            return False
        expires_at = as_utc(user.registration_token_expires_at)
        if expires_at is None:
            return False
        return self.clock() < expires_at

    def _live_checkpoint(self, user: User | None) -> RegistrationCheckpoint | None:
        if not self.is_live(user):
            return None
        return RegistrationCheckpoint(step=user.registration_step, data=user.registration_data)
