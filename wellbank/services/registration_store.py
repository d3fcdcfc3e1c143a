"""Storage for signup checkpoints (one per email, kept on the users row).

No business rules here: expiry and finalization checks live in services/registration.py.
"""
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from wellbank.models.user import User

CHECKPOINT_FIELDS = (
    "registration_step",
    "registration_data",
    "registration_token",
    "registration_token_expires_at",
)

_RESET_VALUES = {
    "registration_step": 0,
    "registration_data": None,
    "registration_token": None,
    "registration_token_expires_at": None,
}


class PersistenceError(Exception):
    """Checkpoint storage failed. The session has been rolled back."""


class RegistrationStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_identity(self, identity: str) -> User | None:
        try:
            return self.db.query(User).filter(User.email == identity).first()
        except SQLAlchemyError as e:
            self._fail("lookup", e)

    def find_by_identity_and_token(self, identity: str, token: str) -> User | None:
        try:
            return (
                self.db.query(User)
                .filter(User.email == identity, User.registration_token == token)
                .first()
            )
        except SQLAlchemyError as e:
            self._fail("lookup", e)

    def upsert(self, identity: str, fields: dict[str, Any]) -> User:
        """Write checkpoint fields for identity, creating the placeholder user row on first save.
        Same-identity writers race; the last commit wins."""
        unknown = set(fields) - set(CHECKPOINT_FIELDS)
        if unknown:
            raise ValueError(f"Not checkpoint fields: {sorted(unknown)}")
        try:
            user = self.db.query(User).filter(User.email == identity).first()
            if user is None:
                user = User(email=identity, **fields)
                self.db.add(user)
                try:
                    self.db.commit()
                except IntegrityError:
                    # A concurrent first save inserted the row; overwrite it like any later save
                    self.db.rollback()
                    user = self.db.query(User).filter(User.email == identity).one()
                    self._apply(user, fields)
                    self.db.commit()
            else:
                self._apply(user, fields)
                self.db.commit()
            self.db.refresh(user)
            return user
        except SQLAlchemyError as e:
            self._fail("upsert", e)

    def reset_fields(self, identity: str) -> bool:
        """Reset the checkpoint to its empty state. Returns False when no row exists."""
        try:
            user = self.db.query(User).filter(User.email == identity).first()
            if user is None:
                return False
            self._apply(user, _RESET_VALUES)
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self._fail("reset", e)

    @staticmethod
    def _apply(user: User, fields: dict[str, Any]) -> None:
        for name, value in fields.items():
            setattr(user, name, value)

    def _fail(self, op: str, exc: SQLAlchemyError):
        self.db.rollback()
        raise PersistenceError(f"Registration checkpoint {op} failed: {type(exc).__name__}") from exc
