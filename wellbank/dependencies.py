"""Shared dependencies: DB session, signup coordinator, current user."""
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from wellbank.database import get_db
from wellbank.models.user import User
from wellbank.services.auth import decode_token_with_error
from wellbank.services.registration import RegistrationCoordinator
from wellbank.services.registration_store import RegistrationStore

security = HTTPBearer(auto_error=False)


def get_registration_coordinator(db: Session = Depends(get_db)) -> RegistrationCoordinator:
    return RegistrationCoordinator(RegistrationStore(db))


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload, _ = decode_token_with_error((credentials.credentials or "").strip())
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.query(User).filter(User.id == user_id).first()
    # Signup placeholders (no password yet) cannot hold a session
    if not user or not user.is_finalized or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user
